"""Scan credits: balances, packages and the credit ledger."""
