"""Stripe billing: plan tiers, tenant billing state and webhook routing."""
