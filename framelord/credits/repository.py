"""
Scan credit balances and the credit ledger.

Each balance change and its ledger row are written in one transaction.
Tenants without a balance row start with STARTING_CREDITS.
"""

from __future__ import annotations

import sqlite3
import uuid

from framelord.credits.models import (
    CreditBalance,
    CreditTransaction,
    TransactionType,
    get_cost_for_tier,
    get_package,
    utc_now,
)
from framelord.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter

logger = get_logger(__name__)


def _load(conn: sqlite3.Connection, tenant_id: str) -> CreditBalance:
    row = conn.execute(
        "SELECT * FROM credit_balances WHERE tenant_id = ?", (tenant_id,)
    ).fetchone()
    return CreditBalance.from_db_row(dict(row)) if row else CreditBalance(tenant_id=tenant_id)


def _apply(
    conn: sqlite3.Connection,
    balance: CreditBalance,
    txn_type: TransactionType,
    amount: int,
    description: str,
    scan_report_id: str | None = None,
) -> CreditTransaction:
    balance.updated_at = utc_now()
    conn.execute(
        """
        INSERT INTO credit_balances (
            tenant_id, credits, bonus_credits, total_purchased, total_used, updated_at
        ) VALUES (
            :tenant_id, :credits, :bonus_credits, :total_purchased, :total_used, :updated_at
        )
        ON CONFLICT(tenant_id) DO UPDATE SET
            credits = excluded.credits,
            bonus_credits = excluded.bonus_credits,
            total_purchased = excluded.total_purchased,
            total_used = excluded.total_used,
            updated_at = excluded.updated_at
        """,
        balance.to_db_dict(),
    )

    txn = CreditTransaction(
        id=f"txn_{uuid.uuid4().hex[:16]}",
        tenant_id=balance.tenant_id,
        type=txn_type,
        amount=amount,
        description=description,
        scan_report_id=scan_report_id,
    )
    conn.execute(
        """
        INSERT INTO credit_transactions (
            id, tenant_id, type, amount, description, scan_report_id, created_at
        ) VALUES (
            :id, :tenant_id, :type, :amount, :description, :scan_report_id, :created_at
        )
        """,
        txn.to_db_dict(),
    )
    counter(f"credits.{txn.type}")
    return txn


class CreditRepository:
    """Static-method repository for per-tenant scan credits."""

    @staticmethod
    def get_balance(tenant_id: str) -> CreditBalance:
        with get_db_connection() as conn:
            return _load(conn, tenant_id)

    @staticmethod
    def get_available_credits(tenant_id: str) -> int:
        return CreditRepository.get_balance(tenant_id).available

    @staticmethod
    def has_credits_for(tenant_id: str, tier: str) -> bool:
        return CreditRepository.get_available_credits(tenant_id) >= get_cost_for_tier(tier)

    @staticmethod
    def list_transactions(tenant_id: str) -> list[CreditTransaction]:
        """Ledger for tenant_id, newest first."""
        with get_db_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM credit_transactions
                WHERE tenant_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (tenant_id,),
            ).fetchall()
        return [CreditTransaction.from_db_row(dict(row)) for row in rows]

    @staticmethod
    @retry_on_db_lock()
    def use_credits_for_scan(
        tenant_id: str, tier: str, scan_report_id: str | None = None
    ) -> bool:
        """
        Charge an image scan. Bonus credits are spent before regular credits.

        Returns:
            True if charged (or free), False if the balance is too low

        Side Effects:
            - Updates credit_balances and appends a "use" transaction
        """
        if get_cost_for_tier(tier) == 0:
            return True
        return CreditRepository.charge_scan(tenant_id, tier, scan_report_id) is not None

    @staticmethod
    @retry_on_db_lock()
    def charge_scan(
        tenant_id: str, tier: str, scan_report_id: str | None = None
    ) -> CreditTransaction | None:
        """
        Check the balance and debit it in one transaction.

        Returns:
            The "use" transaction, or None for a free tier or a balance that is too low
        """
        cost = get_cost_for_tier(tier)
        if cost == 0:
            return None

        with db_transaction() as conn:
            balance = _load(conn, tenant_id)
            if balance.available < cost:
                counter("credits.insufficient")
                logger.info(
                    "Insufficient credits for tenant %s: need %d, have %d",
                    tenant_id,
                    cost,
                    balance.available,
                )
                return None

            from_bonus = min(balance.bonus_credits, cost)
            balance.bonus_credits -= from_bonus
            balance.credits -= cost - from_bonus
            balance.total_used += cost
            return _apply(
                conn,
                balance,
                TransactionType.USE,
                -cost,
                f"{tier.capitalize()} image scan",
                scan_report_id,
            )

    @staticmethod
    @retry_on_db_lock()
    def attach_scan_report(transaction_id: str, scan_report_id: str) -> bool:
        """Link a charge made before the scan to the report it paid for."""
        with db_transaction() as conn:
            cursor = conn.execute(
                "UPDATE credit_transactions SET scan_report_id = ? WHERE id = ?",
                (scan_report_id, transaction_id),
            )
        return cursor.rowcount > 0

    @staticmethod
    @retry_on_db_lock()
    def add_purchased_credits(tenant_id: str, package_id: str) -> bool:
        """Credit a purchased package; False for an unknown package id."""
        package = get_package(package_id)
        if package is None:
            logger.warning("Unknown credit package: %s", package_id)
            return False

        with db_transaction() as conn:
            balance = _load(conn, tenant_id)
            balance.credits += package.credits
            balance.total_purchased += package.credits
            _apply(
                conn,
                balance,
                TransactionType.PURCHASE,
                package.credits,
                f"Purchased {package.name}",
            )
        logger.info("Tenant %s purchased %s", tenant_id, package.id)
        return True

    @staticmethod
    @retry_on_db_lock()
    def add_bonus_credits(tenant_id: str, amount: int, reason: str) -> CreditBalance:
        if amount <= 0:
            raise ValueError("Bonus amount must be positive")
        with db_transaction() as conn:
            balance = _load(conn, tenant_id)
            balance.bonus_credits += amount
            _apply(conn, balance, TransactionType.BONUS, amount, reason)
        return balance

    @staticmethod
    @retry_on_db_lock()
    def refund_credits(tenant_id: str, amount: int, reason: str) -> CreditBalance:
        if amount <= 0:
            raise ValueError("Refund amount must be positive")
        with db_transaction() as conn:
            balance = _load(conn, tenant_id)
            balance.credits += amount
            balance.total_used = max(0, balance.total_used - amount)
            _apply(conn, balance, TransactionType.REFUND, amount, reason)
        return balance

    @staticmethod
    @retry_on_db_lock()
    def reset(tenant_id: str) -> None:
        """Side Effects: deletes the tenant's balance and ledger."""
        with db_transaction() as conn:
            conn.execute("DELETE FROM credit_balances WHERE tenant_id = ?", (tenant_id,))
            conn.execute("DELETE FROM credit_transactions WHERE tenant_id = ?", (tenant_id,))
