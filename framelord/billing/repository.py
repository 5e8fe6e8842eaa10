"""
Tenant billing repository - CRUD for the tenant_billing table.

Every mutation stamps last_billing_event_at. Tenants without a row read back
as the default state (beta_free / none).
"""

from __future__ import annotations

from datetime import datetime

from framelord.billing.models import BillingStatus, TenantBilling, utc_now
from framelord.billing.plans import PlanTier
from framelord.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from framelord.observability.logging import get_logger

logger = get_logger(__name__)

_ACTIVE_STATUSES = {BillingStatus.ACTIVE.value, BillingStatus.TRIALING.value}


class TenantBillingRepository:
    """Static-method repository for tenant billing state."""

    @staticmethod
    @retry_on_db_lock()
    def save(billing: TenantBilling) -> TenantBilling:
        """
        Upsert a billing row.

        Side Effects:
            - Inserts or replaces the tenant_billing row
        """
        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO tenant_billing (
                    tenant_id, stripe_customer_id, stripe_subscription_id,
                    current_plan_tier, billing_status, valid_until,
                    subscribed_at, last_billing_event_at
                ) VALUES (
                    :tenant_id, :stripe_customer_id, :stripe_subscription_id,
                    :current_plan_tier, :billing_status, :valid_until,
                    :subscribed_at, :last_billing_event_at
                )
                ON CONFLICT(tenant_id) DO UPDATE SET
                    stripe_customer_id = excluded.stripe_customer_id,
                    stripe_subscription_id = excluded.stripe_subscription_id,
                    current_plan_tier = excluded.current_plan_tier,
                    billing_status = excluded.billing_status,
                    valid_until = excluded.valid_until,
                    subscribed_at = excluded.subscribed_at,
                    last_billing_event_at = excluded.last_billing_event_at
                """,
                billing.to_db_dict(),
            )
        return billing

    @staticmethod
    def get(tenant_id: str) -> TenantBilling:
        """Billing state for tenant_id, or the default state if none is stored."""
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM tenant_billing WHERE tenant_id = ?",
                (tenant_id,),
            ).fetchone()

        if not row:
            return TenantBilling(tenant_id=tenant_id)
        return TenantBilling.from_db_row(dict(row))

    @staticmethod
    def find_tenant_by_customer(customer_id: str | None) -> str | None:
        if not customer_id:
            return None
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT tenant_id FROM tenant_billing WHERE stripe_customer_id = ?",
                (customer_id,),
            ).fetchone()
        return row["tenant_id"] if row else None

    @staticmethod
    def find_tenant_by_subscription(subscription_id: str | None) -> str | None:
        if not subscription_id:
            return None
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT tenant_id FROM tenant_billing WHERE stripe_subscription_id = ?",
                (subscription_id,),
            ).fetchone()
        return row["tenant_id"] if row else None


def get_tenant_billing(tenant_id: str) -> TenantBilling:
    return TenantBillingRepository.get(tenant_id)


def get_current_plan_tier(tenant_id: str) -> str:
    return TenantBillingRepository.get(tenant_id).current_plan_tier


def has_active_subscription(tenant_id: str) -> bool:
    return TenantBillingRepository.get(tenant_id).billing_status in _ACTIVE_STATUSES


def is_past_due(tenant_id: str) -> bool:
    return TenantBillingRepository.get(tenant_id).billing_status == BillingStatus.PAST_DUE.value


def is_canceled_but_valid(tenant_id: str, now: datetime | None = None) -> bool:
    """Canceled, but the paid period has not ended yet."""
    billing = TenantBillingRepository.get(tenant_id)
    if billing.billing_status != BillingStatus.CANCELED.value or billing.valid_until is None:
        return False
    return billing.valid_until > (now or utc_now())


def initialize_tenant_billing(
    tenant_id: str,
    plan_tier: str = PlanTier.BETA_FREE.value,
) -> TenantBilling:
    """Create the row if missing; an existing row is returned unchanged."""
    existing = TenantBillingRepository.get(tenant_id)
    if existing.last_billing_event_at is not None:
        return existing

    billing = TenantBilling(
        tenant_id=tenant_id,
        current_plan_tier=plan_tier,
        last_billing_event_at=utc_now(),
    )
    logger.info("Initialized billing for tenant %s at tier %s", tenant_id, plan_tier)
    return TenantBillingRepository.save(billing)


def update_billing_from_checkout(
    tenant_id: str,
    customer_id: str,
    subscription_id: str,
    plan_tier: str,
    status: str = BillingStatus.ACTIVE.value,
) -> TenantBilling:
    """Apply a completed checkout; subscribed_at is set only on the first subscription."""
    billing = TenantBillingRepository.get(tenant_id)
    now = utc_now()
    updated = billing.model_copy(
        update={
            "stripe_customer_id": customer_id,
            "stripe_subscription_id": subscription_id,
            "current_plan_tier": plan_tier,
            "billing_status": status,
            "valid_until": None,
            "subscribed_at": billing.subscribed_at or now,
            "last_billing_event_at": now,
        }
    )
    logger.info("Checkout applied: tenant=%s tier=%s status=%s", tenant_id, plan_tier, status)
    return TenantBillingRepository.save(updated)


def update_subscription_status(
    tenant_id: str,
    status: str,
    valid_until: datetime | None = None,
) -> TenantBilling:
    billing = TenantBillingRepository.get(tenant_id)
    update: dict[str, object] = {"billing_status": status, "last_billing_event_at": utc_now()}
    if valid_until is not None:
        update["valid_until"] = valid_until
    logger.info("Subscription status: tenant=%s status=%s", tenant_id, status)
    return TenantBillingRepository.save(billing.model_copy(update=update))


def update_plan_tier(tenant_id: str, plan_tier: str) -> TenantBilling:
    billing = TenantBillingRepository.get(tenant_id)
    logger.info(
        "Plan tier change: tenant=%s %s -> %s",
        tenant_id,
        billing.current_plan_tier,
        plan_tier,
    )
    return TenantBillingRepository.save(
        billing.model_copy(
            update={"current_plan_tier": plan_tier, "last_billing_event_at": utc_now()}
        )
    )


def handle_subscription_canceled(tenant_id: str, valid_until: datetime | None) -> TenantBilling:
    """Scheduled cancellation: status canceled, tier kept until valid_until."""
    billing = TenantBillingRepository.get(tenant_id)
    logger.info("Subscription canceled: tenant=%s valid_until=%s", tenant_id, valid_until)
    return TenantBillingRepository.save(
        billing.model_copy(
            update={
                "billing_status": BillingStatus.CANCELED.value,
                "valid_until": valid_until,
                "last_billing_event_at": utc_now(),
            }
        )
    )


def downgrade_to_free_tier(tenant_id: str) -> TenantBilling:
    """Subscription ended: back to beta_free with no subscription."""
    billing = TenantBillingRepository.get(tenant_id)
    logger.info("Downgrading tenant %s to beta_free", tenant_id)
    return TenantBillingRepository.save(
        billing.model_copy(
            update={
                "current_plan_tier": PlanTier.BETA_FREE.value,
                "billing_status": BillingStatus.NONE.value,
                "stripe_subscription_id": None,
                "valid_until": None,
                "last_billing_event_at": utc_now(),
            }
        )
    )


@retry_on_db_lock()
def reset_billing_state(tenant_id: str | None = None) -> None:
    """Delete one tenant's billing row, or every row when tenant_id is None."""
    with db_transaction() as conn:
        if tenant_id is None:
            conn.execute("DELETE FROM tenant_billing")
        else:
            conn.execute("DELETE FROM tenant_billing WHERE tenant_id = ?", (tenant_id,))
