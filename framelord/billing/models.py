"""
Billing domain models.

TenantBilling mirrors the Stripe subscription state we keep per tenant.
WebhookResult is what the webhook router reports back for each event.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from framelord.billing.plans import PlanTier


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


class BillingStatus(str, Enum):
    """Subscription status; NONE means the tenant never subscribed."""

    NONE = "none"
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAUSED = "paused"


class TenantBilling(BaseModel):
    """Billing state for one tenant."""

    model_config = ConfigDict(use_enum_values=True)

    tenant_id: str = Field(..., description="Tenant identifier")
    stripe_customer_id: str | None = Field(default=None, description="Stripe customer (cus_...)")
    stripe_subscription_id: str | None = Field(
        default=None, description="Stripe subscription (sub_...)"
    )
    current_plan_tier: PlanTier = Field(default=PlanTier.BETA_FREE)
    billing_status: BillingStatus = Field(default=BillingStatus.NONE)
    valid_until: datetime | None = Field(
        default=None, description="End of the paid period (set on cancel / renewal)"
    )
    subscribed_at: datetime | None = Field(default=None)
    last_billing_event_at: datetime | None = Field(default=None)

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "stripe_customer_id": self.stripe_customer_id,
            "stripe_subscription_id": self.stripe_subscription_id,
            "current_plan_tier": self.current_plan_tier,
            "billing_status": self.billing_status,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
            "subscribed_at": self.subscribed_at.isoformat() if self.subscribed_at else None,
            "last_billing_event_at": (
                self.last_billing_event_at.isoformat() if self.last_billing_event_at else None
            ),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> TenantBilling:
        def _dt(value: str | None) -> datetime | None:
            return datetime.fromisoformat(value) if value else None

        return cls(
            tenant_id=row["tenant_id"],
            stripe_customer_id=row.get("stripe_customer_id"),
            stripe_subscription_id=row.get("stripe_subscription_id"),
            current_plan_tier=row.get("current_plan_tier") or PlanTier.BETA_FREE,
            billing_status=row.get("billing_status") or BillingStatus.NONE,
            valid_until=_dt(row.get("valid_until")),
            subscribed_at=_dt(row.get("subscribed_at")),
            last_billing_event_at=_dt(row.get("last_billing_event_at")),
        )


class WebhookResult(BaseModel):
    """Outcome of routing one Stripe event."""

    success: bool
    event_id: str
    event_type: str
    error: str | None = None
    duplicate: bool = False
