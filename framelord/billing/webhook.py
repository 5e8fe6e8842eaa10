"""
Stripe webhook event router.

handle_stripe_event() takes a verified, parsed Stripe event, skips ids already
handled within the idempotency window, routes by event type into the tenant
billing repository and records each handled event in the system log.

Events are marked processed only after the handler succeeds, so a failure is
retried by Stripe's redelivery.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from framelord.billing import repository
from framelord.billing.models import BillingStatus, WebhookResult
from framelord.billing.plans import PlanTier, is_production_tier, plan_for_price_id
from framelord.billing.repository import TenantBillingRepository
from framelord.crm.system_log import SystemLogRepository, log_billing_notification
from framelord.infrastructure import idempotency
from framelord.observability.logging import get_logger
from framelord.observability.telemetry import counter, log_event

logger = get_logger(__name__)

_KNOWN_STATUSES = {status.value for status in BillingStatus} - {BillingStatus.NONE.value}

PAYMENT_FAILED_TITLE = "Payment Failed"
PAYMENT_FAILED_MESSAGE = "Your payment could not be processed. Please update your payment method."


class WebhookHandlingError(ValueError):
    """The event is well-formed but cannot be applied (missing fields, unknown tenant)."""


def map_stripe_status(status: str | None) -> str:
    """Stripe subscription status -> BillingStatus value; unknown maps to active."""
    if status in _KNOWN_STATUSES:
        return status
    return BillingStatus.ACTIVE.value


def _epoch_to_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=UTC)


def _price_id(obj: dict[str, Any]) -> str | None:
    items = (obj.get("items") or {}).get("data") or []
    if not items:
        return None
    return ((items[0] or {}).get("price") or {}).get("id")


def _resolve_tenant(obj: dict[str, Any]) -> str | None:
    """metadata.tenantId, else the tenant that owns the subscription or customer."""
    tenant_id = (obj.get("metadata") or {}).get("tenantId")
    if tenant_id:
        return tenant_id

    subscription = obj.get("subscription")
    if isinstance(subscription, str):
        tenant_id = TenantBillingRepository.find_tenant_by_subscription(subscription)
        if tenant_id:
            return tenant_id

    if str(obj.get("id", "")).startswith("sub_"):
        tenant_id = TenantBillingRepository.find_tenant_by_subscription(obj["id"])
        if tenant_id:
            return tenant_id

    return TenantBillingRepository.find_tenant_by_customer(obj.get("customer"))


def _require_tenant(obj: dict[str, Any], event_type: str) -> str:
    tenant_id = _resolve_tenant(obj)
    if not tenant_id:
        raise WebhookHandlingError(f"{event_type}: cannot identify tenant")
    return tenant_id


def _log_billing_event(event: str, tenant_id: str | None, **details: Any) -> None:
    SystemLogRepository.add_entry(
        "system",
        f"Billing: {event}",
        json.dumps({"tenantId": tenant_id, **details}, default=str),
        tenant_id=tenant_id,
    )
    log_event(f"billing.{event}", tenant_id=tenant_id)


def _handle_checkout_completed(obj: dict[str, Any]) -> None:
    metadata = obj.get("metadata") or {}
    tenant_id = metadata.get("tenantId")
    customer = obj.get("customer")
    subscription = obj.get("subscription")

    if not tenant_id or not customer or not subscription:
        raise WebhookHandlingError(
            "checkout.session.completed missing tenantId, customer or subscription"
        )

    plan = metadata.get("plan")
    plan_tier = plan if plan and is_production_tier(plan) else PlanTier.BASIC.value

    repository.update_billing_from_checkout(
        tenant_id, customer, subscription, plan_tier, BillingStatus.ACTIVE.value
    )
    _log_billing_event(
        "checkout_completed",
        tenant_id,
        planTier=plan_tier,
        customerId=customer,
        subscriptionId=subscription,
    )


def _handle_subscription_created(obj: dict[str, Any]) -> None:
    tenant_id = _require_tenant(obj, "customer.subscription.created")
    status = map_stripe_status(obj.get("status"))
    plan_tier = plan_for_price_id(_price_id(obj))

    repository.update_subscription_status(tenant_id, status)
    if plan_tier:
        repository.update_plan_tier(tenant_id, plan_tier)

    _log_billing_event("subscription_created", tenant_id, status=status, planTier=plan_tier)


def _handle_subscription_updated(obj: dict[str, Any]) -> None:
    tenant_id = _require_tenant(obj, "customer.subscription.updated")
    status = map_stripe_status(obj.get("status"))
    plan_tier = plan_for_price_id(_price_id(obj))
    valid_until = _epoch_to_datetime(obj.get("current_period_end"))

    if obj.get("cancel_at_period_end") and status == BillingStatus.ACTIVE.value:
        repository.handle_subscription_canceled(
            tenant_id, valid_until or datetime.now(UTC)
        )
        _log_billing_event("subscription_canceled_scheduled", tenant_id, validUntil=valid_until)
        return

    repository.update_subscription_status(tenant_id, status, valid_until)
    if plan_tier:
        repository.update_plan_tier(tenant_id, plan_tier)

    _log_billing_event("subscription_updated", tenant_id, status=status, planTier=plan_tier)


def _handle_subscription_deleted(obj: dict[str, Any]) -> None:
    tenant_id = _require_tenant(obj, "customer.subscription.deleted")
    repository.downgrade_to_free_tier(tenant_id)
    _log_billing_event("subscription_deleted", tenant_id)


def _handle_payment_failed(obj: dict[str, Any]) -> None:
    tenant_id = _require_tenant(obj, "invoice.payment_failed")
    repository.update_subscription_status(tenant_id, BillingStatus.PAST_DUE.value)
    _log_billing_event("payment_failed", tenant_id, customerId=obj.get("customer"))
    log_billing_notification(
        PAYMENT_FAILED_TITLE, PAYMENT_FAILED_MESSAGE, severity="urgent", tenant_id=tenant_id
    )


def _handle_invoice_paid(obj: dict[str, Any]) -> None:
    # Not every invoice belongs to one of our subscriptions
    tenant_id = _resolve_tenant(obj)
    if not tenant_id:
        return
    repository.update_subscription_status(tenant_id, BillingStatus.ACTIVE.value)
    _log_billing_event("payment_succeeded", tenant_id)


EVENT_HANDLERS: dict[str, Callable[[dict[str, Any]], None]] = {
    "checkout.session.completed": _handle_checkout_completed,
    "customer.subscription.created": _handle_subscription_created,
    "customer.subscription.updated": _handle_subscription_updated,
    "customer.subscription.deleted": _handle_subscription_deleted,
    "invoice.payment_failed": _handle_payment_failed,
    "invoice.paid": _handle_invoice_paid,
}


def handle_stripe_event(event: dict[str, Any]) -> WebhookResult:
    """
    Route one Stripe event.

    Args:
        event: Parsed event ({id, type, data: {object}})

    Returns:
        WebhookResult; success=False carries the error message

    Side Effects:
        - Updates tenant_billing via the repository
        - Writes system_log entries
        - Records the event id in processed_webhooks on success
    """
    event_id = str(event.get("id") or "")
    event_type = str(event.get("type") or "")

    if not event_id or not event_type:
        counter("webhook.malformed")
        return WebhookResult(
            success=False,
            event_id=event_id,
            event_type=event_type,
            error="Event missing id or type",
        )

    if idempotency.is_processed(event_id):
        logger.info("Stripe event %s already processed", event_id)
        return WebhookResult(
            success=True, event_id=event_id, event_type=event_type, duplicate=True
        )

    handler = EVENT_HANDLERS.get(event_type)

    logger.info("Processing Stripe event %s (%s)", event_type, event_id)
    try:
        if handler is None:
            logger.info("Unhandled Stripe event type: %s", event_type)
            counter("webhook.unhandled")
        else:
            handler((event.get("data") or {}).get("object") or {})
    except WebhookHandlingError as e:
        counter("webhook.failed")
        logger.warning("Stripe event %s rejected: %s", event_id, e)
        return WebhookResult(
            success=False, event_id=event_id, event_type=event_type, error=str(e)
        )
    except Exception as e:
        # Malformed payload fields; report it and let Stripe redeliver
        counter("webhook.failed")
        logger.exception("Stripe event %s failed", event_id)
        return WebhookResult(
            success=False,
            event_id=event_id,
            event_type=event_type,
            error=f"Failed to process {event_type}: {e}",
        )

    idempotency.mark_processed(event_id, event_type)
    counter("webhook.processed")
    return WebhookResult(success=True, event_id=event_id, event_type=event_type)
