"""
Scan credit endpoints.

Reads and image-scan charges are open to the dashboard; purchases, grants,
refunds and resets are admin-only (purchases are confirmed out of band).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from framelord.api.errors import bad_request
from framelord.api.middleware.auth import require_admin_auth
from framelord.credits.models import (
    CREDIT_PACKAGES,
    SCAN_CREDIT_COSTS,
    TEXT_SCAN_COST,
    CreditBalance,
    CreditPackage,
    CreditTransaction,
    get_cost_for_tier,
)
from framelord.credits.repository import CreditRepository

router = APIRouter(prefix="/api/credits", tags=["credits"])


# ============================================================================
# Request/Response Models
# ============================================================================


class BalanceResponse(BaseModel):
    balance: CreditBalance
    available: int


class UseCreditsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tier: str
    scan_report_id: str | None = Field(default=None, alias="scanReportId")


class PurchaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    package_id: str = Field(..., alias="packageId")


class AdjustRequest(BaseModel):
    amount: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=200)


def _balance_response(tenant_id: str) -> BalanceResponse:
    balance = CreditRepository.get_balance(tenant_id)
    return BalanceResponse(balance=balance, available=balance.available)


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/packages", response_model=list[CreditPackage])
async def list_packages() -> list[CreditPackage]:
    return CREDIT_PACKAGES


@router.get("/costs")
async def scan_costs() -> dict[str, Any]:
    return {"text": TEXT_SCAN_COST, "image": SCAN_CREDIT_COSTS}


@router.get("/{tenant_id}", response_model=BalanceResponse)
async def get_balance(tenant_id: str) -> BalanceResponse:
    return _balance_response(tenant_id)


@router.get("/{tenant_id}/transactions", response_model=list[CreditTransaction])
async def list_transactions(tenant_id: str) -> list[CreditTransaction]:
    return CreditRepository.list_transactions(tenant_id)


@router.post("/{tenant_id}/use", response_model=BalanceResponse)
async def use_credits(tenant_id: str, request: UseCreditsRequest) -> BalanceResponse:
    """Charge an image scan; 402 when the balance is too low."""
    try:
        cost = get_cost_for_tier(request.tier)
        charged = CreditRepository.use_credits_for_scan(
            tenant_id, request.tier, request.scan_report_id
        )
    except ValueError as e:
        raise bad_request(e) from None

    if not charged:
        raise HTTPException(
            status_code=402,
            detail=f"Insufficient credits: {request.tier} scan costs {cost}",
        )
    return _balance_response(tenant_id)


@router.post("/{tenant_id}/purchase", response_model=BalanceResponse)
async def purchase_credits(
    tenant_id: str,
    request: PurchaseRequest,
    authenticated: bool = Depends(require_admin_auth),
) -> BalanceResponse:
    if not CreditRepository.add_purchased_credits(tenant_id, request.package_id):
        raise HTTPException(status_code=400, detail=f"Unknown package: {request.package_id}")
    return _balance_response(tenant_id)


@router.post("/{tenant_id}/bonus", response_model=BalanceResponse)
async def grant_bonus(
    tenant_id: str,
    request: AdjustRequest,
    authenticated: bool = Depends(require_admin_auth),
) -> BalanceResponse:
    CreditRepository.add_bonus_credits(tenant_id, request.amount, request.reason)
    return _balance_response(tenant_id)


@router.post("/{tenant_id}/refund", response_model=BalanceResponse)
async def refund(
    tenant_id: str,
    request: AdjustRequest,
    authenticated: bool = Depends(require_admin_auth),
) -> BalanceResponse:
    CreditRepository.refund_credits(tenant_id, request.amount, request.reason)
    return _balance_response(tenant_id)


@router.delete("/{tenant_id}")
async def reset_credits(
    tenant_id: str,
    authenticated: bool = Depends(require_admin_auth),
) -> dict[str, Any]:
    CreditRepository.reset(tenant_id)
    return {"success": True, "tenant_id": tenant_id}
