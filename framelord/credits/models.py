"""
Scan credit models, packages and costs.

Text scans are free. Image scans cost credits by tier: basic is free,
detailed (with annotations) costs 5.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

STARTING_CREDITS = 10


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


class ScanTier(str, Enum):
    BASIC = "basic"
    DETAILED = "detailed"


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    USE = "use"
    BONUS = "bonus"
    REFUND = "refund"


SCAN_CREDIT_COSTS: dict[str, int] = {
    ScanTier.BASIC.value: 0,
    ScanTier.DETAILED.value: 5,
}

TEXT_SCAN_COST = 0


class CreditPackage(BaseModel):
    id: str
    name: str
    credits: int
    price: int = Field(..., description="Price in cents")
    currency: str = "usd"
    popular: bool = False


CREDIT_PACKAGES: list[CreditPackage] = [
    CreditPackage(id="pkg_starter", name="Starter Pack", credits=10, price=499),
    CreditPackage(id="pkg_standard", name="Standard Pack", credits=30, price=999, popular=True),
    CreditPackage(id="pkg_pro", name="Pro Pack", credits=100, price=2499),
    CreditPackage(id="pkg_unlimited", name="Unlimited Monthly", credits=999999, price=4999),
]


def get_package(package_id: str) -> CreditPackage | None:
    return next((pkg for pkg in CREDIT_PACKAGES if pkg.id == package_id), None)


def get_cost_for_tier(tier: str) -> int:
    """Credit cost of an image scan tier; unknown tiers raise ValueError."""
    try:
        return SCAN_CREDIT_COSTS[tier]
    except KeyError as e:
        raise ValueError(f"Unknown scan tier: {tier}") from e


class CreditBalance(BaseModel):
    tenant_id: str
    credits: int = STARTING_CREDITS
    bonus_credits: int = 0
    total_purchased: int = 0
    total_used: int = 0
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def available(self) -> int:
        return self.credits + self.bonus_credits

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "credits": self.credits,
            "bonus_credits": self.bonus_credits,
            "total_purchased": self.total_purchased,
            "total_used": self.total_used,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> CreditBalance:
        return cls(
            tenant_id=row["tenant_id"],
            credits=row["credits"],
            bonus_credits=row["bonus_credits"],
            total_purchased=row["total_purchased"],
            total_used=row["total_used"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class CreditTransaction(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str
    tenant_id: str
    type: TransactionType
    amount: int = Field(..., description="Signed credit delta")
    description: str
    scan_report_id: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "type": self.type,
            "amount": self.amount,
            "description": self.description,
            "scan_report_id": self.scan_report_id,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> CreditTransaction:
        return cls(
            id=row["id"],
            tenant_id=row["tenant_id"],
            type=row["type"],
            amount=row["amount"],
            description=row["description"],
            scan_report_id=row.get("scan_report_id"),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
