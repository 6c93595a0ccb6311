"""Subscription plan model managed by admins."""

from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator

from .base import BaseDocumentModel, Money
from .enums import PlanDuration


class PlanFeatures(BaseModel):
    """Feature flags bundled with a plan."""

    unlimited_loans: bool = Field(default=True)
    advanced_analytics: bool = Field(default=False)
    priority_support: bool = Field(default=False)

    @field_validator("unlimited_loans")
    @classmethod
    def _always_unlimited(cls, value: bool) -> bool:
        return True


class PlanModel(BaseDocumentModel):
    """A purchasable subscription tier that unlocks loan creation."""

    plan_id: str = Field(..., min_length=3)
    plan_name: str = Field(..., min_length=2)
    description: str = Field(default="")
    duration: PlanDuration
    price_monthly: Money = Field(..., gt=0)
    plan_features: PlanFeatures = Field(default_factory=PlanFeatures)
    is_active: bool = Field(default=True)

    def identity_key(self) -> Dict[str, Any]:
        """Fields that together make a plan unique."""
        return {
            "plan_name": self.plan_name.lower(),
            "price_monthly": self.price_monthly,
            "plan_features": self.plan_features.model_dump(),
        }
