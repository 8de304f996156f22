"""Tier catalog Pydantic schemas."""

from pydantic import BaseModel, Field

from storage_advisor.models.storage import Redundancy
from storage_advisor.schemas.resource import TierSpec


class TierPrice(BaseModel):
    """Regional price of a tier."""

    tier: TierSpec
    region: str = Field(..., description="Region the price was taken from")
    redundancy: Redundancy
    unit_price: float = Field(..., description="USD per GB per month")
    monthly_price: float = Field(..., description="USD per month at full tier capacity")
    used_fallback: bool = Field(
        ..., description="True when the requested region had no prices and the default was used"
    )
