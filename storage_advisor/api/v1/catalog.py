"""Tier catalog API endpoints."""

from fastapi import APIRouter, HTTPException, Query, status

from storage_advisor.core.config import settings
from storage_advisor.models.storage import Redundancy, StorageClass
from storage_advisor.schemas.catalog import TierPrice
from storage_advisor.schemas.resource import TierSpec
from storage_advisor.services.tier_catalog import CatalogError, get_default_catalog

router = APIRouter()


@router.get("/tiers", response_model=list[TierSpec], summary="List storage tiers")
async def list_tiers(
    storage_class: StorageClass | None = Query(None, description="Filter by storage class"),
) -> list[TierSpec]:
    """List catalog tiers, grouped by storage class and capacity ascending."""
    catalog = get_default_catalog(settings.DEFAULT_PRICING_REGION)
    classes = [storage_class] if storage_class else list(StorageClass)
    return [tier for cls in classes for tier in catalog.tiers_of(cls)]


@router.get("/regions", response_model=list[str], summary="List priced regions")
async def list_regions() -> list[str]:
    """Regions with pricing entries (other regions fall back to the default)."""
    return sorted(get_default_catalog(settings.DEFAULT_PRICING_REGION).regions)


@router.get("/tiers/{tier_id}/price", response_model=TierPrice, summary="Get tier price")
async def get_tier_price(
    tier_id: str,
    region: str | None = Query(None, description="Azure region (default: default pricing region)"),
    redundancy: Redundancy = Query(Redundancy.LRS),
) -> TierPrice:
    """Get the regional unit price of a tier."""
    catalog = get_default_catalog(settings.DEFAULT_PRICING_REGION)
    try:
        tier = catalog.spec_of(tier_id)
        lookup = catalog.unit_price(tier_id, region or catalog.default_region, redundancy)
    except CatalogError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return TierPrice(
        tier=tier,
        region=lookup.region,
        redundancy=redundancy,
        unit_price=round(lookup.unit_price, 6),
        monthly_price=round(lookup.unit_price * tier.capacity_gb, 2),
        used_fallback=lookup.used_fallback,
    )
