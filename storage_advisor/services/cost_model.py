"""Monthly cost model for current and candidate storage tiers."""

from typing import NamedTuple

from storage_advisor.models.storage import Redundancy, StorageClass
from storage_advisor.services.tier_catalog import TRANSACTION_BATCH_SIZE, TierCatalog


class CostEstimate(NamedTuple):
    """Projected monthly cost and how it was priced."""

    amount: float
    storage_cost: float
    transaction_cost: float
    pricing_region: str
    used_fallback: bool


class CostModel:
    """
    Service for pricing a storage resource at a given tier.

    Storage cost is size x unit price of (tier, region, redundancy). Tiers
    with transaction pricing add transactions / 10,000 x transaction price.
    Unknown regions are priced in the catalog's default region and reported
    through CostEstimate.used_fallback rather than raised.
    """

    def __init__(self, catalog: TierCatalog) -> None:
        """
        Initialize cost model.

        Args:
            catalog: Read-only tier catalog holding the pricing tables
        """
        self.catalog = catalog

    def cost_of(
        self,
        tier_id: str,
        size_gb: float,
        transaction_count: float = 0.0,
        region: str | None = None,
        redundancy: Redundancy = Redundancy.LRS,
    ) -> CostEstimate:
        """
        Calculate monthly cost of a resource at a tier.

        Args:
            tier_id: Catalog tier identifier (e.g. 'P10', 'Hot')
            size_gb: Provisioned (disks) or used (storage accounts) capacity
            transaction_count: Transactions per month
            region: Region to price in (None = default pricing region)
            redundancy: Replication scheme

        Returns:
            CostEstimate rounded to cents

        Raises:
            CatalogError: If the tier or its pricing entry does not exist
        """
        lookup = self.catalog.unit_price(
            tier_id, region or self.catalog.default_region, redundancy
        )
        storage_cost = size_gb * lookup.unit_price

        transaction_cost = 0.0
        tier = self.catalog.spec_of(tier_id)
        if tier.storage_class == StorageClass.BLOB and tier.transaction_unit_price:
            transaction_cost = (
                transaction_count / TRANSACTION_BATCH_SIZE * tier.transaction_unit_price
            )

        return CostEstimate(
            amount=round(storage_cost + transaction_cost, 2),
            storage_cost=round(storage_cost, 2),
            transaction_cost=round(transaction_cost, 2),
            pricing_region=lookup.region,
            used_fallback=lookup.used_fallback,
        )

    @staticmethod
    def savings(current_cost: float, projected_cost: float) -> float:
        """Monthly savings, never negative."""
        return round(max(0.0, current_cost - projected_cost), 2)
