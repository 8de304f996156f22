"""Tier catalog for Azure Managed Disks and Storage Account access tiers."""

from functools import lru_cache
from typing import Iterable, NamedTuple

import structlog

from storage_advisor.models.storage import Redundancy, StorageClass
from storage_advisor.schemas.resource import TierSpec

logger = structlog.get_logger()

DEFAULT_PRICING_REGION = "eastus"

# Transaction prices are quoted per batch of 10,000 operations
TRANSACTION_BATCH_SIZE = 10_000

# Storage account capacity ceiling: 5 PiB
STORAGE_ACCOUNT_MAX_GB = 5 * 1024 * 1024


class CatalogError(Exception):
    """Tier catalog or pricing table is missing a required entry."""

    pass


class PriceLookup(NamedTuple):
    """Unit price resolved for a (region, tier, redundancy) key."""

    unit_price: float
    region: str
    used_fallback: bool


def _disk_tier(
    tier_id: str,
    storage_class: StorageClass,
    capacity_gb: int,
    iops: int,
    mbps: int,
    monthly_price: float,
    burst_iops: int | None = None,
    burst_mbps: int | None = None,
) -> TierSpec:
    # Tiers without an explicit burst ceiling burst to their baseline
    return TierSpec(
        tier_id=tier_id,
        storage_class=storage_class,
        capacity_gb=capacity_gb,
        baseline_iops=iops,
        baseline_mbps=mbps,
        burst_iops=burst_iops if burst_iops is not None else iops,
        burst_mbps=burst_mbps if burst_mbps is not None else mbps,
        monthly_price=monthly_price,
    )


_P = StorageClass.PREMIUM_SSD
_E = StorageClass.STANDARD_SSD
_S = StorageClass.STANDARD_HDD

# Azure Managed Disk tiers, LRS list prices (US East, USD/month per disk).
# Premium SSD up to P20 bursts to 3,500 IOPS / 170 MB/s; P30 and above do not.
PREMIUM_SSD_TIERS = [
    _disk_tier("P1", _P, 4, 120, 25, 0.77, 3500, 170),
    _disk_tier("P2", _P, 8, 120, 25, 1.54, 3500, 170),
    _disk_tier("P3", _P, 16, 120, 25, 3.08, 3500, 170),
    _disk_tier("P4", _P, 32, 120, 25, 5.28, 3500, 170),
    _disk_tier("P6", _P, 64, 240, 50, 10.21, 3500, 170),
    _disk_tier("P10", _P, 128, 500, 100, 19.71, 3500, 170),
    _disk_tier("P15", _P, 256, 1100, 125, 37.95, 3500, 170),
    _disk_tier("P20", _P, 512, 2300, 150, 73.22, 3500, 170),
    _disk_tier("P30", _P, 1024, 5000, 200, 135.17),
    _disk_tier("P40", _P, 2048, 7500, 250, 259.05),
    _disk_tier("P50", _P, 4096, 7500, 250, 495.57),
    _disk_tier("P60", _P, 8192, 16000, 500, 946.08),
    _disk_tier("P70", _P, 16384, 18000, 750, 1802.11),
    _disk_tier("P80", _P, 32767, 20000, 900, 3604.22),
]

# Standard SSD bursts up to E30
STANDARD_SSD_TIERS = [
    _disk_tier("E1", _E, 4, 500, 60, 0.30, 600, 150),
    _disk_tier("E2", _E, 8, 500, 60, 0.60, 600, 150),
    _disk_tier("E3", _E, 16, 500, 60, 1.20, 600, 150),
    _disk_tier("E4", _E, 32, 500, 60, 2.40, 600, 150),
    _disk_tier("E6", _E, 64, 500, 60, 4.80, 600, 150),
    _disk_tier("E10", _E, 128, 500, 60, 9.60, 600, 150),
    _disk_tier("E15", _E, 256, 500, 60, 19.20, 600, 150),
    _disk_tier("E20", _E, 512, 500, 60, 38.40, 600, 150),
    _disk_tier("E30", _E, 1024, 500, 60, 76.80, 1000, 250),
    _disk_tier("E40", _E, 2048, 500, 60, 153.60),
    _disk_tier("E50", _E, 4096, 500, 60, 307.20),
    _disk_tier("E60", _E, 8192, 2000, 400, 614.40),
    _disk_tier("E70", _E, 16384, 4000, 600, 1228.80),
    _disk_tier("E80", _E, 32767, 6000, 750, 2457.60),
]

# Standard HDD never bursts
STANDARD_HDD_TIERS = [
    _disk_tier("S4", _S, 32, 500, 60, 1.54),
    _disk_tier("S6", _S, 64, 500, 60, 3.01),
    _disk_tier("S10", _S, 128, 500, 60, 5.89),
    _disk_tier("S15", _S, 256, 500, 60, 11.33),
    _disk_tier("S20", _S, 512, 500, 60, 21.76),
    _disk_tier("S30", _S, 1024, 500, 60, 40.96),
    _disk_tier("S40", _S, 2048, 500, 60, 77.83),
    _disk_tier("S50", _S, 4096, 500, 60, 143.36),
    _disk_tier("S60", _S, 8192, 1300, 300, 262.14),
    _disk_tier("S70", _S, 16384, 2000, 500, 524.29),
    _disk_tier("S80", _S, 32767, 2000, 500, 1048.58),
]

# Storage account access tiers. Capacity figures are per-account scalability
# targets (20,000 requests/sec, 60 Gbps egress); transaction prices are a
# blended read/write rate per 10,000 operations.
BLOB_TIERS = [
    TierSpec(
        tier_id="Hot",
        storage_class=StorageClass.BLOB,
        capacity_gb=STORAGE_ACCOUNT_MAX_GB,
        baseline_iops=20000,
        baseline_mbps=7680,
        burst_iops=20000,
        burst_mbps=7680,
        monthly_price=round(STORAGE_ACCOUNT_MAX_GB * 0.0184, 2),
        transaction_unit_price=0.05,
    ),
    TierSpec(
        tier_id="Cool",
        storage_class=StorageClass.BLOB,
        capacity_gb=STORAGE_ACCOUNT_MAX_GB,
        baseline_iops=20000,
        baseline_mbps=7680,
        burst_iops=20000,
        burst_mbps=7680,
        monthly_price=round(STORAGE_ACCOUNT_MAX_GB * 0.01, 2),
        transaction_unit_price=0.10,
    ),
    TierSpec(
        tier_id="Cold",
        storage_class=StorageClass.BLOB,
        capacity_gb=STORAGE_ACCOUNT_MAX_GB,
        baseline_iops=20000,
        baseline_mbps=7680,
        burst_iops=20000,
        burst_mbps=7680,
        monthly_price=round(STORAGE_ACCOUNT_MAX_GB * 0.0036, 2),
        transaction_unit_price=0.18,
    ),
    TierSpec(
        tier_id="Archive",
        storage_class=StorageClass.BLOB,
        capacity_gb=STORAGE_ACCOUNT_MAX_GB,
        baseline_iops=20000,
        baseline_mbps=7680,
        burst_iops=20000,
        burst_mbps=7680,
        monthly_price=round(STORAGE_ACCOUNT_MAX_GB * 0.00099, 2),
        transaction_unit_price=0.50,
    ),
]

# Blob storage USD/GB/month in US East by (access tier, redundancy).
# Archive has no zone-redundant option.
BLOB_BASE_PRICES: dict[tuple[str, Redundancy], float] = {
    ("Hot", Redundancy.LRS): 0.0184,
    ("Hot", Redundancy.ZRS): 0.023,
    ("Hot", Redundancy.GRS): 0.0368,
    ("Hot", Redundancy.RAGRS): 0.046,
    ("Hot", Redundancy.GZRS): 0.0414,
    ("Hot", Redundancy.RAGZRS): 0.0518,
    ("Cool", Redundancy.LRS): 0.01,
    ("Cool", Redundancy.ZRS): 0.0125,
    ("Cool", Redundancy.GRS): 0.02,
    ("Cool", Redundancy.RAGRS): 0.025,
    ("Cool", Redundancy.GZRS): 0.0225,
    ("Cool", Redundancy.RAGZRS): 0.0281,
    ("Cold", Redundancy.LRS): 0.0036,
    ("Cold", Redundancy.ZRS): 0.0045,
    ("Cold", Redundancy.GRS): 0.0072,
    ("Cold", Redundancy.RAGRS): 0.009,
    ("Cold", Redundancy.GZRS): 0.0081,
    ("Cold", Redundancy.RAGZRS): 0.0101,
    ("Archive", Redundancy.LRS): 0.00099,
    ("Archive", Redundancy.GRS): 0.00198,
    ("Archive", Redundancy.RAGRS): 0.00248,
}

# Zone-redundant managed disks (Premium_ZRS, StandardSSD_ZRS) cost ~20% more
DISK_REDUNDANCY_MULTIPLIERS = {
    Redundancy.LRS: 1.0,
    Redundancy.ZRS: 1.2,
}

# Regional price relative to US East
REGION_PRICE_MULTIPLIERS = {
    "eastus": 1.0,
    "eastus2": 1.0,
    "centralus": 1.0,
    "southcentralus": 1.0,
    "westus2": 1.0,
    "westus": 1.1,
    "northeurope": 1.02,
    "westeurope": 1.1,
    "uksouth": 1.08,
    "francecentral": 1.1,
    "germanywestcentral": 1.1,
    "southeastasia": 1.15,
    "japaneast": 1.2,
    "australiaeast": 1.2,
    "brazilsouth": 1.5,
}


def normalize_region(region: str) -> str:
    """Convert an Azure display name ('East US') to its programmatic form ('eastus')."""
    return region.replace(" ", "").lower()


class TierCatalog:
    """
    Read-only lookup of tier specifications and regional unit prices.

    Disk prices are keyed by (region, tier); storage account prices by
    (region, access tier, redundancy). A region without an entry falls back
    to the default pricing region and the lookup reports it.
    """

    def __init__(
        self,
        tiers: Iterable[TierSpec],
        disk_prices: dict[tuple[str, str], float],
        blob_prices: dict[tuple[str, str, Redundancy], float],
        default_region: str = DEFAULT_PRICING_REGION,
    ) -> None:
        tiers = list(tiers)
        by_id: dict[str, TierSpec] = {}
        for tier in tiers:
            key = tier.tier_id.lower()
            if key in by_id:
                raise CatalogError(f"Duplicate tier identifier '{tier.tier_id}' in catalog")
            by_id[key] = tier

        self._by_id = by_id
        self._by_class: dict[StorageClass, tuple[TierSpec, ...]] = {}
        for storage_class in StorageClass:
            members = [t for t in tiers if t.storage_class == storage_class]
            # sorted() is stable, so equal-capacity blob tiers keep their order
            self._by_class[storage_class] = tuple(sorted(members, key=lambda t: t.capacity_gb))

        self._disk_prices = dict(disk_prices)
        self._blob_prices = dict(blob_prices)
        self._regions = frozenset(r for r, _ in self._disk_prices) | frozenset(
            r for r, _, _ in self._blob_prices
        )
        self.default_region = normalize_region(default_region)
        if self.default_region not in self._regions:
            raise CatalogError(
                f"Default pricing region '{default_region}' has no pricing entries"
            )

    @classmethod
    def default(cls, default_region: str = DEFAULT_PRICING_REGION) -> "TierCatalog":
        """Build the catalog from the built-in Azure tier and price tables."""
        disk_tiers = PREMIUM_SSD_TIERS + STANDARD_SSD_TIERS + STANDARD_HDD_TIERS
        disk_prices = {
            (region, tier.tier_id): round(tier.monthly_price * multiplier, 2)
            for region, multiplier in REGION_PRICE_MULTIPLIERS.items()
            for tier in disk_tiers
        }
        blob_prices = {
            (region, tier_id, redundancy): round(price * multiplier, 5)
            for region, multiplier in REGION_PRICE_MULTIPLIERS.items()
            for (tier_id, redundancy), price in BLOB_BASE_PRICES.items()
        }
        return cls(disk_tiers + BLOB_TIERS, disk_prices, blob_prices, default_region)

    @property
    def regions(self) -> frozenset[str]:
        return self._regions

    def tiers_of(self, storage_class: StorageClass) -> tuple[TierSpec, ...]:
        """All tiers of a class, capacity ascending."""
        return self._by_class[storage_class]

    def spec_of(self, tier_id: str) -> TierSpec:
        """
        Get the specification of a tier.

        Raises:
            CatalogError: If the tier is not in the catalog
        """
        tier = self._by_id.get(tier_id.lower())
        if tier is None:
            raise CatalogError(f"Unknown tier '{tier_id}'")
        return tier

    def tier_for(self, size_gb: float, storage_class: StorageClass) -> str:
        """
        Smallest tier of the class whose capacity ceiling covers size_gb.

        Sizes beyond the largest tier map to the largest tier.
        """
        tiers = self._by_class[storage_class]
        if not tiers:
            raise CatalogError(f"No tiers defined for storage class '{storage_class.value}'")
        for tier in tiers:
            if tier.capacity_gb >= size_gb:
                return tier.tier_id
        return tiers[-1].tier_id

    def resolve_region(self, region: str) -> tuple[str, bool]:
        """Return (pricing region, used_fallback) for a resource region."""
        normalized = normalize_region(region)
        if normalized in self._regions:
            return normalized, False
        logger.warning(
            "catalog.region_fallback",
            region=region,
            pricing_region=self.default_region,
        )
        return self.default_region, True

    def unit_price(
        self,
        tier_id: str,
        region: str,
        redundancy: Redundancy = Redundancy.LRS,
    ) -> PriceLookup:
        """
        Price per GB per month for a tier in a region.

        Raises:
            CatalogError: If the tier is unknown or the pricing table has no
                entry for the (tier, redundancy) combination
        """
        tier = self.spec_of(tier_id)
        pricing_region, used_fallback = self.resolve_region(region)

        if tier.storage_class == StorageClass.BLOB:
            price = self._blob_prices.get((pricing_region, tier.tier_id, redundancy))
            if price is None:
                raise CatalogError(
                    f"No price for access tier '{tier.tier_id}' with {redundancy.value} "
                    f"redundancy in region '{pricing_region}'"
                )
            return PriceLookup(price, pricing_region, used_fallback)

        multiplier = DISK_REDUNDANCY_MULTIPLIERS.get(redundancy)
        if multiplier is None:
            raise CatalogError(
                f"Managed disks do not support {redundancy.value} redundancy (tier '{tier.tier_id}')"
            )
        disk_price = self._disk_prices.get((pricing_region, tier.tier_id))
        if disk_price is None:
            raise CatalogError(
                f"No price for disk tier '{tier.tier_id}' in region '{pricing_region}'"
            )
        return PriceLookup(disk_price * multiplier / tier.capacity_gb, pricing_region, used_fallback)


@lru_cache(maxsize=None)
def get_default_catalog(default_region: str = DEFAULT_PRICING_REGION) -> TierCatalog:
    """Shared read-only catalog instance."""
    return TierCatalog.default(default_region)
