"""Storage domain enumerations shared by the engine, providers and API."""

from enum import Enum


class ResourceKind(str, Enum):
    """Billable storage resource kind."""

    MANAGED_DISK = "managed_disk"
    STORAGE_ACCOUNT = "storage_account"


class StorageClass(str, Enum):
    """Tier family a catalog entry belongs to."""

    PREMIUM_SSD = "premium_ssd"  # P1-P80
    STANDARD_SSD = "standard_ssd"  # E1-E80
    STANDARD_HDD = "standard_hdd"  # S4-S80
    BLOB = "blob"  # Hot / Cool / Archive access tiers


class PowerState(str, Enum):
    """Power state of the VM a disk is attached to."""

    RUNNING = "running"
    STOPPED = "stopped"
    DEALLOCATED = "deallocated"
    NOT_APPLICABLE = "N/A"  # Unattached disk or state unknown

    @property
    def is_powered_off(self) -> bool:
        return self in (PowerState.STOPPED, PowerState.DEALLOCATED)


class Redundancy(str, Enum):
    """Replication scheme of a disk or storage account."""

    LRS = "LRS"
    ZRS = "ZRS"
    GRS = "GRS"
    RAGRS = "RAGRS"
    GZRS = "GZRS"
    RAGZRS = "RAGZRS"

    @property
    def is_geo_redundant(self) -> bool:
        return self in (Redundancy.GRS, Redundancy.RAGRS, Redundancy.GZRS, Redundancy.RAGZRS)


class EstimationBasis(str, Enum):
    """Where the numbers in a usage sample came from."""

    MEASURED = "measured"
    UNATTACHED = "unattached"
    HOST_STOPPED = "host_stopped"
    TELEMETRY_UNAVAILABLE = "telemetry_unavailable"


class RecommendationKind(str, Enum):
    """Action proposed for a resource."""

    # Managed disks (exactly one per disk)
    DECOMMISSION_CANDIDATE = "decommission_candidate"
    DOWNGRADE_TO_CAPACITY_TIER = "downgrade_to_capacity_tier"
    DOWNGRADE = "downgrade"
    RETAIN_NO_LOWER_TIER = "retain_no_lower_tier"
    RETAIN = "retain"

    # Storage accounts (independent axes, several per account)
    ACCESS_TIER_CHANGE = "access_tier_change"
    REDUNDANCY_DOWNGRADE = "redundancy_downgrade"
    LIFECYCLE_POLICY = "lifecycle_policy"
    RESERVED_CAPACITY = "reserved_capacity"
    TAGGING = "tagging"
    SECURITY = "security"


class CostSource(str, Enum):
    """Origin of a resource's current monthly cost."""

    BILLING = "billing"
    ESTIMATE = "estimate"


class RunStatus(str, Enum):
    """Outcome of an analysis run."""

    COMPLETED = "completed"  # At least one saving found
    NO_OPPORTUNITIES = "no_opportunities"  # Resources analyzed, nothing to save
    NO_DATA = "no_data"  # No resource could be analyzed at all
