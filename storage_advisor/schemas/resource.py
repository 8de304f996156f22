"""Resource, tier and usage Pydantic schemas."""

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, computed_field

from storage_advisor.models.storage import (
    EstimationBasis,
    PowerState,
    Redundancy,
    ResourceKind,
    StorageClass,
)


class ResourceDescriptor(BaseModel):
    """Snapshot of one billable storage resource for a single analysis run."""

    model_config = ConfigDict(frozen=True)

    account_id: str = Field(description="Subscription ID")
    account_name: str | None = Field(default=None, description="Subscription display name")
    resource_group: str | None = Field(default=None, description="Resource group name")
    resource_id: str = Field(description="Full Azure resource ID")
    resource_name: str
    region: str
    kind: ResourceKind = ResourceKind.MANAGED_DISK
    current_tier: str = Field(description="Tier identifier (e.g. P10, S20, Hot)")
    redundancy: Redundancy = Redundancy.LRS
    size_gb: float = Field(ge=0, description="Provisioned size (disks) or last known used capacity (accounts)")
    attached_vm_id: str | None = Field(default=None, description="VM ID if attached")
    power_state: PowerState = PowerState.NOT_APPLICABLE
    created_at: datetime | None = None
    tags: dict[str, str] = Field(default_factory=dict)

    # Storage account properties
    has_lifecycle_policy: bool | None = None
    https_only: bool | None = None
    min_tls_version: str | None = None
    allow_blob_public_access: bool | None = None

    @property
    def is_attached(self) -> bool:
        return self.attached_vm_id is not None


class TierSpec(BaseModel):
    """Capacity, performance and price attributes of one selectable tier."""

    model_config = ConfigDict(frozen=True)

    tier_id: str
    storage_class: StorageClass
    capacity_gb: float = Field(description="Capacity ceiling")
    baseline_iops: float = Field(description="Sustained IOPS (transactions/sec for blob tiers)")
    baseline_mbps: float
    burst_iops: float
    burst_mbps: float
    monthly_price: float = Field(description="Monthly list price in the default pricing region")
    transaction_unit_price: float = Field(default=0.0, description="USD per 10,000 transactions")

    @computed_field
    @property
    def can_burst(self) -> bool:
        return self.burst_iops > self.baseline_iops


class AnalysisWindow(BaseModel):
    """Time range metrics are aggregated over."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @classmethod
    def last_days(cls, days: int, now: datetime | None = None) -> "AnalysisWindow":
        end = now or datetime.now(timezone.utc)
        return cls(start=end - timedelta(days=days), end=end)

    @property
    def days(self) -> float:
        return (self.end - self.start).total_seconds() / 86400

    @property
    def seconds(self) -> float:
        return (self.end - self.start).total_seconds()


class TimeSeries(BaseModel):
    """Aggregated data points returned by a metrics provider for one metric."""

    model_config = ConfigDict(frozen=True)

    metric_name: str
    averages: list[float] = Field(default_factory=list)
    maximums: list[float] = Field(default_factory=list)
    totals: list[float] = Field(default_factory=list)

    @property
    def data_points(self) -> int:
        return max(len(self.averages), len(self.maximums), len(self.totals))


class UsageSample(BaseModel):
    """Observed or estimated usage of one resource over the analysis window."""

    model_config = ConfigDict(frozen=True)

    avg_read_iops: float = 0.0
    avg_write_iops: float = 0.0
    avg_iops: float = 0.0
    peak_iops: float = 0.0
    avg_throughput_mbps: float = 0.0
    peak_throughput_mbps: float = 0.0
    transaction_count: float = 0.0
    ingress_gb: float = 0.0
    egress_gb: float = 0.0
    used_capacity_gb: float | None = None
    data_points_collected: int = 0
    basis: EstimationBasis = EstimationBasis.MEASURED

    @property
    def is_measured(self) -> bool:
        return self.data_points_collected > 0
