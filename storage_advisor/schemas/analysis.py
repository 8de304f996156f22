"""Analysis run Pydantic schemas (thresholds, results, API payloads)."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from storage_advisor.core.config import Settings, settings
from storage_advisor.models.storage import RunStatus, StorageClass
from storage_advisor.schemas.recommendation import AnalysisSummary, Recommendation
from storage_advisor.schemas.resource import ResourceDescriptor, TimeSeries


class AnalysisThresholds(BaseModel):
    """Immutable thresholds applied to every resource of one run."""

    model_config = ConfigDict(frozen=True)

    window_days: int = Field(default=30, ge=1, le=90)
    utilization_threshold_percent: float = Field(default=30.0, gt=0, le=100)
    low_usage_capacity_gb: float = Field(default=10.0, ge=0)
    target_region: str = "auto"
    capacity_disk_class: StorageClass = StorageClass.STANDARD_HDD
    cool_tier_max_transactions_per_gb: float = 10.0
    lifecycle_policy_min_gb: float = 100.0
    reserved_capacity_min_gb: float = 102400.0
    reserved_capacity_min_monthly_cost: float = 1000.0
    reserved_capacity_discount: float = Field(default=0.17, ge=0, lt=1)
    required_tags: tuple[str, ...] = ("owner", "environment", "cost-center")
    critical_tag_values: tuple[str, ...] = (
        "critical",
        "high",
        "high-availability",
        "mission-critical",
    )

    @classmethod
    def from_settings(cls, config: Settings = settings, **overrides: Any) -> "AnalysisThresholds":
        """Build thresholds from application settings, applying per-run overrides."""
        values: dict[str, Any] = {
            "window_days": config.ANALYSIS_WINDOW_DAYS,
            "utilization_threshold_percent": config.UTILIZATION_THRESHOLD_PERCENT,
            "low_usage_capacity_gb": config.LOW_USAGE_CAPACITY_GB,
            "target_region": config.TARGET_REGION,
            "capacity_disk_class": StorageClass(config.CAPACITY_DISK_CLASS),
            "cool_tier_max_transactions_per_gb": config.COOL_TIER_MAX_TRANSACTIONS_PER_GB,
            "lifecycle_policy_min_gb": config.LIFECYCLE_POLICY_MIN_GB,
            "reserved_capacity_min_gb": config.RESERVED_CAPACITY_MIN_GB,
            "reserved_capacity_min_monthly_cost": config.RESERVED_CAPACITY_MIN_MONTHLY_COST,
            "reserved_capacity_discount": config.RESERVED_CAPACITY_DISCOUNT,
            "required_tags": tuple(config.REQUIRED_TAGS),
            "critical_tag_values": tuple(config.CRITICAL_TAG_VALUES),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def pricing_region_for(self, resource_region: str) -> str:
        """Region to price a resource in ("auto" keeps the resource's own region)."""
        if self.target_region == "auto":
            return resource_region
        return self.target_region


class ScopeWarning(BaseModel):
    """A subscription that could not be enumerated."""

    scope: str
    message: str


class ResourceError(BaseModel):
    """A resource whose evaluation failed; the run continued without it."""

    resource_id: str
    scope: str
    message: str


class AnalysisResult(BaseModel):
    """Complete output of one analysis run."""

    status: RunStatus
    scopes_analyzed: list[str]
    recommendations: list[Recommendation]
    summary: AnalysisSummary
    scope_warnings: list[ScopeWarning] = Field(default_factory=list)
    resource_errors: list[ResourceError] = Field(default_factory=list)


# API payloads


class ResourceInput(BaseModel):
    """A resource plus the raw telemetry and billing data known for it."""

    resource: ResourceDescriptor
    metrics: list[TimeSeries] = Field(default_factory=list)
    actual_monthly_cost: float | None = Field(default=None, ge=0)


class EvaluateRequest(BaseModel):
    """Offline evaluation of caller-supplied resources."""

    resources: list[ResourceInput]
    window_days: int | None = Field(default=None, ge=1, le=90)
    utilization_threshold_percent: float | None = Field(default=None, gt=0, le=100)
    target_region: str | None = None


class AnalysisRequest(BaseModel):
    """Live analysis of Azure subscriptions (runs in the background worker)."""

    subscription_ids: list[str] = Field(min_length=1)
    window_days: int | None = Field(default=None, ge=1, le=90)
    utilization_threshold_percent: float | None = Field(default=None, gt=0, le=100)
    target_region: str | None = None


class AnalysisTaskResponse(BaseModel):
    """Status of a background analysis task."""

    status: str = Field(..., description="pending, running, success, error")
    task_id: str
    message: str
    result: AnalysisResult | None = None
