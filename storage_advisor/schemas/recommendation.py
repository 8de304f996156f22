"""Recommendation and summary Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, Field

from storage_advisor.models.storage import CostSource, RecommendationKind, ResourceKind


class Recommendation(BaseModel):
    """One proposed action for one resource."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    account_name: str | None = None
    resource_group: str | None = None
    resource_id: str
    resource_name: str
    resource_kind: ResourceKind
    region: str
    kind: RecommendationKind
    current_tier: str
    target_tier: str | None = Field(default=None, description="None means no change")
    current_monthly_cost: float = Field(ge=0)
    projected_monthly_cost: float = Field(ge=0)
    monthly_savings: float = Field(ge=0)
    reason: str
    baseline_utilization_percent: float | None = None
    burst_utilization_percent: float | None = None
    usage_measured: bool = False
    data_points_collected: int = 0
    cost_source: CostSource = CostSource.ESTIMATE
    pricing_region: str
    pricing_fallback: bool = False

    @property
    def annual_savings(self) -> float:
        return round(self.monthly_savings * 12, 2)


class GroupSummary(BaseModel):
    """Cost and savings totals for one group of recommendations."""

    key: str
    count: int
    resource_count: int
    current_monthly_cost: float
    projected_monthly_cost: float
    monthly_savings: float
    savings_percentage: float


class AnalysisSummary(BaseModel):
    """Aggregated view over a full list of recommendations."""

    total_resources: int
    total_recommendations: int
    measured_resources: int
    estimated_resources: int
    total_current_cost: float
    total_projected_cost: float
    total_savings: float
    savings_percentage: float
    by_account: dict[str, GroupSummary]
    by_kind: dict[str, GroupSummary]
