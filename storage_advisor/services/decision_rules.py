"""Decision rules turning usage and pricing into recommendations.

Managed disks get exactly one recommendation from an ordered policy (first
matching rule wins). Storage accounts are checked along independent axes
(access tier, redundancy, lifecycle, reservation, tagging, security) and may
carry several recommendations at once.
"""

from storage_advisor.models.storage import (
    CostSource,
    RecommendationKind,
    Redundancy,
    ResourceKind,
    StorageClass,
)
from storage_advisor.schemas.analysis import AnalysisThresholds
from storage_advisor.schemas.recommendation import Recommendation
from storage_advisor.schemas.resource import ResourceDescriptor, TierSpec, UsageSample
from storage_advisor.services.cost_model import CostEstimate, CostModel
from storage_advisor.services.tier_catalog import CatalogError, TierCatalog

# Geo-redundant schemes and the cheapest scheme keeping their zone guarantees
REDUNDANCY_DOWNGRADES = {
    Redundancy.GRS: Redundancy.LRS,
    Redundancy.RAGRS: Redundancy.LRS,
    Redundancy.GZRS: Redundancy.ZRS,
    Redundancy.RAGZRS: Redundancy.ZRS,
}

CRITICAL_TAG_KEYS = ("critical", "criticality", "high-availability", "ha", "sla")
WEAK_TLS_VERSIONS = ("TLS1_0", "TLS1_1")


def _percent(value: float, capacity: float) -> float:
    if capacity <= 0:
        return 0.0
    return value / capacity * 100


class _RuleContext:
    """Per-resource values shared by every rule."""

    def __init__(
        self,
        resource: ResourceDescriptor,
        usage: UsageSample,
        tier: TierSpec,
        estimate: CostEstimate,
        actual_cost: float | None,
    ) -> None:
        self.resource = resource
        self.usage = usage
        self.tier = tier
        self.estimate = estimate
        if actual_cost is not None:
            # Refunds and credits can make a billed month net-negative
            self.current_cost = max(0.0, round(actual_cost, 2))
            self.cost_source = CostSource.BILLING
        else:
            self.current_cost = estimate.amount
            self.cost_source = CostSource.ESTIMATE
        self.baseline_utilization = _percent(usage.avg_iops, tier.baseline_iops)
        self.burst_utilization = _percent(usage.peak_iops, tier.burst_iops)

    def build(
        self,
        kind: RecommendationKind,
        reason: str,
        target_tier: str | None = None,
        projected_cost: float | None = None,
    ) -> Recommendation:
        projected = self.current_cost if projected_cost is None else round(projected_cost, 2)
        if not self.usage.is_measured:
            reason = f"{reason} [usage estimated: {self.usage.basis.value}]"
        return Recommendation(
            account_id=self.resource.account_id,
            account_name=self.resource.account_name,
            resource_group=self.resource.resource_group,
            resource_id=self.resource.resource_id,
            resource_name=self.resource.resource_name,
            resource_kind=self.resource.kind,
            region=self.resource.region,
            kind=kind,
            current_tier=self.tier.tier_id,
            target_tier=target_tier,
            current_monthly_cost=self.current_cost,
            projected_monthly_cost=projected,
            monthly_savings=CostModel.savings(self.current_cost, projected),
            reason=reason,
            baseline_utilization_percent=round(self.baseline_utilization, 2),
            burst_utilization_percent=round(self.burst_utilization, 2),
            usage_measured=self.usage.is_measured,
            data_points_collected=self.usage.data_points_collected,
            cost_source=self.cost_source,
            pricing_region=self.estimate.pricing_region,
            pricing_fallback=self.estimate.used_fallback,
        )


class DiskDecisionRules:
    """
    Ordered policy for Azure Managed Disks.

    1. Unattached -> decommission candidate (saves the full current cost)
    2. Attached to a powered-off VM -> smallest capacity-class tier covering
       the provisioned size, ignoring performance
    3. Baseline utilization below threshold -> first capacity-class tier (by
       size) covering size, peak IOPS and peak throughput, or an explicit
       "no suitable lower tier"
    4. Otherwise retain
    """

    def __init__(
        self,
        catalog: TierCatalog,
        cost_model: CostModel,
        thresholds: AnalysisThresholds,
    ) -> None:
        self.catalog = catalog
        self.cost_model = cost_model
        self.thresholds = thresholds

    def evaluate(
        self,
        resource: ResourceDescriptor,
        usage: UsageSample,
        actual_cost: float | None = None,
    ) -> Recommendation:
        tier = self.catalog.spec_of(resource.current_tier)
        if tier.storage_class == StorageClass.BLOB:
            raise CatalogError(
                f"Tier '{tier.tier_id}' is a storage account access tier, not a disk tier"
            )
        region = self.thresholds.pricing_region_for(resource.region)
        estimate = self.cost_model.cost_of(
            tier.tier_id, resource.size_gb, 0.0, region, resource.redundancy
        )
        ctx = _RuleContext(resource, usage, tier, estimate, actual_cost)

        if not resource.is_attached:
            return ctx.build(
                RecommendationKind.DECOMMISSION_CANDIDATE,
                f"Disk is not attached to any VM; deleting it (after a snapshot if needed) "
                f"saves ${ctx.current_cost:.2f}/month",
                projected_cost=0.0,
            )

        if resource.power_state.is_powered_off:
            return self._powered_off(ctx, region)

        threshold = self.thresholds.utilization_threshold_percent
        if ctx.baseline_utilization < threshold:
            return self._underutilized(ctx, region, threshold)

        return ctx.build(
            RecommendationKind.RETAIN,
            f"Baseline IOPS utilization {ctx.baseline_utilization:.2f}% of {tier.tier_id} "
            f"({tier.baseline_iops:.0f} IOPS) meets the {threshold:.0f}% threshold; "
            f"burst utilization {ctx.burst_utilization:.2f}%",
        )

    def _candidate_cost(self, tier_id: str, ctx: _RuleContext, region: str) -> float:
        return self.cost_model.cost_of(
            tier_id, ctx.resource.size_gb, 0.0, region, ctx.resource.redundancy
        ).amount

    def _powered_off(self, ctx: _RuleContext, region: str) -> Recommendation:
        capacity_class = self.thresholds.capacity_disk_class
        target_id = self.catalog.tier_for(ctx.resource.size_gb, capacity_class)
        target_cost = self._candidate_cost(target_id, ctx, region)
        state = ctx.resource.power_state.value

        if target_id == ctx.tier.tier_id or target_cost >= ctx.current_cost:
            return ctx.build(
                RecommendationKind.RETAIN_NO_LOWER_TIER,
                f"VM is {state} but {target_id} (${target_cost:.2f}/month) is not cheaper "
                f"than the current {ctx.tier.tier_id} (${ctx.current_cost:.2f}/month)",
            )

        return ctx.build(
            RecommendationKind.DOWNGRADE_TO_CAPACITY_TIER,
            f"VM is {state}; a stopped host needs no IOPS, move {ctx.resource.size_gb:.0f} GB "
            f"from {ctx.tier.tier_id} to {target_id} "
            f"(${ctx.current_cost:.2f} -> ${target_cost:.2f}/month)",
            target_tier=target_id,
            projected_cost=target_cost,
        )

    def _underutilized(self, ctx: _RuleContext, region: str, threshold: float) -> Recommendation:
        usage = ctx.usage
        size_gb = ctx.resource.size_gb
        utilization = (
            f"Baseline IOPS utilization {ctx.baseline_utilization:.2f}% is below the "
            f"{threshold:.0f}% threshold (burst {ctx.burst_utilization:.2f}%)"
        )

        candidate: TierSpec | None = None
        for tier in self.catalog.tiers_of(self.thresholds.capacity_disk_class):
            if (
                tier.capacity_gb >= size_gb
                and tier.baseline_iops >= usage.peak_iops
                and tier.baseline_mbps >= usage.peak_throughput_mbps
            ):
                candidate = tier
                break

        if candidate is None:
            return ctx.build(
                RecommendationKind.RETAIN_NO_LOWER_TIER,
                f"{utilization}, but no {self.thresholds.capacity_disk_class.value} tier covers "
                f"{size_gb:.0f} GB with peak {usage.peak_iops:.0f} IOPS / "
                f"{usage.peak_throughput_mbps:.1f} MB/s",
            )

        candidate_cost = self._candidate_cost(candidate.tier_id, ctx, region)
        if candidate.tier_id == ctx.tier.tier_id or candidate_cost >= ctx.current_cost:
            return ctx.build(
                RecommendationKind.RETAIN_NO_LOWER_TIER,
                f"{utilization}, but the smallest suitable tier {candidate.tier_id} "
                f"(${candidate_cost:.2f}/month) is not cheaper than {ctx.tier.tier_id}",
            )

        return ctx.build(
            RecommendationKind.DOWNGRADE,
            f"{utilization}. {candidate.tier_id} ({candidate.baseline_iops:.0f} IOPS, "
            f"{candidate.baseline_mbps:.0f} MB/s) covers peak demand of "
            f"{usage.peak_iops:.0f} IOPS / {usage.peak_throughput_mbps:.1f} MB/s",
            target_tier=candidate.tier_id,
            projected_cost=candidate_cost,
        )


class StorageAccountRules:
    """
    Independent checks for Azure Storage Accounts.

    An empty, idle account gets a single decommission recommendation. Otherwise
    each axis that fires contributes its own entry; an account where nothing
    fires gets a single retain entry.
    """

    def __init__(
        self,
        catalog: TierCatalog,
        cost_model: CostModel,
        thresholds: AnalysisThresholds,
    ) -> None:
        self.catalog = catalog
        self.cost_model = cost_model
        self.thresholds = thresholds

    def evaluate(
        self,
        resource: ResourceDescriptor,
        usage: UsageSample,
        actual_cost: float | None = None,
    ) -> list[Recommendation]:
        tier = self.catalog.spec_of(resource.current_tier)
        if tier.storage_class != StorageClass.BLOB:
            raise CatalogError(
                f"Tier '{tier.tier_id}' is a disk tier, not a storage account access tier"
            )
        region = self.thresholds.pricing_region_for(resource.region)
        used_gb = usage.used_capacity_gb if usage.used_capacity_gb is not None else resource.size_gb
        # Estimated transaction volumes are not billed
        transactions = usage.transaction_count if usage.is_measured else 0.0

        estimate = self.cost_model.cost_of(
            tier.tier_id, used_gb, transactions, region, resource.redundancy
        )
        ctx = _RuleContext(resource, usage, tier, estimate, actual_cost)

        if (
            usage.is_measured
            and used_gb < self.thresholds.low_usage_capacity_gb
            and usage.transaction_count == 0
        ):
            return [
                ctx.build(
                    RecommendationKind.DECOMMISSION_CANDIDATE,
                    f"Storage account holds {used_gb:.2f} GB and served no transactions "
                    f"in {self.thresholds.window_days} days",
                    projected_cost=0.0,
                )
            ]

        recommendations = [
            rec
            for rec in (
                self._access_tier(ctx, used_gb, transactions, region),
                self._redundancy(ctx, used_gb, transactions, region),
                self._lifecycle(ctx, used_gb),
                self._reserved_capacity(ctx, used_gb),
                self._tagging(ctx),
                self._security(ctx),
            )
            if rec is not None
        ]
        if recommendations:
            return recommendations

        return [
            ctx.build(
                RecommendationKind.RETAIN,
                f"{tier.tier_id} {resource.redundancy.value} account with {used_gb:.2f} GB "
                f"and {usage.transaction_count:.0f} transactions/month; no optimization found",
            )
        ]

    def _access_tier(
        self, ctx: _RuleContext, used_gb: float, transactions: float, region: str
    ) -> Recommendation | None:
        if ctx.tier.tier_id != "Hot" or not ctx.usage.is_measured or used_gb <= 0:
            return None

        per_gb = ctx.usage.transaction_count / used_gb
        limit = self.thresholds.cool_tier_max_transactions_per_gb
        if per_gb >= limit:
            return None

        cool_cost = self.cost_model.cost_of(
            "Cool", used_gb, transactions, region, ctx.resource.redundancy
        ).amount
        if cool_cost >= ctx.current_cost:
            return None

        return ctx.build(
            RecommendationKind.ACCESS_TIER_CHANGE,
            f"{per_gb:.2f} transactions/GB/month is below {limit:.2f}; "
            f"Cool tier costs ${cool_cost:.2f}/month for {used_gb:.2f} GB",
            target_tier="Cool",
            projected_cost=cool_cost,
        )

    def _is_critical(self, resource: ResourceDescriptor) -> bool:
        critical_values = {v.lower() for v in self.thresholds.critical_tag_values}
        for key, value in resource.tags.items():
            key_l = key.lower()
            value_l = (value or "").lower()
            if value_l in critical_values:
                return True
            if key_l in CRITICAL_TAG_KEYS and value_l in ("true", "yes", "1"):
                return True
        return False

    def _redundancy(
        self, ctx: _RuleContext, used_gb: float, transactions: float, region: str
    ) -> Recommendation | None:
        current = ctx.resource.redundancy
        if not current.is_geo_redundant or self._is_critical(ctx.resource):
            return None

        target = REDUNDANCY_DOWNGRADES[current]
        if target == Redundancy.ZRS and ctx.tier.tier_id == "Archive":
            target = Redundancy.LRS

        target_cost = self.cost_model.cost_of(
            ctx.tier.tier_id, used_gb, transactions, region, target
        ).amount
        if target_cost >= ctx.current_cost:
            return None

        return ctx.build(
            RecommendationKind.REDUNDANCY_DOWNGRADE,
            f"{current.value} replication without a critical/high-availability tag; "
            f"{target.value} costs ${target_cost:.2f}/month",
            target_tier=f"Standard_{target.value}",
            projected_cost=target_cost,
        )

    def _lifecycle(self, ctx: _RuleContext, used_gb: float) -> Recommendation | None:
        if ctx.resource.has_lifecycle_policy is not False:
            return None
        if used_gb <= self.thresholds.lifecycle_policy_min_gb:
            return None
        return ctx.build(
            RecommendationKind.LIFECYCLE_POLICY,
            f"No lifecycle management policy on {used_gb:.2f} GB "
            f"(above {self.thresholds.lifecycle_policy_min_gb:.0f} GB); add rules to move "
            f"aging blobs to Cool/Archive",
        )

    def _reserved_capacity(self, ctx: _RuleContext, used_gb: float) -> Recommendation | None:
        storage_cost = ctx.estimate.storage_cost
        if used_gb < self.thresholds.reserved_capacity_min_gb:
            return None
        if storage_cost < self.thresholds.reserved_capacity_min_monthly_cost:
            return None

        savings = storage_cost * self.thresholds.reserved_capacity_discount
        return ctx.build(
            RecommendationKind.RESERVED_CAPACITY,
            f"{used_gb:.0f} GB at ${storage_cost:.2f}/month storage qualifies for reserved "
            f"capacity ({self.thresholds.reserved_capacity_discount:.0%} one-year discount)",
            projected_cost=max(0.0, ctx.current_cost - savings),
        )

    def _tagging(self, ctx: _RuleContext) -> Recommendation | None:
        present = {key.lower() for key in ctx.resource.tags}
        missing = [tag for tag in self.thresholds.required_tags if tag.lower() not in present]
        if not missing:
            return None
        return ctx.build(
            RecommendationKind.TAGGING,
            f"Missing required tags: {', '.join(missing)}",
        )

    def _security(self, ctx: _RuleContext) -> Recommendation | None:
        resource = ctx.resource
        issues = []
        if resource.https_only is False:
            issues.append("HTTPS-only transfer is disabled")
        if resource.min_tls_version in WEAK_TLS_VERSIONS:
            issues.append(f"minimum TLS version is {resource.min_tls_version}")
        if resource.allow_blob_public_access is True:
            issues.append("public blob access is allowed")
        if not issues:
            return None
        return ctx.build(RecommendationKind.SECURITY, "Security posture: " + "; ".join(issues))


class RecommendationEngine:
    """Dispatches each resource to the rule set of its kind."""

    def __init__(
        self,
        catalog: TierCatalog,
        cost_model: CostModel,
        thresholds: AnalysisThresholds,
    ) -> None:
        self.disk_rules = DiskDecisionRules(catalog, cost_model, thresholds)
        self.storage_account_rules = StorageAccountRules(catalog, cost_model, thresholds)

    def evaluate(
        self,
        resource: ResourceDescriptor,
        usage: UsageSample,
        actual_cost: float | None = None,
    ) -> list[Recommendation]:
        if resource.kind == ResourceKind.STORAGE_ACCOUNT:
            return self.storage_account_rules.evaluate(resource, usage, actual_cost)
        return [self.disk_rules.evaluate(resource, usage, actual_cost)]
