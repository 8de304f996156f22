"""Unit tests for managed disk decision rules."""

import pytest

from storage_advisor.models.storage import (
    CostSource,
    EstimationBasis,
    PowerState,
    RecommendationKind,
    StorageClass,
)
from storage_advisor.schemas.analysis import AnalysisThresholds
from storage_advisor.schemas.resource import UsageSample
from storage_advisor.services.decision_rules import DiskDecisionRules, RecommendationEngine
from storage_advisor.services.tier_catalog import CatalogError


def _usage(avg_iops: float, peak_iops: float, peak_mbps: float = 4.0, points: int = 96) -> UsageSample:
    return UsageSample(
        avg_read_iops=avg_iops / 2,
        avg_write_iops=avg_iops / 2,
        avg_iops=avg_iops,
        peak_iops=peak_iops,
        avg_throughput_mbps=peak_mbps / 2,
        peak_throughput_mbps=peak_mbps,
        data_points_collected=points,
        basis=EstimationBasis.MEASURED if points else EstimationBasis.TELEMETRY_UNAVAILABLE,
    )


@pytest.fixture
def rules(catalog, cost_model, thresholds) -> DiskDecisionRules:
    return DiskDecisionRules(catalog, cost_model, thresholds)


class TestUnderutilizedDisks:
    """Test suite for the underutilization rule."""

    def test_underutilized_premium_downgrades_to_hdd(self, rules, make_disk):
        """Test that a P10 disk at 10% baseline utilization moves to S10."""
        rec = rules.evaluate(make_disk(), _usage(50, 100))

        assert rec.kind == RecommendationKind.DOWNGRADE
        assert rec.current_tier == "P10"
        assert rec.target_tier == "S10"
        assert rec.current_monthly_cost == 15.40
        assert rec.projected_monthly_cost == 4.60
        assert rec.monthly_savings == 10.80
        assert rec.baseline_utilization_percent == 10.0
        assert rec.cost_source == CostSource.ESTIMATE
        assert rec.usage_measured is True
        assert "S10" in rec.reason

    def test_billed_cost_replaces_estimate(self, rules, make_disk):
        """Test that a known billed cost is used as the current cost."""
        disk = make_disk(current_tier="P20", size_gb=512)

        rec = rules.evaluate(disk, _usage(200, 400, peak_mbps=10), actual_cost=73.60)

        assert rec.kind == RecommendationKind.DOWNGRADE
        assert rec.target_tier == "S20"
        assert rec.cost_source == CostSource.BILLING
        assert rec.current_monthly_cost == 73.60
        assert rec.projected_monthly_cost == 21.76
        assert rec.monthly_savings == 51.84

    def test_candidate_must_cover_peak_iops(self, rules, make_disk):
        """Test that a candidate tier must sustain the observed peak IOPS."""
        disk = make_disk(current_tier="P30", size_gb=1024)

        rec = rules.evaluate(disk, _usage(1000, 1200, peak_mbps=50))

        assert rec.kind == RecommendationKind.DOWNGRADE
        assert rec.target_tier == "S60"
        assert rec.projected_monthly_cost < rec.current_monthly_cost

    def test_no_tier_covers_peak(self, rules, make_disk):
        """Test that peak demand above every capacity tier retains the disk."""
        disk = make_disk(current_tier="P30", size_gb=1024)

        rec = rules.evaluate(disk, _usage(1000, 2500, peak_mbps=50))

        assert rec.kind == RecommendationKind.RETAIN_NO_LOWER_TIER
        assert rec.target_tier is None
        assert rec.monthly_savings == 0.0
        assert "no standard_hdd tier covers" in rec.reason

    def test_already_on_capacity_tier(self, rules, make_disk):
        """Test that an underutilized disk already on the cheapest tier is retained."""
        disk = make_disk(current_tier="S10", size_gb=100)

        rec = rules.evaluate(disk, _usage(10, 20))

        assert rec.kind == RecommendationKind.RETAIN_NO_LOWER_TIER
        assert rec.projected_monthly_cost == rec.current_monthly_cost

    def test_well_utilized_disk_retained(self, rules, make_disk):
        """Test that utilization at or above the threshold retains the disk."""
        rec = rules.evaluate(make_disk(), _usage(400, 900))

        assert rec.kind == RecommendationKind.RETAIN
        assert rec.monthly_savings == 0.0
        assert rec.baseline_utilization_percent == 80.0
        assert rec.burst_utilization_percent == pytest.approx(900 / 3500 * 100, abs=0.01)

    def test_threshold_is_configurable(self, catalog, cost_model, make_disk):
        """Test that a lower threshold retains a disk the default would downgrade."""
        strict = DiskDecisionRules(
            catalog, cost_model, AnalysisThresholds(utilization_threshold_percent=5)
        )

        rec = strict.evaluate(make_disk(), _usage(50, 100))

        assert rec.kind == RecommendationKind.RETAIN

    def test_utilization_just_below_threshold_downgrades(self, rules, make_disk):
        """Test that 29.998% utilization is compared unrounded against a 30% threshold."""
        rec = rules.evaluate(make_disk(), _usage(149.99, 200))

        assert rec.kind == RecommendationKind.DOWNGRADE
        assert rec.target_tier == "S10"
        assert rec.baseline_utilization_percent == 30.0


class TestHostState:
    """Test suite for attachment and power-state rules."""

    def test_unattached_disk_is_decommission_candidate(self, rules, make_disk):
        """Test that an unattached disk saves its whole cost."""
        disk = make_disk(attached_vm_id=None, power_state=PowerState.NOT_APPLICABLE)
        usage = UsageSample(basis=EstimationBasis.UNATTACHED)

        rec = rules.evaluate(disk, usage)

        assert rec.kind == RecommendationKind.DECOMMISSION_CANDIDATE
        assert rec.projected_monthly_cost == 0.0
        assert rec.monthly_savings == rec.current_monthly_cost == 15.40
        assert rec.usage_measured is False
        assert rec.reason.endswith("[usage estimated: unattached]")

    def test_unattached_disk_saves_billed_cost(self, rules, make_disk):
        """Test that an unattached disk with a billed cost saves exactly that cost."""
        disk = make_disk(attached_vm_id=None, power_state=PowerState.NOT_APPLICABLE)

        rec = rules.evaluate(disk, UsageSample(basis=EstimationBasis.UNATTACHED), actual_cost=73.60)

        assert rec.kind == RecommendationKind.DECOMMISSION_CANDIDATE
        assert rec.cost_source == CostSource.BILLING
        assert rec.current_monthly_cost == 73.60
        assert rec.monthly_savings == 73.60

    def test_negative_billed_cost_clamped_to_zero(self, rules, make_disk):
        """Test that a billed month net of credits below zero is treated as free."""
        disk = make_disk(attached_vm_id=None, power_state=PowerState.NOT_APPLICABLE)

        rec = rules.evaluate(disk, UsageSample(basis=EstimationBasis.UNATTACHED), actual_cost=-4.25)

        assert rec.kind == RecommendationKind.DECOMMISSION_CANDIDATE
        assert rec.current_monthly_cost == 0.0
        assert rec.monthly_savings == 0.0

    @pytest.mark.parametrize("state", [PowerState.STOPPED, PowerState.DEALLOCATED])
    def test_stopped_host_moves_to_capacity_tier(self, rules, make_disk, state):
        """Test that a P20 disk on a stopped VM moves to S20 regardless of IOPS."""
        disk = make_disk(current_tier="P20", size_gb=512, power_state=state)

        rec = rules.evaluate(disk, _usage(2000, 3000))

        assert rec.kind == RecommendationKind.DOWNGRADE_TO_CAPACITY_TIER
        assert rec.target_tier == "S20"
        assert rec.current_monthly_cost == 73.22
        assert rec.projected_monthly_cost == 21.76
        assert rec.monthly_savings == 51.46

    def test_stopped_host_on_hdd_is_retained(self, rules, make_disk):
        """Test that a stopped disk already on its capacity tier is retained."""
        disk = make_disk(current_tier="S20", size_gb=512, power_state=PowerState.STOPPED)

        rec = rules.evaluate(disk, _usage(0, 0))

        assert rec.kind == RecommendationKind.RETAIN_NO_LOWER_TIER

    def test_capacity_class_standard_ssd(self, catalog, cost_model, make_disk):
        """Test that the capacity class can be switched to Standard SSD."""
        ssd_rules = DiskDecisionRules(
            catalog,
            cost_model,
            AnalysisThresholds(capacity_disk_class=StorageClass.STANDARD_SSD),
        )
        disk = make_disk(current_tier="P20", size_gb=512, power_state=PowerState.DEALLOCATED)

        rec = ssd_rules.evaluate(disk, _usage(0, 0))

        assert rec.target_tier == "E20"
        assert rec.projected_monthly_cost == 38.40


class TestPricingRegion:
    """Test suite for region handling in disk recommendations."""

    def test_unknown_region_reports_fallback(self, rules, make_disk):
        """Test that an unpriced region is priced in the default region and flagged."""
        rec = rules.evaluate(make_disk(region="marsnorth"), _usage(50, 100))

        assert rec.pricing_region == "eastus"
        assert rec.pricing_fallback is True
        assert rec.region == "marsnorth"
        assert rec.monthly_savings == 10.80

    def test_target_region_overrides_resource_region(self, catalog, cost_model, make_disk):
        """Test that a fixed target region prices every resource there."""
        rules = DiskDecisionRules(
            catalog, cost_model, AnalysisThresholds(target_region="westeurope")
        )

        rec = rules.evaluate(make_disk(region="eastus"), _usage(50, 100))

        assert rec.pricing_region == "westeurope"
        assert rec.pricing_fallback is False
        assert rec.current_monthly_cost > 15.40


class TestRuleInvariants:
    """Test suite for properties every disk recommendation holds."""

    def test_blob_tier_on_disk_raises(self, rules, make_disk):
        """Test that a storage account tier on a disk is a catalog error."""
        with pytest.raises(CatalogError, match="not a disk tier"):
            rules.evaluate(make_disk(current_tier="Hot"), _usage(50, 100))

    def test_unknown_tier_raises(self, rules, make_disk):
        """Test that an uncatalogued tier is a catalog error."""
        with pytest.raises(CatalogError):
            rules.evaluate(make_disk(current_tier="P99"), _usage(50, 100))

    def test_evaluation_is_idempotent(self, rules, make_disk):
        """Test that the same inputs give the same recommendation."""
        disk = make_disk(current_tier="P20", size_gb=400)
        usage = _usage(120, 350)

        assert rules.evaluate(disk, usage) == rules.evaluate(disk, usage)

    @pytest.mark.parametrize("tier_id,size_gb", [("P10", 100), ("P20", 500), ("P40", 2000), ("E30", 1000)])
    @pytest.mark.parametrize("avg_iops", [0, 25, 150, 600, 4000])
    def test_savings_bounded_by_current_cost(self, rules, make_disk, tier_id, size_gb, avg_iops):
        """Test that savings are never negative and never exceed the current cost."""
        rec = rules.evaluate(
            make_disk(current_tier=tier_id, size_gb=size_gb), _usage(avg_iops, avg_iops * 2)
        )

        assert 0 <= rec.monthly_savings <= rec.current_monthly_cost
        assert rec.projected_monthly_cost <= rec.current_monthly_cost
        assert rec.monthly_savings == pytest.approx(
            rec.current_monthly_cost - rec.projected_monthly_cost, abs=0.011
        )


class TestRecommendationEngine:
    """Test suite for dispatch by resource kind."""

    def test_disk_yields_single_recommendation(self, catalog, cost_model, thresholds, make_disk):
        """Test that a managed disk always gets exactly one recommendation."""
        engine = RecommendationEngine(catalog, cost_model, thresholds)

        recs = engine.evaluate(make_disk(), _usage(50, 100))

        assert len(recs) == 1
        assert recs[0].kind == RecommendationKind.DOWNGRADE

    def test_account_dispatched_to_account_rules(self, catalog, cost_model, thresholds, make_account):
        """Test that storage accounts are evaluated by the account rules."""
        engine = RecommendationEngine(catalog, cost_model, thresholds)
        usage = UsageSample(used_capacity_gb=50, transaction_count=100_000, data_points_collected=60)

        recs = engine.evaluate(make_account(), usage)

        assert all(r.resource_kind.value == "storage_account" for r in recs)
