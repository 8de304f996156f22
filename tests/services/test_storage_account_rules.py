"""Unit tests for storage account decision rules."""

import pytest

from storage_advisor.models.storage import CostSource, EstimationBasis, RecommendationKind, Redundancy
from storage_advisor.schemas.resource import UsageSample
from storage_advisor.services.decision_rules import StorageAccountRules
from storage_advisor.services.tier_catalog import CatalogError


def _usage(used_gb: float, transactions: float, points: int = 60) -> UsageSample:
    return UsageSample(
        used_capacity_gb=used_gb,
        transaction_count=transactions,
        avg_iops=transactions / (30 * 86400),
        peak_iops=2 * transactions / (30 * 86400),
        data_points_collected=points,
        basis=EstimationBasis.MEASURED if points else EstimationBasis.TELEMETRY_UNAVAILABLE,
    )


def _kinds(recs) -> list[RecommendationKind]:
    return [r.kind for r in recs]


@pytest.fixture
def rules(catalog, cost_model, thresholds) -> StorageAccountRules:
    return StorageAccountRules(catalog, cost_model, thresholds)


class TestDecommission:
    """Test suite for empty, idle storage accounts."""

    def test_empty_idle_account_is_decommission_candidate(self, rules, make_account):
        """Test that an almost empty account without transactions gets one decommission entry."""
        account = make_account(tags={})

        recs = rules.evaluate(account, _usage(2, 0))

        assert _kinds(recs) == [RecommendationKind.DECOMMISSION_CANDIDATE]
        assert recs[0].projected_monthly_cost == 0.0
        assert recs[0].monthly_savings == recs[0].current_monthly_cost

    def test_estimated_usage_never_decommissions(self, rules, make_account):
        """Test that an account without telemetry is not proposed for deletion."""
        recs = rules.evaluate(make_account(size_gb=2), _usage(2, 0, points=0))

        assert RecommendationKind.DECOMMISSION_CANDIDATE not in _kinds(recs)

    def test_active_small_account_kept(self, rules, make_account):
        """Test that a small account that still serves requests is not decommissioned."""
        recs = rules.evaluate(make_account(), _usage(2, 500_000))

        assert RecommendationKind.DECOMMISSION_CANDIDATE not in _kinds(recs)


class TestAccessTier:
    """Test suite for the Hot to Cool access tier check."""

    def test_rarely_accessed_hot_account_moves_to_cool(self, rules, make_account):
        """Test that few transactions per GB recommend the Cool tier."""
        recs = rules.evaluate(make_account(), _usage(1000, 2000))

        assert _kinds(recs) == [RecommendationKind.ACCESS_TIER_CHANGE]
        rec = recs[0]
        assert rec.current_tier == "Hot"
        assert rec.target_tier == "Cool"
        assert rec.current_monthly_cost == 18.41
        assert rec.projected_monthly_cost == 10.02
        assert rec.monthly_savings == 8.39

    def test_busy_hot_account_retained(self, rules, make_account):
        """Test that a frequently accessed account stays Hot."""
        recs = rules.evaluate(make_account(), _usage(1000, 50_000_000))

        assert _kinds(recs) == [RecommendationKind.RETAIN]
        assert recs[0].monthly_savings == 0.0

    def test_cool_account_not_moved(self, rules, make_account):
        """Test that only Hot accounts are candidates for the access tier change."""
        recs = rules.evaluate(make_account(current_tier="Cool"), _usage(1000, 2000))

        assert RecommendationKind.ACCESS_TIER_CHANGE not in _kinds(recs)


class TestRedundancy:
    """Test suite for geo-redundancy downgrades."""

    def test_grs_without_critical_tag_moves_to_lrs(self, rules, make_account):
        """Test that GRS on a non-critical account recommends LRS."""
        account = make_account(redundancy=Redundancy.GRS)

        recs = rules.evaluate(account, _usage(1000, 50_000_000))

        assert _kinds(recs) == [RecommendationKind.REDUNDANCY_DOWNGRADE]
        rec = recs[0]
        assert rec.target_tier == "Standard_LRS"
        assert rec.current_monthly_cost == 286.80
        assert rec.projected_monthly_cost == 268.40
        assert rec.monthly_savings == 18.40

    def test_gzrs_keeps_zone_redundancy(self, rules, make_account):
        """Test that GZRS downgrades to ZRS rather than LRS."""
        account = make_account(redundancy=Redundancy.GZRS)

        recs = rules.evaluate(account, _usage(1000, 50_000_000))

        assert recs[0].target_tier == "Standard_ZRS"

    @pytest.mark.parametrize(
        "tags",
        [
            {"criticality": "High"},
            {"tier": "mission-critical"},
            {"critical": "true"},
        ],
    )
    def test_critical_account_keeps_geo_redundancy(self, rules, make_account, tags):
        """Test that a critical or high-availability tag suppresses the downgrade."""
        base_tags = {"owner": "a", "environment": "prod", "cost-center": "1"}
        account = make_account(redundancy=Redundancy.RAGRS, tags={**base_tags, **tags})

        recs = rules.evaluate(account, _usage(1000, 50_000_000))

        assert RecommendationKind.REDUNDANCY_DOWNGRADE not in _kinds(recs)


class TestGovernanceAxes:
    """Test suite for lifecycle, reservation, tagging and security checks."""

    def test_missing_lifecycle_policy(self, rules, make_account):
        """Test that a large account without a lifecycle policy is flagged."""
        recs = rules.evaluate(make_account(has_lifecycle_policy=False), _usage(500, 50_000_000))

        assert _kinds(recs) == [RecommendationKind.LIFECYCLE_POLICY]
        assert recs[0].monthly_savings == 0.0

    def test_unknown_lifecycle_policy_not_flagged(self, rules, make_account):
        """Test that an unknown policy state is not reported as missing."""
        recs = rules.evaluate(make_account(has_lifecycle_policy=None), _usage(500, 50_000_000))

        assert RecommendationKind.LIFECYCLE_POLICY not in _kinds(recs)

    def test_reserved_capacity_for_large_accounts(self, rules, make_account):
        """Test that a large, expensive account qualifies for reserved capacity."""
        recs = rules.evaluate(make_account(), _usage(200_000, 10_000_000))

        assert _kinds(recs) == [RecommendationKind.RESERVED_CAPACITY]
        rec = recs[0]
        assert rec.current_monthly_cost == 3730.00
        assert rec.monthly_savings == 625.60
        assert rec.projected_monthly_cost == 3104.40

    def test_missing_tags_case_insensitive(self, rules, make_account):
        """Test that required tags are matched case-insensitively."""
        tagged = make_account(tags={"Owner": "a", "ENVIRONMENT": "dev", "Cost-Center": "1"})
        untagged = make_account(tags={"owner": "a"})

        assert RecommendationKind.TAGGING not in _kinds(rules.evaluate(tagged, _usage(50, 5_000)))
        recs = rules.evaluate(untagged, _usage(50, 5_000))
        tagging = [r for r in recs if r.kind == RecommendationKind.TAGGING]
        assert len(tagging) == 1
        assert tagging[0].reason == "Missing required tags: environment, cost-center"

    def test_security_issues_combined(self, rules, make_account):
        """Test that security findings are reported in one entry."""
        account = make_account(
            https_only=False, min_tls_version="TLS1_0", allow_blob_public_access=True
        )

        recs = rules.evaluate(account, _usage(50, 5_000))

        security = [r for r in recs if r.kind == RecommendationKind.SECURITY]
        assert len(security) == 1
        assert "HTTPS-only transfer is disabled" in security[0].reason
        assert "TLS1_0" in security[0].reason
        assert "public blob access" in security[0].reason


class TestAccountInvariants:
    """Test suite for properties of storage account recommendations."""

    def test_axes_share_current_cost(self, rules, make_account):
        """Test that every axis is priced against the same current cost."""
        account = make_account(
            redundancy=Redundancy.GRS, tags={}, has_lifecycle_policy=False, https_only=False
        )

        recs = rules.evaluate(account, _usage(1000, 2000))

        assert set(_kinds(recs)) == {
            RecommendationKind.ACCESS_TIER_CHANGE,
            RecommendationKind.REDUNDANCY_DOWNGRADE,
            RecommendationKind.LIFECYCLE_POLICY,
            RecommendationKind.TAGGING,
            RecommendationKind.SECURITY,
        }
        assert len({r.current_monthly_cost for r in recs}) == 1

    def test_billed_cost_used(self, rules, make_account):
        """Test that a billed cost replaces the estimated current cost."""
        recs = rules.evaluate(make_account(), _usage(1000, 2000), actual_cost=25.0)

        assert recs[0].cost_source == CostSource.BILLING
        assert recs[0].current_monthly_cost == 25.0
        assert recs[0].monthly_savings == 14.98

    def test_disk_tier_on_account_raises(self, rules, make_account):
        """Test that a disk tier on a storage account is a catalog error."""
        with pytest.raises(CatalogError, match="not a storage account access tier"):
            rules.evaluate(make_account(current_tier="P10"), _usage(100, 100))
