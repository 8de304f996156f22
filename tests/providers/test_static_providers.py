"""Unit tests for the in-memory collaborators."""

from conftest import disk_series

from storage_advisor.providers.base import DISK_READ_OPS, NullBillingProvider
from storage_advisor.providers.static import build_static_providers
from storage_advisor.schemas.analysis import ResourceInput


class TestBuildStaticProviders:
    """Test suite for splitting API inputs into collaborators."""

    def test_split_inputs(self, make_disk, window):
        """Test that resources, metrics and costs are served back per resource."""
        disk_a = make_disk("disk-a")
        disk_b = make_disk("disk-b", account_id="other-subscription")
        inputs = [
            ResourceInput(resource=disk_a, metrics=disk_series(10, 5), actual_monthly_cost=12.0),
            ResourceInput(resource=disk_b),
        ]

        directory, metrics, billing = build_static_providers(inputs)

        assert directory.scopes == [disk_a.account_id, "other-subscription"]
        assert directory.list_resources(disk_a.account_id) == [disk_a]
        assert directory.list_resources("unknown") == []
        assert metrics.fetch_metric(disk_a.resource_id, DISK_READ_OPS, window).averages[0] == 10
        assert metrics.fetch_metric(disk_b.resource_id, DISK_READ_OPS, window) is None
        assert billing.actual_cost(disk_a.resource_id, window) == 12.0
        assert billing.actual_cost(disk_b.resource_id, window) is None

    def test_null_billing_provider(self, window):
        """Test that the null billing provider never knows a cost."""
        assert NullBillingProvider().actual_cost("/any/id", window) is None
