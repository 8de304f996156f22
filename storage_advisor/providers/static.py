"""In-memory collaborators backed by caller-supplied data."""

from collections import defaultdict

from storage_advisor.providers.base import BillingProvider, MetricsProvider, ResourceDirectory
from storage_advisor.schemas.analysis import ResourceInput
from storage_advisor.schemas.resource import AnalysisWindow, ResourceDescriptor, TimeSeries


class StaticResourceDirectory(ResourceDirectory):
    """Resource directory over a fixed list of descriptors, grouped by account."""

    def __init__(self, resources: list[ResourceDescriptor]) -> None:
        self._by_scope: dict[str, list[ResourceDescriptor]] = defaultdict(list)
        for resource in resources:
            self._by_scope[resource.account_id].append(resource)

    @property
    def scopes(self) -> list[str]:
        return list(self._by_scope)

    def list_resources(self, scope: str) -> list[ResourceDescriptor]:
        return list(self._by_scope.get(scope, []))


class StaticMetricsProvider(MetricsProvider):
    """Metrics provider over pre-fetched time series."""

    def __init__(self, series: dict[str, list[TimeSeries]]) -> None:
        self._series = {
            resource_id: {ts.metric_name: ts for ts in items}
            for resource_id, items in series.items()
        }

    def fetch_metric(
        self, resource_id: str, metric_name: str, window: AnalysisWindow
    ) -> TimeSeries | None:
        return self._series.get(resource_id, {}).get(metric_name)


class StaticBillingProvider(BillingProvider):
    """Billing provider over known monthly costs."""

    def __init__(self, costs: dict[str, float]) -> None:
        self._costs = dict(costs)

    def actual_cost(self, resource_id: str, window: AnalysisWindow) -> float | None:
        return self._costs.get(resource_id)


def build_static_providers(
    inputs: list[ResourceInput],
) -> tuple[StaticResourceDirectory, StaticMetricsProvider, StaticBillingProvider]:
    """Split API resource inputs into the three collaborator contracts."""
    directory = StaticResourceDirectory([item.resource for item in inputs])
    metrics = StaticMetricsProvider({item.resource.resource_id: item.metrics for item in inputs})
    billing = StaticBillingProvider(
        {
            item.resource.resource_id: item.actual_monthly_cost
            for item in inputs
            if item.actual_monthly_cost is not None
        }
    )
    return directory, metrics, billing
