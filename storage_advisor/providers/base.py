"""Base abstract classes for the cloud collaborators the engine consumes."""

from abc import ABC, abstractmethod

from storage_advisor.schemas.resource import AnalysisWindow, ResourceDescriptor, TimeSeries

# Azure Monitor metric names requested by the usage estimator
DISK_READ_OPS = "Composite Disk Read Operations/sec"
DISK_WRITE_OPS = "Composite Disk Write Operations/sec"
DISK_READ_BYTES = "Composite Disk Read Bytes/sec"
DISK_WRITE_BYTES = "Composite Disk Write Bytes/sec"
USED_CAPACITY = "UsedCapacity"
TRANSACTIONS = "Transactions"
INGRESS = "Ingress"
EGRESS = "Egress"


class ScopeError(Exception):
    """A subscription could not be authenticated or enumerated."""

    def __init__(self, scope: str, message: str) -> None:
        super().__init__(f"{scope}: {message}")
        self.scope = scope
        self.message = message


class ResourceDirectory(ABC):
    """Enumerates the storage resources of an account scope."""

    @abstractmethod
    def list_resources(self, scope: str) -> list[ResourceDescriptor]:
        """
        List managed disks and storage accounts in a scope.

        Args:
            scope: Subscription ID

        Returns:
            Resource descriptors (possibly empty)

        Raises:
            ScopeError: If the scope cannot be authenticated or enumerated
        """


class MetricsProvider(ABC):
    """Supplies per-resource telemetry."""

    @abstractmethod
    def fetch_metric(
        self, resource_id: str, metric_name: str, window: AnalysisWindow
    ) -> TimeSeries | None:
        """
        Fetch one metric for one resource.

        Returns:
            The time series, or None when the metric is unavailable. Transient
            failures are retried inside the provider; None is terminal.
        """


class BillingProvider(ABC):
    """Supplies actual billed cost where known."""

    @abstractmethod
    def actual_cost(self, resource_id: str, window: AnalysisWindow) -> float | None:
        """
        Actual billed cost of a resource, normalized to a 30-day month.

        Returns:
            Monthly cost in USD, or None when unknown
        """


class NullBillingProvider(BillingProvider):
    """Billing provider for runs without billing data."""

    def actual_cost(self, resource_id: str, window: AnalysisWindow) -> float | None:
        return None
