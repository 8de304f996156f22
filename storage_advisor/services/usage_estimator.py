"""Usage estimator: resolves measured or estimated utilization per resource."""

from statistics import fmean

import structlog

from storage_advisor.models.storage import EstimationBasis, ResourceKind
from storage_advisor.providers.base import (
    DISK_READ_BYTES,
    DISK_READ_OPS,
    DISK_WRITE_BYTES,
    DISK_WRITE_OPS,
    EGRESS,
    INGRESS,
    TRANSACTIONS,
    USED_CAPACITY,
    MetricsProvider,
)
from storage_advisor.schemas.resource import (
    AnalysisWindow,
    ResourceDescriptor,
    TierSpec,
    TimeSeries,
    UsageSample,
)
from storage_advisor.services.tier_catalog import TierCatalog

logger = structlog.get_logger()

BYTES_PER_MB = 1024 * 1024
BYTES_PER_GB = 1024 * 1024 * 1024
SECONDS_PER_MONTH = 30 * 86400

# Peak is approximated as twice the average when only averages are available
PEAK_TO_AVERAGE_FACTOR = 2.0

# Fallback usage as (average, peak) fractions of the tier's baseline capacity
HOST_STOPPED_USAGE = (0.05, 0.15)
TELEMETRY_UNAVAILABLE_USAGE = (0.20, 0.40)


class _MetricValue:
    """Average / peak / total resolved from one time series."""

    def __init__(self, series: TimeSeries | None) -> None:
        self.data_points = series.data_points if series else 0
        self.average = fmean(series.averages) if series and series.averages else 0.0
        if series and series.maximums:
            self.peak = max(series.maximums)
        else:
            self.peak = self.average * PEAK_TO_AVERAGE_FACTOR
        self.total = sum(series.totals) if series and series.totals else 0.0
        self.latest = series.averages[-1] if series and series.averages else 0.0


class UsageEstimator:
    """
    Resolve the usage of a resource over an analysis window.

    Each metric is requested independently; a failed or empty metric counts
    as zero without invalidating the others. When no data point at all was
    collected the sample is estimated from the resource state instead:

    - unattached disk: no usage
    - disk on a powered-off VM: 5% average / 15% peak of baseline capacity
    - running, or no telemetry: 20% average / 40% peak of baseline capacity
    """

    def __init__(self, metrics: MetricsProvider, catalog: TierCatalog) -> None:
        self.metrics = metrics
        self.catalog = catalog

    def estimate(self, resource: ResourceDescriptor, window: AnalysisWindow) -> UsageSample:
        """
        Build the usage sample of a resource.

        Raises:
            CatalogError: If the resource's current tier is not in the catalog
        """
        tier = self.catalog.spec_of(resource.current_tier)

        if resource.kind == ResourceKind.STORAGE_ACCOUNT:
            sample = self._measure_storage_account(resource, window)
        else:
            sample = self._measure_disk(resource, window)

        if sample.is_measured:
            return sample

        return self._fallback(resource, tier)

    def _fetch(self, resource: ResourceDescriptor, metric_name: str, window: AnalysisWindow) -> _MetricValue:
        try:
            series = self.metrics.fetch_metric(resource.resource_id, metric_name, window)
        except Exception as e:
            logger.warning(
                "usage.metric_fetch_failed",
                resource_id=resource.resource_id,
                metric=metric_name,
                error=str(e),
            )
            series = None

        if series is None or series.data_points == 0:
            logger.debug(
                "usage.metric_unavailable",
                resource_id=resource.resource_id,
                metric=metric_name,
            )
        return _MetricValue(series)

    def _measure_disk(self, resource: ResourceDescriptor, window: AnalysisWindow) -> UsageSample:
        read_ops = self._fetch(resource, DISK_READ_OPS, window)
        write_ops = self._fetch(resource, DISK_WRITE_OPS, window)
        read_bytes = self._fetch(resource, DISK_READ_BYTES, window)
        write_bytes = self._fetch(resource, DISK_WRITE_BYTES, window)

        return UsageSample(
            avg_read_iops=read_ops.average,
            avg_write_iops=write_ops.average,
            avg_iops=read_ops.average + write_ops.average,
            peak_iops=read_ops.peak + write_ops.peak,
            avg_throughput_mbps=(read_bytes.average + write_bytes.average) / BYTES_PER_MB,
            peak_throughput_mbps=(read_bytes.peak + write_bytes.peak) / BYTES_PER_MB,
            data_points_collected=(
                read_ops.data_points
                + write_ops.data_points
                + read_bytes.data_points
                + write_bytes.data_points
            ),
            basis=EstimationBasis.MEASURED,
        )

    def _measure_storage_account(
        self, resource: ResourceDescriptor, window: AnalysisWindow
    ) -> UsageSample:
        capacity = self._fetch(resource, USED_CAPACITY, window)
        transactions = self._fetch(resource, TRANSACTIONS, window)
        ingress = self._fetch(resource, INGRESS, window)
        egress = self._fetch(resource, EGRESS, window)

        # Transaction totals are normalized to a 30-day month
        seconds = window.seconds or SECONDS_PER_MONTH
        avg_rate = transactions.total / seconds

        return UsageSample(
            avg_iops=avg_rate,
            peak_iops=avg_rate * PEAK_TO_AVERAGE_FACTOR,
            transaction_count=transactions.total * SECONDS_PER_MONTH / seconds,
            ingress_gb=ingress.total / BYTES_PER_GB,
            egress_gb=egress.total / BYTES_PER_GB,
            # Capacity is a level metric: the most recent point is current usage
            used_capacity_gb=capacity.latest / BYTES_PER_GB if capacity.data_points else None,
            data_points_collected=(
                capacity.data_points
                + transactions.data_points
                + ingress.data_points
                + egress.data_points
            ),
            basis=EstimationBasis.MEASURED,
        )

    def _fallback(self, resource: ResourceDescriptor, tier: TierSpec) -> UsageSample:
        if resource.kind == ResourceKind.MANAGED_DISK and not resource.is_attached:
            basis = EstimationBasis.UNATTACHED
            avg_fraction, peak_fraction = 0.0, 0.0
        elif resource.kind == ResourceKind.MANAGED_DISK and resource.power_state.is_powered_off:
            basis = EstimationBasis.HOST_STOPPED
            avg_fraction, peak_fraction = HOST_STOPPED_USAGE
        else:
            basis = EstimationBasis.TELEMETRY_UNAVAILABLE
            avg_fraction, peak_fraction = TELEMETRY_UNAVAILABLE_USAGE

        logger.info(
            "usage.fallback_estimate",
            resource_id=resource.resource_id,
            basis=basis.value,
        )

        avg_iops = tier.baseline_iops * avg_fraction
        used_capacity = resource.size_gb if resource.kind == ResourceKind.STORAGE_ACCOUNT else None
        return UsageSample(
            avg_read_iops=avg_iops / 2,
            avg_write_iops=avg_iops / 2,
            avg_iops=avg_iops,
            peak_iops=tier.baseline_iops * peak_fraction,
            avg_throughput_mbps=tier.baseline_mbps * avg_fraction,
            peak_throughput_mbps=tier.baseline_mbps * peak_fraction,
            transaction_count=(
                avg_iops * SECONDS_PER_MONTH
                if resource.kind == ResourceKind.STORAGE_ACCOUNT
                else 0.0
            ),
            used_capacity_gb=used_capacity,
            data_points_collected=0,
            basis=basis,
        )
