"""Celery background tasks for storage analysis."""

from datetime import datetime
from typing import Any

import structlog

from storage_advisor.core.config import settings
from storage_advisor.providers.azure import (
    AzureCostManagementBillingProvider,
    AzureMonitorMetricsProvider,
    AzureResourceDirectory,
)
from storage_advisor.providers.base import ResourceDirectory
from storage_advisor.schemas.analysis import AnalysisThresholds
from storage_advisor.schemas.resource import ResourceDescriptor
from storage_advisor.services.analysis_runner import AnalysisRunner
from storage_advisor.workers.celery_app import celery_app

logger = structlog.get_logger()


class _ProgressDirectory(ResourceDirectory):
    """Reports task progress each time a subscription has been enumerated."""

    def __init__(self, task: Any, inner: ResourceDirectory, total: int) -> None:
        self.task = task
        self.inner = inner
        self.total = total
        self.done = 0
        self.resources_found = 0
        self.started_at = datetime.now()

    def list_resources(self, scope: str) -> list[ResourceDescriptor]:
        self._update(f"Listing resources of subscription {scope}...", scope)
        try:
            resources = self.inner.list_resources(scope)
        finally:
            self.done += 1
        self.resources_found += len(resources)
        return resources

    def _update(self, step: str, scope: str) -> None:
        elapsed = (datetime.now() - self.started_at).total_seconds()
        self.task.update_state(
            state="PROGRESS",
            meta={
                "current": self.done,
                "total": self.total + 1,
                "percent": int(self.done / (self.total + 1) * 100),
                "current_step": step,
                "subscription_id": scope,
                "resources_found": self.resources_found,
                "elapsed_seconds": int(elapsed),
            },
        )


@celery_app.task(name="storage_advisor.workers.tasks.run_storage_analysis", bind=True)
def run_storage_analysis(
    self: Any,
    subscription_ids: list[str],
    window_days: int | None = None,
    utilization_threshold_percent: float | None = None,
    target_region: str | None = None,
) -> dict[str, Any]:
    """
    Analyze the managed disks and storage accounts of Azure subscriptions.

    Args:
        subscription_ids: Subscriptions to analyze
        window_days: Metrics window override
        utilization_threshold_percent: Underutilization threshold override
        target_region: Pricing region override ("auto" = resource region)

    Returns:
        AnalysisResult serialized to JSON-compatible dict
    """
    thresholds = AnalysisThresholds.from_settings(
        window_days=window_days,
        utilization_threshold_percent=utilization_threshold_percent,
        target_region=target_region,
    )
    credentials = {
        "tenant_id": settings.AZURE_TENANT_ID,
        "client_id": settings.AZURE_CLIENT_ID,
        "client_secret": settings.AZURE_CLIENT_SECRET,
    }

    directory = _ProgressDirectory(
        self,
        AzureResourceDirectory(resource_groups=settings.AZURE_RESOURCE_GROUPS, **credentials),
        total=len(subscription_ids),
    )
    runner = AnalysisRunner(
        directory=directory,
        metrics=AzureMonitorMetricsProvider(**credentials),
        billing=AzureCostManagementBillingProvider(**credentials),
        thresholds=thresholds,
    )

    logger.info("task.analysis_started", task_id=self.request.id, subscriptions=len(subscription_ids))
    try:
        result = runner.run(subscription_ids)
    except Exception as e:
        logger.error("task.analysis_failed", task_id=self.request.id, error=str(e), exc_info=True)
        raise

    logger.info(
        "task.analysis_completed",
        task_id=self.request.id,
        status=result.status.value,
        total_savings=result.summary.total_savings,
    )
    return result.model_dump(mode="json")
