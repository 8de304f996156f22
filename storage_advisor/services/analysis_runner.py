"""Analysis runner: one recommendation pass over many subscriptions."""

from concurrent.futures import ThreadPoolExecutor

import structlog

from storage_advisor.core.config import settings
from storage_advisor.models.storage import RunStatus
from storage_advisor.providers.base import (
    BillingProvider,
    MetricsProvider,
    NullBillingProvider,
    ResourceDirectory,
    ScopeError,
)
from storage_advisor.schemas.analysis import (
    AnalysisResult,
    AnalysisThresholds,
    ResourceError,
    ScopeWarning,
)
from storage_advisor.schemas.recommendation import Recommendation
from storage_advisor.schemas.resource import AnalysisWindow, ResourceDescriptor
from storage_advisor.services.aggregator import aggregate
from storage_advisor.services.cost_model import CostModel
from storage_advisor.services.decision_rules import RecommendationEngine
from storage_advisor.services.tier_catalog import CatalogError, TierCatalog, get_default_catalog
from storage_advisor.services.usage_estimator import UsageEstimator

logger = structlog.get_logger()


class AnalysisRunner:
    """
    Run the recommendation engine over every resource of a set of scopes.

    Error handling:
    - a scope that cannot be enumerated is skipped and reported as a warning
    - a resource whose evaluation fails is skipped and reported as an error
    - CatalogError (catalog or pricing table bug) aborts the run

    Resources are evaluated in a thread pool; aggregation starts only once
    every evaluation has finished.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        metrics: MetricsProvider,
        billing: BillingProvider | None = None,
        catalog: TierCatalog | None = None,
        thresholds: AnalysisThresholds | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.directory = directory
        self.billing = billing or NullBillingProvider()
        self.catalog = catalog or get_default_catalog(settings.DEFAULT_PRICING_REGION)
        self.thresholds = thresholds or AnalysisThresholds.from_settings()
        self.max_workers = max_workers or settings.MAX_WORKERS

        self.estimator = UsageEstimator(metrics, self.catalog)
        self.engine = RecommendationEngine(
            self.catalog, CostModel(self.catalog), self.thresholds
        )

    def run(self, scopes: list[str], window: AnalysisWindow | None = None) -> AnalysisResult:
        """
        Analyze all resources of the given subscriptions.

        Args:
            scopes: Subscription IDs
            window: Metrics window (default: last thresholds.window_days days)

        Returns:
            AnalysisResult with per-resource recommendations and summary

        Raises:
            CatalogError: If the tier catalog or pricing tables are incomplete
        """
        window = window or AnalysisWindow.last_days(self.thresholds.window_days)
        logger.info("analysis.run_start", scopes=len(scopes), window_days=round(window.days, 1))

        scope_warnings: list[ScopeWarning] = []
        scopes_analyzed: list[str] = []
        work: list[tuple[str, ResourceDescriptor]] = []

        for scope in scopes:
            try:
                resources = self.directory.list_resources(scope)
            except ScopeError as e:
                logger.warning("analysis.scope_failed", scope=scope, error=e.message)
                scope_warnings.append(ScopeWarning(scope=scope, message=e.message))
                continue
            except Exception as e:
                logger.warning("analysis.scope_failed", scope=scope, error=str(e))
                scope_warnings.append(ScopeWarning(scope=scope, message=str(e)))
                continue

            logger.info("analysis.scope_listed", scope=scope, resources=len(resources))
            scopes_analyzed.append(scope)
            work.extend((scope, resource) for resource in resources)

        recommendations, resource_errors = self._evaluate_all(work, window)
        summary = aggregate(recommendations)

        if summary.total_resources == 0:
            status = RunStatus.NO_DATA
        elif summary.total_savings == 0:
            status = RunStatus.NO_OPPORTUNITIES
        else:
            status = RunStatus.COMPLETED

        logger.info(
            "analysis.run_complete",
            status=status.value,
            resources=summary.total_resources,
            recommendations=summary.total_recommendations,
            total_savings=summary.total_savings,
            scope_warnings=len(scope_warnings),
            resource_errors=len(resource_errors),
        )

        return AnalysisResult(
            status=status,
            scopes_analyzed=scopes_analyzed,
            recommendations=recommendations,
            summary=summary,
            scope_warnings=scope_warnings,
            resource_errors=resource_errors,
        )

    def evaluate_resource(
        self, resource: ResourceDescriptor, window: AnalysisWindow
    ) -> list[Recommendation]:
        """Estimate usage, look up billing and apply the decision rules for one resource."""
        usage = self.estimator.estimate(resource, window)

        try:
            actual_cost = self.billing.actual_cost(resource.resource_id, window)
        except Exception as e:
            logger.warning(
                "analysis.billing_unavailable",
                resource_id=resource.resource_id,
                error=str(e),
            )
            actual_cost = None

        return self.engine.evaluate(resource, usage, actual_cost)

    def _evaluate_all(
        self, work: list[tuple[str, ResourceDescriptor]], window: AnalysisWindow
    ) -> tuple[list[Recommendation], list[ResourceError]]:
        recommendations: list[Recommendation] = []
        errors: list[ResourceError] = []
        if not work:
            return recommendations, errors

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                (scope, resource, executor.submit(self.evaluate_resource, resource, window))
                for scope, resource in work
            ]

            # Collect in submission order so output does not depend on scheduling
            for scope, resource, future in futures:
                try:
                    recommendations.extend(future.result())
                except CatalogError:
                    logger.error(
                        "analysis.catalog_error",
                        resource_id=resource.resource_id,
                        tier=resource.current_tier,
                    )
                    for _, _, pending in futures:
                        pending.cancel()
                    raise
                except Exception as e:
                    logger.error(
                        "analysis.resource_failed",
                        scope=scope,
                        resource_id=resource.resource_id,
                        error=str(e),
                        exc_info=True,
                    )
                    errors.append(
                        ResourceError(
                            resource_id=resource.resource_id, scope=scope, message=str(e)
                        )
                    )

        return recommendations, errors
