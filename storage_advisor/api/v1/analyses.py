"""Analysis API endpoints."""

from typing import Literal

import structlog
from fastapi import APIRouter, HTTPException, Query, Response, status
from starlette.concurrency import run_in_threadpool

from storage_advisor.core.config import settings
from storage_advisor.providers.static import build_static_providers
from storage_advisor.schemas.analysis import (
    AnalysisRequest,
    AnalysisResult,
    AnalysisTaskResponse,
    AnalysisThresholds,
    EvaluateRequest,
)
from storage_advisor.services.analysis_runner import AnalysisRunner
from storage_advisor.services.report_export import recommendations_to_csv
from storage_advisor.services.tier_catalog import CatalogError
from storage_advisor.workers.celery_app import celery_app
from storage_advisor.workers.tasks import run_storage_analysis

logger = structlog.get_logger()

router = APIRouter()

CSV_MEDIA_TYPE = "text/csv"


def _csv_response(result: AnalysisResult, filename: str) -> Response:
    return Response(
        content=recommendations_to_csv(result),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/evaluate",
    response_model=AnalysisResult,
    summary="Evaluate caller-supplied resources",
)
async def evaluate_resources(
    request: EvaluateRequest,
    format: Literal["json", "csv"] = Query("json", description="Response format"),
) -> AnalysisResult | Response:
    """
    Run the recommendation engine over resources and telemetry supplied in the request.

    No cloud credentials are needed: resource descriptors, metric time series and
    (optionally) billed monthly costs are all provided by the caller.

    Returns:
        AnalysisResult, or the recommendations as CSV when format=csv
    """
    thresholds = AnalysisThresholds.from_settings(
        window_days=request.window_days,
        utilization_threshold_percent=request.utilization_threshold_percent,
        target_region=request.target_region,
    )
    directory, metrics, billing = build_static_providers(request.resources)
    runner = AnalysisRunner(directory, metrics, billing, thresholds=thresholds)

    try:
        result = await run_in_threadpool(runner.run, directory.scopes)
    except CatalogError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if format == "csv":
        return _csv_response(result, "recommendations.csv")
    return result


@router.post(
    "",
    response_model=AnalysisTaskResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a live Azure analysis",
)
async def start_analysis(request: AnalysisRequest) -> AnalysisTaskResponse:
    """
    Queue an analysis of Azure subscriptions in the background worker.

    Uses the Service Principal configured in AZURE_TENANT_ID / AZURE_CLIENT_ID /
    AZURE_CLIENT_SECRET. Poll GET /analyses/{task_id} for the result.
    """
    if not (settings.AZURE_TENANT_ID and settings.AZURE_CLIENT_ID and settings.AZURE_CLIENT_SECRET):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Azure credentials are not configured",
        )

    task = run_storage_analysis.delay(
        request.subscription_ids,
        request.window_days,
        request.utilization_threshold_percent,
        request.target_region,
    )
    logger.info(
        "api.analysis_queued",
        task_id=task.id,
        subscriptions=len(request.subscription_ids),
    )

    return AnalysisTaskResponse(
        status="pending",
        task_id=task.id,
        message=f"Analysis of {len(request.subscription_ids)} subscription(s) queued",
    )


@router.get(
    "/{task_id}",
    response_model=AnalysisTaskResponse,
    summary="Get analysis task status",
)
async def get_analysis_status(task_id: str) -> AnalysisTaskResponse:
    """
    Get the status of a background analysis.

    Unknown task IDs are reported as pending (Celery cannot tell them apart
    from queued tasks).
    """
    task_result = celery_app.AsyncResult(task_id)

    if task_result.state == "PENDING":
        return AnalysisTaskResponse(
            status="pending",
            task_id=task_id,
            message="Task is queued and waiting to execute",
        )
    elif task_result.state == "SUCCESS":
        return AnalysisTaskResponse(
            status="success",
            task_id=task_id,
            message="Analysis completed successfully",
            result=AnalysisResult.model_validate(task_result.result),
        )
    elif task_result.state == "FAILURE":
        return AnalysisTaskResponse(
            status="error",
            task_id=task_id,
            message=f"Task failed: {str(task_result.info)}",
        )
    else:
        step = ""
        if isinstance(task_result.info, dict):
            step = task_result.info.get("current_step", "")
        return AnalysisTaskResponse(
            status="running",
            task_id=task_id,
            message=f"Task is currently running (state: {task_result.state}) {step}".strip(),
        )


@router.get("/{task_id}/export", summary="Download analysis recommendations as CSV")
async def export_analysis(task_id: str) -> Response:
    """Export the recommendations of a completed analysis as CSV."""
    task_result = celery_app.AsyncResult(task_id)
    if task_result.state != "SUCCESS":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Analysis is not completed (state: {task_result.state})",
        )

    result = AnalysisResult.model_validate(task_result.result)
    return _csv_response(result, f"recommendations-{task_id}.csv")
