"""CSV export of analysis results."""

import csv
import io
from pathlib import Path
from typing import TextIO

import structlog

from storage_advisor.schemas.analysis import AnalysisResult
from storage_advisor.schemas.recommendation import GroupSummary, Recommendation

logger = structlog.get_logger()

RECOMMENDATION_FIELDS = [
    "account_id",
    "account_name",
    "resource_group",
    "resource_id",
    "resource_name",
    "resource_kind",
    "region",
    "kind",
    "current_tier",
    "target_tier",
    "current_monthly_cost",
    "projected_monthly_cost",
    "monthly_savings",
    "annual_savings",
    "baseline_utilization_percent",
    "burst_utilization_percent",
    "usage_measured",
    "data_points_collected",
    "cost_source",
    "pricing_region",
    "pricing_fallback",
    "reason",
]

SUMMARY_FIELDS = [
    "group",
    "key",
    "count",
    "resource_count",
    "current_monthly_cost",
    "projected_monthly_cost",
    "monthly_savings",
    "savings_percentage",
]


def _recommendation_row(rec: Recommendation) -> dict:
    row = rec.model_dump(mode="json")
    row["annual_savings"] = rec.annual_savings
    return row


def _summary_row(group: str, summary: GroupSummary) -> dict:
    row = summary.model_dump(mode="json")
    row["group"] = group
    return row


def write_recommendations_csv(recommendations: list[Recommendation], stream: TextIO) -> int:
    """Write one CSV row per recommendation. Returns the number of rows written."""
    writer = csv.DictWriter(stream, fieldnames=RECOMMENDATION_FIELDS, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(_recommendation_row(rec) for rec in recommendations)
    return len(recommendations)


def write_summary_csv(result: AnalysisResult, stream: TextIO) -> int:
    """Write account and kind group summaries as CSV rows."""
    rows = [_summary_row("account", s) for s in result.summary.by_account.values()]
    rows.extend(_summary_row("kind", s) for s in result.summary.by_kind.values())

    writer = csv.DictWriter(stream, fieldnames=SUMMARY_FIELDS, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)
    return len(rows)


def recommendations_to_csv(result: AnalysisResult) -> str:
    """Render the recommendations of a run as CSV text."""
    buffer = io.StringIO()
    write_recommendations_csv(result.recommendations, buffer)
    return buffer.getvalue()


def export_result(result: AnalysisResult, output_dir: str | Path) -> tuple[Path, Path]:
    """
    Export an analysis result to two CSV files.

    Args:
        result: Completed analysis run
        output_dir: Directory to write into (created if missing)

    Returns:
        Paths of the recommendations file and the summary file
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    recommendations_file = output_path / "recommendations.csv"
    summary_file = output_path / "summary.csv"

    with open(recommendations_file, "w", newline="") as f:
        count = write_recommendations_csv(result.recommendations, f)
    with open(summary_file, "w", newline="") as f:
        groups = write_summary_csv(result, f)

    logger.info(
        "report.exported",
        recommendations=count,
        groups=groups,
        output_dir=str(output_path),
    )
    return recommendations_file, summary_file
