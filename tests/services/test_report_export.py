"""Unit tests for CSV report export."""

import csv
import io

import pytest
from conftest import SUBSCRIPTION_ID, disk_series

from storage_advisor.providers.static import StaticMetricsProvider, StaticResourceDirectory
from storage_advisor.services.analysis_runner import AnalysisRunner
from storage_advisor.services.report_export import (
    RECOMMENDATION_FIELDS,
    export_result,
    recommendations_to_csv,
    write_summary_csv,
)


@pytest.fixture
def result(make_disk, catalog, thresholds, window):
    idle = make_disk("disk-idle")
    orphan = make_disk("disk-orphan", attached_vm_id=None)
    runner = AnalysisRunner(
        StaticResourceDirectory([idle, orphan]),
        StaticMetricsProvider({idle.resource_id: disk_series(30, 20)}),
        catalog=catalog,
        thresholds=thresholds,
        max_workers=2,
    )
    return runner.run([SUBSCRIPTION_ID], window)


class TestRecommendationsCsv:
    """Test suite for the recommendations CSV."""

    def test_one_row_per_recommendation(self, result):
        """Test that the CSV has a header plus one row per recommendation."""
        rows = list(csv.DictReader(io.StringIO(recommendations_to_csv(result))))

        assert len(rows) == 2
        assert list(rows[0]) == RECOMMENDATION_FIELDS
        assert rows[0]["resource_name"] == "disk-idle"
        assert rows[0]["kind"] == "downgrade"
        assert rows[0]["target_tier"] == "S10"
        assert float(rows[0]["monthly_savings"]) == 10.80
        assert float(rows[0]["annual_savings"]) == 129.60
        assert rows[1]["kind"] == "decommission_candidate"
        assert rows[1]["usage_measured"] == "False"

    def test_empty_result_has_header_only(self, make_disk, catalog, thresholds, window):
        """Test that an empty run still produces a header row."""
        runner = AnalysisRunner(
            StaticResourceDirectory([]), StaticMetricsProvider({}), catalog=catalog, thresholds=thresholds
        )
        text = recommendations_to_csv(runner.run(["empty"], window))

        assert text.strip().split(",") == RECOMMENDATION_FIELDS


class TestSummaryCsv:
    """Test suite for the summary CSV."""

    def test_account_and_kind_groups(self, result):
        """Test that account groups and kind groups are both written."""
        buffer = io.StringIO()
        count = write_summary_csv(result, buffer)

        rows = list(csv.DictReader(io.StringIO(buffer.getvalue())))
        assert count == len(rows) == 3
        assert [r["group"] for r in rows] == ["account", "kind", "kind"]
        assert rows[0]["key"] == SUBSCRIPTION_ID
        assert {r["key"] for r in rows[1:]} == {"decommission_candidate", "downgrade"}


class TestExportResult:
    """Test suite for exporting to files."""

    def test_writes_both_files(self, result, tmp_path):
        """Test that export creates the recommendations and summary files."""
        recommendations_file, summary_file = export_result(result, tmp_path / "reports")

        assert recommendations_file.exists()
        assert summary_file.exists()
        with open(recommendations_file, newline="") as f:
            assert len(list(csv.DictReader(f))) == 2
