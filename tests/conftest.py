"""Pytest configuration and fixtures for Storage Advisor tests."""

from datetime import datetime, timezone
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from storage_advisor.main import app
from storage_advisor.models.storage import PowerState, Redundancy, ResourceKind
from storage_advisor.providers.base import (
    DISK_READ_BYTES,
    DISK_READ_OPS,
    DISK_WRITE_BYTES,
    DISK_WRITE_OPS,
    TRANSACTIONS,
    USED_CAPACITY,
)
from storage_advisor.schemas.analysis import AnalysisThresholds
from storage_advisor.schemas.resource import AnalysisWindow, ResourceDescriptor, TimeSeries
from storage_advisor.services.cost_model import CostModel
from storage_advisor.services.tier_catalog import TierCatalog

SUBSCRIPTION_ID = "11111111-2222-3333-4444-555555555555"
VM_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-app"
    "/providers/Microsoft.Compute/virtualMachines/vm-app-01"
)
BYTES_PER_MB = 1024 * 1024
BYTES_PER_GB = 1024 * 1024 * 1024


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def catalog() -> TierCatalog:
    """Built-in Azure tier catalog."""
    return TierCatalog.default()


@pytest.fixture
def cost_model(catalog: TierCatalog) -> CostModel:
    return CostModel(catalog)


@pytest.fixture
def thresholds() -> AnalysisThresholds:
    """Default thresholds, independent of the environment."""
    return AnalysisThresholds()


@pytest.fixture
def window() -> AnalysisWindow:
    """Fixed 30-day analysis window."""
    return AnalysisWindow.last_days(30, now=datetime(2024, 6, 30, tzinfo=timezone.utc))


@pytest.fixture
def make_disk() -> Callable[..., ResourceDescriptor]:
    """Factory for managed disk descriptors (attached to a running VM by default)."""

    def _make(name: str = "disk-data-01", **overrides) -> ResourceDescriptor:
        values = {
            "account_id": SUBSCRIPTION_ID,
            "account_name": "Production",
            "resource_group": "rg-app",
            "resource_id": (
                f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-app"
                f"/providers/Microsoft.Compute/disks/{name}"
            ),
            "resource_name": name,
            "region": "eastus",
            "kind": ResourceKind.MANAGED_DISK,
            "current_tier": "P10",
            "redundancy": Redundancy.LRS,
            "size_gb": 100,
            "attached_vm_id": VM_ID,
            "power_state": PowerState.RUNNING,
        }
        values.update(overrides)
        return ResourceDescriptor(**values)

    return _make


@pytest.fixture
def make_account() -> Callable[..., ResourceDescriptor]:
    """Factory for storage account descriptors (fully tagged, secure, with a lifecycle policy)."""

    def _make(name: str = "stappdata01", **overrides) -> ResourceDescriptor:
        values = {
            "account_id": SUBSCRIPTION_ID,
            "account_name": "Production",
            "resource_group": "rg-app",
            "resource_id": (
                f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg-app"
                f"/providers/Microsoft.Storage/storageAccounts/{name}"
            ),
            "resource_name": name,
            "region": "eastus",
            "kind": ResourceKind.STORAGE_ACCOUNT,
            "current_tier": "Hot",
            "redundancy": Redundancy.LRS,
            "size_gb": 0,
            "tags": {"owner": "data-team", "environment": "prod", "cost-center": "cc-42"},
            "has_lifecycle_policy": True,
            "https_only": True,
            "min_tls_version": "TLS1_2",
            "allow_blob_public_access": False,
        }
        values.update(overrides)
        return ResourceDescriptor(**values)

    return _make


def disk_series(
    read_iops: float,
    write_iops: float,
    read_mbps: float = 1.0,
    write_mbps: float = 1.0,
    points: int = 24,
    with_maximums: bool = False,
) -> list[TimeSeries]:
    """Flat disk telemetry: every data point equals the given average."""

    def _series(name: str, value: float) -> TimeSeries:
        return TimeSeries(
            metric_name=name,
            averages=[value] * points,
            maximums=[value] * points if with_maximums else [],
        )

    return [
        _series(DISK_READ_OPS, read_iops),
        _series(DISK_WRITE_OPS, write_iops),
        _series(DISK_READ_BYTES, read_mbps * BYTES_PER_MB),
        _series(DISK_WRITE_BYTES, write_mbps * BYTES_PER_MB),
    ]


def account_series(used_gb: float, monthly_transactions: float, points: int = 30) -> list[TimeSeries]:
    """Storage account telemetry for a 30-day window."""
    return [
        TimeSeries(metric_name=USED_CAPACITY, averages=[used_gb * BYTES_PER_GB] * points),
        TimeSeries(
            metric_name=TRANSACTIONS,
            totals=[monthly_transactions / points] * points,
        ),
    ]


@pytest.fixture
def mock_azure_credentials() -> dict[str, str]:
    """Mock Azure Service Principal credentials."""
    return {
        "tenant_id": "00000000-0000-0000-0000-000000000001",
        "client_id": "00000000-0000-0000-0000-000000000002",
        "client_secret": "test-client-secret",
    }
