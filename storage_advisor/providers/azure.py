"""Azure collaborators: resource directory, Azure Monitor metrics and Cost Management billing."""

import threading
from datetime import timedelta
from typing import Any, Iterator

import structlog
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)
from azure.identity import ClientSecretCredential
from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.costmanagement import CostManagementClient
from azure.mgmt.costmanagement.models import (
    QueryAggregation,
    QueryDataset,
    QueryDefinition,
    QueryGrouping,
    QueryTimePeriod,
)
from azure.mgmt.resource import SubscriptionClient
from azure.mgmt.storage import StorageManagementClient
from azure.monitor.query import MetricAggregationType, MetricsQueryClient

from storage_advisor.models.storage import PowerState, Redundancy, ResourceKind, StorageClass
from storage_advisor.providers.base import (
    DISK_READ_BYTES,
    DISK_READ_OPS,
    DISK_WRITE_BYTES,
    DISK_WRITE_OPS,
    EGRESS,
    INGRESS,
    TRANSACTIONS,
    USED_CAPACITY,
    BillingProvider,
    MetricsProvider,
    ResourceDirectory,
    ScopeError,
)
from storage_advisor.schemas.resource import AnalysisWindow, ResourceDescriptor, TimeSeries
from storage_advisor.services.tier_catalog import CatalogError, TierCatalog, get_default_catalog

logger = structlog.get_logger()

# Managed disk SKU prefix -> catalog storage class
DISK_SKU_CLASSES = {
    "Premium": StorageClass.PREMIUM_SSD,
    "StandardSSD": StorageClass.STANDARD_SSD,
    "Standard": StorageClass.STANDARD_HDD,
}

# Ultra and Premium v2 disks are priced per provisioned IOPS/MBps, not by tier
UNSUPPORTED_DISK_SKUS = ("UltraSSD_LRS", "PremiumV2_LRS")

POWER_STATES = {
    "running": PowerState.RUNNING,
    "starting": PowerState.RUNNING,
    "stopped": PowerState.STOPPED,
    "stopping": PowerState.STOPPED,
    "deallocated": PowerState.DEALLOCATED,
    "deallocating": PowerState.DEALLOCATED,
}

METRIC_AGGREGATIONS = {
    DISK_READ_OPS: [MetricAggregationType.AVERAGE, MetricAggregationType.MAXIMUM],
    DISK_WRITE_OPS: [MetricAggregationType.AVERAGE, MetricAggregationType.MAXIMUM],
    DISK_READ_BYTES: [MetricAggregationType.AVERAGE, MetricAggregationType.MAXIMUM],
    DISK_WRITE_BYTES: [MetricAggregationType.AVERAGE, MetricAggregationType.MAXIMUM],
    USED_CAPACITY: [MetricAggregationType.AVERAGE],
    TRANSACTIONS: [MetricAggregationType.TOTAL],
    INGRESS: [MetricAggregationType.TOTAL],
    EGRESS: [MetricAggregationType.TOTAL],
}


def parse_resource_group(resource_id: str) -> str | None:
    """
    Extract the resource group name from an Azure resource ID.

    Format: /subscriptions/{subscription_id}/resourceGroups/{resource_group_name}/...
    """
    parts = resource_id.split("/")
    try:
        rg_index = [p.lower() for p in parts].index("resourcegroups")
    except ValueError:
        return None
    if rg_index + 1 < len(parts):
        return parts[rg_index + 1]
    return None


def parse_subscription(resource_id: str) -> str | None:
    """Extract the subscription ID from an Azure resource ID."""
    parts = resource_id.split("/")
    try:
        index = [p.lower() for p in parts].index("subscriptions")
    except ValueError:
        return None
    if index + 1 < len(parts):
        return parts[index + 1]
    return None


def enum_value(value: Any) -> str | None:
    """Plain string of an SDK enum field (SDK enums deserialize as members or raw strings)."""
    if value is None:
        return None
    return value.value if hasattr(value, "value") else str(value)


def split_sku(sku_name: str) -> tuple[str, Redundancy]:
    """Split an Azure SKU name ('StandardSSD_ZRS') into prefix and redundancy."""
    prefix, _, redundancy = sku_name.partition("_")
    try:
        return prefix, Redundancy(redundancy.upper())
    except ValueError:
        return prefix, Redundancy.LRS


class AzureClientBase:
    """Service Principal credentials shared by the Azure collaborators."""

    def __init__(self, tenant_id: str, client_id: str, client_secret: str) -> None:
        """
        Args:
            tenant_id: Azure AD Tenant ID
            client_id: Service Principal Application/Client ID
            client_secret: Service Principal Client Secret
        """
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self._credential: ClientSecretCredential | None = None

    @property
    def credential(self) -> ClientSecretCredential:
        if self._credential is None:
            self._credential = ClientSecretCredential(
                tenant_id=self.tenant_id,
                client_id=self.client_id,
                client_secret=self.client_secret,
            )
        return self._credential


class AzureResourceDirectory(AzureClientBase, ResourceDirectory):
    """
    Enumerates Managed Disks and Storage Accounts of a subscription.

    Requires the Reader role on the subscription.
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        resource_groups: list[str] | None = None,
        catalog: TierCatalog | None = None,
    ) -> None:
        """
        Args:
            resource_groups: Resource groups to include (None or empty = all)
            catalog: Tier catalog used to infer the tier of disks that report none
        """
        super().__init__(tenant_id, client_id, client_secret)
        self.resource_groups = resource_groups or []
        self.catalog = catalog or get_default_catalog()

    def _is_resource_in_scope(self, resource_id: str) -> bool:
        """Check if a resource is in scope based on the resource_groups filter."""
        if not self.resource_groups:
            return True

        resource_group_name = parse_resource_group(resource_id)
        if resource_group_name is None:
            # If we can't parse the resource group, include it to be safe
            return True
        return any(rg.lower() == resource_group_name.lower() for rg in self.resource_groups)

    def list_resources(self, scope: str) -> list[ResourceDescriptor]:
        """
        List all managed disks and storage accounts of a subscription.

        Raises:
            ScopeError: If authentication fails or the subscription is inaccessible
        """
        try:
            subscription = SubscriptionClient(self.credential).subscriptions.get(scope)
            account_name = subscription.display_name

            compute_client = ComputeManagementClient(self.credential, scope)
            storage_client = StorageManagementClient(self.credential, scope)

            resources = list(self._list_disks(scope, account_name, compute_client))
            resources.extend(self._list_storage_accounts(scope, account_name, storage_client))

        except ClientAuthenticationError as e:
            raise ScopeError(
                scope,
                f"Authentication failed: Invalid Service Principal credentials. Error: {str(e)}",
            )
        except HttpResponseError as e:
            if e.status_code == 403:
                raise ScopeError(
                    scope,
                    "Access denied: Service Principal does not have permission to access "
                    "the subscription. Ensure 'Reader' role is assigned.",
                )
            if e.status_code == 404:
                raise ScopeError(scope, "Subscription not found")
            raise ScopeError(scope, f"Azure API error (status {e.status_code}): {str(e)}")

        logger.info(
            "azure.resources_listed",
            subscription_id=scope,
            disks=sum(1 for r in resources if r.kind == ResourceKind.MANAGED_DISK),
            storage_accounts=sum(1 for r in resources if r.kind == ResourceKind.STORAGE_ACCOUNT),
        )
        return resources

    def _list_disks(
        self, scope: str, account_name: str | None, compute_client: ComputeManagementClient
    ) -> Iterator[ResourceDescriptor]:
        power_states: dict[str, PowerState] = {}

        for disk in compute_client.disks.list():
            if not self._is_resource_in_scope(disk.id):
                continue

            sku_name = enum_value(disk.sku.name) if disk.sku else "Standard_LRS"
            if sku_name in UNSUPPORTED_DISK_SKUS:
                logger.info("azure.disk_sku_skipped", disk_id=disk.id, sku=sku_name)
                continue

            prefix, redundancy = split_sku(sku_name)
            storage_class = DISK_SKU_CLASSES.get(prefix, StorageClass.STANDARD_HDD)
            size_gb = disk.disk_size_gb or 0
            # disk.tier is only reported for Premium SSD; infer the rest from size
            tier_id = disk.tier or self.catalog.tier_for(size_gb, storage_class)

            vm_id = disk.managed_by
            power_state = PowerState.NOT_APPLICABLE
            if vm_id:
                if vm_id not in power_states:
                    power_states[vm_id] = self._vm_power_state(compute_client, vm_id)
                power_state = power_states[vm_id]

            yield ResourceDescriptor(
                account_id=scope,
                account_name=account_name,
                resource_group=parse_resource_group(disk.id),
                resource_id=disk.id,
                resource_name=disk.name if disk.name else disk.id.split("/")[-1],
                region=disk.location,
                kind=ResourceKind.MANAGED_DISK,
                current_tier=tier_id,
                redundancy=redundancy,
                size_gb=size_gb,
                attached_vm_id=vm_id,
                power_state=power_state,
                created_at=disk.time_created,
                tags=disk.tags or {},
            )

    def _vm_power_state(self, compute_client: ComputeManagementClient, vm_id: str) -> PowerState:
        resource_group = parse_resource_group(vm_id)
        vm_name = vm_id.split("/")[-1]
        try:
            instance_view = compute_client.virtual_machines.instance_view(resource_group, vm_name)
        except HttpResponseError as e:
            logger.warning("azure.vm_instance_view_failed", vm_id=vm_id, error=str(e))
            return PowerState.NOT_APPLICABLE

        for status in instance_view.statuses or []:
            if status.code and status.code.startswith("PowerState/"):
                return POWER_STATES.get(status.code.split("/", 1)[1], PowerState.NOT_APPLICABLE)
        return PowerState.NOT_APPLICABLE

    def _list_storage_accounts(
        self, scope: str, account_name: str | None, storage_client: StorageManagementClient
    ) -> Iterator[ResourceDescriptor]:
        for sa in storage_client.storage_accounts.list():
            if not self._is_resource_in_scope(sa.id):
                continue

            sku_name = enum_value(sa.sku.name) if sa.sku else "Standard_LRS"
            prefix, redundancy = split_sku(sku_name)
            if prefix != "Standard":
                # Premium block blob / file accounts have no access tiers
                logger.info("azure.storage_account_skipped", account_id=sa.id, sku=sku_name)
                continue

            access_tier = enum_value(sa.access_tier) or "Hot"
            if not self._is_known_access_tier(access_tier):
                logger.warning(
                    "azure.storage_account_skipped",
                    account_id=sa.id,
                    access_tier=access_tier,
                )
                continue

            resource_group = parse_resource_group(sa.id)
            yield ResourceDescriptor(
                account_id=scope,
                account_name=account_name,
                resource_group=resource_group,
                resource_id=sa.id,
                resource_name=sa.name,
                region=sa.location,
                kind=ResourceKind.STORAGE_ACCOUNT,
                current_tier=access_tier,
                redundancy=redundancy,
                size_gb=0,
                created_at=sa.creation_time,
                tags=sa.tags or {},
                has_lifecycle_policy=self._has_lifecycle_policy(
                    storage_client, resource_group, sa.name
                ),
                https_only=sa.enable_https_traffic_only,
                min_tls_version=enum_value(sa.minimum_tls_version),
                allow_blob_public_access=sa.allow_blob_public_access,
            )

    def _is_known_access_tier(self, tier_id: str) -> bool:
        try:
            return self.catalog.spec_of(tier_id).storage_class == StorageClass.BLOB
        except CatalogError:
            return False

    def _has_lifecycle_policy(
        self, storage_client: StorageManagementClient, resource_group: str | None, name: str
    ) -> bool | None:
        try:
            storage_client.management_policies.get(resource_group, name, "default")
            return True
        except ResourceNotFoundError:
            return False
        except HttpResponseError as e:
            logger.warning(
                "azure.lifecycle_policy_unknown",
                storage_account=name,
                error=str(e),
            )
            return None


class AzureMonitorMetricsProvider(AzureClientBase, MetricsProvider):
    """
    Metrics provider backed by Azure Monitor.

    Requires the Monitoring Reader role.
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        granularity: timedelta = timedelta(hours=1),
    ) -> None:
        super().__init__(tenant_id, client_id, client_secret)
        self.granularity = granularity
        self._client: MetricsQueryClient | None = None

    @property
    def client(self) -> MetricsQueryClient:
        if self._client is None:
            self._client = MetricsQueryClient(self.credential)
        return self._client

    def fetch_metric(
        self, resource_id: str, metric_name: str, window: AnalysisWindow
    ) -> TimeSeries | None:
        aggregations = METRIC_AGGREGATIONS.get(metric_name, [MetricAggregationType.AVERAGE])
        try:
            response = self.client.query_resource(
                resource_uri=resource_id,
                metric_names=[metric_name],
                timespan=(window.start, window.end),
                granularity=self.granularity,
                aggregations=aggregations,
            )
        except HttpResponseError as e:
            logger.warning(
                "azure.metric_query_failed",
                resource_id=resource_id,
                metric=metric_name,
                error=str(e),
            )
            return None

        averages: list[float] = []
        maximums: list[float] = []
        totals: list[float] = []
        for metric in response.metrics:
            for ts in metric.timeseries or []:
                for data in ts.data:
                    if data.average is not None:
                        averages.append(data.average)
                    if data.maximum is not None:
                        maximums.append(data.maximum)
                    if data.total is not None:
                        totals.append(data.total)

        if not (averages or maximums or totals):
            return None
        return TimeSeries(
            metric_name=metric_name, averages=averages, maximums=maximums, totals=totals
        )


class AzureCostManagementBillingProvider(AzureClientBase, BillingProvider):
    """
    Billing provider backed by the Cost Management query API.

    Issues one query per subscription (actual pre-tax cost grouped by
    resource ID) and serves per-resource lookups from it.
    Requires the Cost Management Reader role.
    """

    def __init__(self, tenant_id: str, client_id: str, client_secret: str) -> None:
        super().__init__(tenant_id, client_id, client_secret)
        self._costs: dict[str, dict[str, float]] = {}
        self._lock = threading.Lock()

    def actual_cost(self, resource_id: str, window: AnalysisWindow) -> float | None:
        subscription_id = parse_subscription(resource_id)
        if subscription_id is None:
            return None

        with self._lock:
            if subscription_id not in self._costs:
                self._costs[subscription_id] = self._query_costs(subscription_id, window)
            costs = self._costs[subscription_id]

        cost = costs.get(resource_id.lower())
        if cost is None or window.days <= 0:
            return None
        return round(cost * 30 / window.days, 2)

    def _query_costs(self, subscription_id: str, window: AnalysisWindow) -> dict[str, float]:
        client = CostManagementClient(self.credential)
        query = QueryDefinition(
            type="ActualCost",
            timeframe="Custom",
            time_period=QueryTimePeriod(from_property=window.start, to=window.end),
            dataset=QueryDataset(
                aggregation={"totalCost": QueryAggregation(name="PreTaxCost", function="Sum")},
                grouping=[QueryGrouping(type="Dimension", name="ResourceId")],
            ),
        )
        try:
            result = client.query.usage(scope=f"/subscriptions/{subscription_id}", parameters=query)
        except HttpResponseError as e:
            logger.warning(
                "azure.cost_query_failed",
                subscription_id=subscription_id,
                error=str(e),
            )
            return {}

        return self._parse_rows(result)

    @staticmethod
    def _parse_rows(result: Any) -> dict[str, float]:
        names = [column.name for column in result.columns or []]
        try:
            cost_index = names.index("totalCost") if "totalCost" in names else names.index("PreTaxCost")
            id_index = names.index("ResourceId")
        except ValueError:
            return {}

        costs: dict[str, float] = {}
        for row in result.rows or []:
            resource_id = str(row[id_index]).lower()
            costs[resource_id] = costs.get(resource_id, 0.0) + float(row[cost_index])
        return costs
