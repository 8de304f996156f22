"""Aggregation of recommendations into grouped summaries."""

from collections import defaultdict
from math import fsum
from typing import Iterable

from storage_advisor.schemas.recommendation import AnalysisSummary, GroupSummary, Recommendation


def savings_percentage(savings: float, current_cost: float) -> float:
    """Savings as a percentage of current cost (0 when there is no cost)."""
    if current_cost <= 0:
        return 0.0
    return round(savings / current_cost * 100, 2)


class _ResourceTotals:
    """Cost of one resource, counted once even when it carries several entries."""

    def __init__(self, recommendations: list[Recommendation]) -> None:
        first = recommendations[0]
        self.account_id = first.account_id
        self.current = max(r.current_monthly_cost for r in recommendations)
        # Axes are priced independently against the same current cost; the
        # combined saving cannot exceed removing the resource entirely
        self.savings = min(self.current, fsum(r.monthly_savings for r in recommendations))
        self.projected = self.current - self.savings
        self.measured = first.usage_measured


def _group(key: str, count: int, resources: list[_ResourceTotals]) -> GroupSummary:
    current = fsum(r.current for r in resources)
    savings = fsum(r.savings for r in resources)
    return GroupSummary(
        key=key,
        count=count,
        resource_count=len(resources),
        current_monthly_cost=round(current, 2),
        projected_monthly_cost=round(fsum(r.projected for r in resources), 2),
        monthly_savings=round(savings, 2),
        savings_percentage=savings_percentage(savings, current),
    )


def aggregate(recommendations: Iterable[Recommendation]) -> AnalysisSummary:
    """
    Summarize recommendations by account and by recommendation kind.

    Pure and order-independent: sums use math.fsum and groups are emitted
    in sorted key order, so any permutation of the input gives the same result.

    Account and overall totals count each resource's current cost once. Kind
    groups sum the entries of that kind.
    """
    recs = list(recommendations)

    by_resource: dict[str, list[Recommendation]] = defaultdict(list)
    for rec in recs:
        by_resource[rec.resource_id].append(rec)
    resources = {rid: _ResourceTotals(items) for rid, items in by_resource.items()}

    accounts: dict[str, list[_ResourceTotals]] = defaultdict(list)
    account_entries: dict[str, int] = defaultdict(int)
    for rid, totals in resources.items():
        accounts[totals.account_id].append(totals)
        account_entries[totals.account_id] += len(by_resource[rid])

    by_account = {
        account_id: _group(account_id, account_entries[account_id], accounts[account_id])
        for account_id in sorted(accounts)
    }

    kinds: dict[str, list[Recommendation]] = defaultdict(list)
    for rec in recs:
        kinds[rec.kind.value].append(rec)

    by_kind = {}
    for kind in sorted(kinds):
        items = kinds[kind]
        current = fsum(r.current_monthly_cost for r in items)
        savings = fsum(r.monthly_savings for r in items)
        by_kind[kind] = GroupSummary(
            key=kind,
            count=len(items),
            resource_count=len({r.resource_id for r in items}),
            current_monthly_cost=round(current, 2),
            projected_monthly_cost=round(fsum(r.projected_monthly_cost for r in items), 2),
            monthly_savings=round(savings, 2),
            savings_percentage=savings_percentage(savings, current),
        )

    all_resources = list(resources.values())
    total_current = fsum(r.current for r in all_resources)
    total_savings = fsum(r.savings for r in all_resources)
    measured = sum(1 for r in all_resources if r.measured)

    return AnalysisSummary(
        total_resources=len(all_resources),
        total_recommendations=len(recs),
        measured_resources=measured,
        estimated_resources=len(all_resources) - measured,
        total_current_cost=round(total_current, 2),
        total_projected_cost=round(fsum(r.projected for r in all_resources), 2),
        total_savings=round(total_savings, 2),
        savings_percentage=savings_percentage(total_savings, total_current),
        by_account=by_account,
        by_kind=by_kind,
    )
