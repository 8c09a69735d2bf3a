"""Advisory alerts and the monthly snapshot derived from aggregate totals."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Union

from devicefleet.shared.models import AggregateTotals, BudgetAlert, BudgetSnapshot
from devicefleet.shared.utils import resolve_as_of, utc_now

DEFAULT_TOTAL_BUDGET = 20000.0


@dataclass(frozen=True)
class BudgetThresholds:
    high_usage: float = 90.0
    medium_usage: float = 75.0
    high_estimation: float = 5000.0


DEFAULT_THRESHOLDS = BudgetThresholds()


def usage_percentage(needed: float, total_budget: float) -> float:
    if total_budget <= 0:
        return 0.0
    return 100.0 * needed / total_budget


def evaluate_budget_alerts(
    totals: AggregateTotals,
    total_budget: float,
    now: Optional[datetime] = None,
    thresholds: Optional[BudgetThresholds] = None,
) -> List[BudgetAlert]:
    """At most one usage alert (exceeded, then 90%, then 75%) plus the independent high-estimation alert."""
    now = now or utc_now()
    thresholds = thresholds or DEFAULT_THRESHOLDS
    stamp = int(now.timestamp() * 1000)
    needed = totals.estimated_budget_needed
    usage = usage_percentage(needed, total_budget)

    alerts: List[BudgetAlert] = []
    if needed > total_budget:
        alerts.append(
            BudgetAlert(
                id=f"budget_exceeded_{stamp}",
                type="budget_exceeded",
                severity="critical",
                message=(
                    f"Budget needed (RM {needed:.0f}) exceeds available budget "
                    f"by RM {needed - total_budget:.0f}!"
                ),
                created_at=now,
            )
        )
    elif usage >= thresholds.high_usage:
        alerts.append(
            BudgetAlert(
                id=f"budget_warning_90_{stamp}",
                type="budget_warning",
                severity="high",
                message=f"Budget usage at {usage:.1f}% - approaching limit",
                created_at=now,
            )
        )
    elif usage >= thresholds.medium_usage:
        alerts.append(
            BudgetAlert(
                id=f"budget_warning_75_{stamp}",
                type="budget_warning",
                severity="medium",
                message=f"Budget usage at {usage:.1f}% - monitor spending",
                created_at=now,
            )
        )

    if needed > thresholds.high_estimation:
        alerts.append(
            BudgetAlert(
                id=f"high_estimation_{stamp}",
                type="repair_cost_high",
                severity="medium",
                message=f"High device replacement/repair costs estimated: RM {needed:.0f}",
                created_at=now,
            )
        )
    return alerts


def build_budget_snapshot(
    totals: AggregateTotals,
    total_budget: float,
    as_of: Optional[Union[date, datetime]] = None,
) -> BudgetSnapshot:
    day = resolve_as_of(as_of)
    needed = totals.estimated_budget_needed
    return BudgetSnapshot(
        month=f"{day.year}-{day.month:02d}",
        total_budget=total_budget,
        projected_spend=needed,
        remaining_budget=total_budget - needed,
        usage_percentage=usage_percentage(needed, total_budget),
    )


def budget_change_percentage(current: BudgetSnapshot, previous: Optional[BudgetSnapshot]) -> float:
    """Relative change in remaining budget against the previous snapshot."""
    if previous is None:
        return 0.0
    current_remaining = current.remaining_budget
    previous_remaining = previous.remaining_budget
    if previous_remaining == 0:
        return 100.0 if current_remaining > 0 else 0.0
    return (current_remaining - previous_remaining) / abs(previous_remaining) * 100.0
