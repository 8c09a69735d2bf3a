from datetime import date, datetime, timezone

import pytest

from devicefleet.intelligence.budget_alerts import (
    BudgetThresholds,
    budget_change_percentage,
    build_budget_snapshot,
    evaluate_budget_alerts,
    usage_percentage,
)
from devicefleet.shared.models import AggregateTotals, BudgetSnapshot

NOW = datetime(2025, 6, 1, 9, 30, tzinfo=timezone.utc)
STAMP = int(NOW.timestamp() * 1000)


def _totals(repairs: float, replacements: float = 0.0) -> AggregateTotals:
    return AggregateTotals(
        estimated_repairs_total=repairs,
        estimated_replacements_total=replacements,
    )


def _types(alerts):
    return [(alert.type, alert.severity) for alert in alerts]


def test_usage_percentage():
    assert usage_percentage(15000, 20000) == 75.0
    assert usage_percentage(100, 0) == 0.0
    assert usage_percentage(100, -5) == 0.0


def test_budget_exceeded_with_high_estimation():
    alerts = evaluate_budget_alerts(_totals(6000, 15000), 20000, now=NOW)
    assert _types(alerts) == [
        ("budget_exceeded", "critical"),
        ("repair_cost_high", "medium"),
    ]
    assert alerts[0].id == f"budget_exceeded_{STAMP}"
    assert alerts[0].message == "Budget needed (RM 21000) exceeds available budget by RM 1000!"
    assert alerts[1].id == f"high_estimation_{STAMP}"
    assert alerts[1].message == "High device replacement/repair costs estimated: RM 21000"
    assert all(alert.is_active for alert in alerts)
    assert all(alert.created_at == NOW for alert in alerts)


def test_medium_warning_at_seventy_five_percent():
    alerts = evaluate_budget_alerts(_totals(15000), 20000, now=NOW)
    assert _types(alerts) == [
        ("budget_warning", "medium"),
        ("repair_cost_high", "medium"),
    ]
    assert alerts[0].id == f"budget_warning_75_{STAMP}"
    assert alerts[0].message == "Budget usage at 75.0% - monitor spending"


def test_high_warning_at_ninety_percent():
    alerts = evaluate_budget_alerts(_totals(18000), 20000, now=NOW)
    assert alerts[0].type == "budget_warning"
    assert alerts[0].severity == "high"
    assert alerts[0].message == "Budget usage at 90.0% - approaching limit"


def test_exactly_at_budget_is_not_exceeded():
    alerts = evaluate_budget_alerts(_totals(20000), 20000, now=NOW)
    assert _types(alerts)[0] == ("budget_warning", "high")


def test_low_usage_has_no_alerts():
    assert evaluate_budget_alerts(_totals(4000), 20000, now=NOW) == []


def test_high_estimation_threshold_is_strict():
    assert evaluate_budget_alerts(_totals(5000), 20000, now=NOW) == []


def test_zero_budget():
    alerts = evaluate_budget_alerts(_totals(100), 0, now=NOW)
    assert _types(alerts) == [("budget_exceeded", "critical")]
    assert evaluate_budget_alerts(_totals(0), 0, now=NOW) == []


def test_custom_thresholds():
    thresholds = BudgetThresholds(high_usage=50, medium_usage=25, high_estimation=100000)
    alerts = evaluate_budget_alerts(_totals(6000), 20000, now=NOW, thresholds=thresholds)
    assert _types(alerts) == [("budget_warning", "medium")]


def test_budget_snapshot():
    snapshot = build_budget_snapshot(_totals(6000, 9000), 20000, date(2025, 3, 14))
    assert snapshot.month == "2025-03"
    assert snapshot.total_budget == 20000
    assert snapshot.projected_spend == 15000
    assert snapshot.remaining_budget == 5000
    assert snapshot.usage_percentage == 75.0


def _snapshot(remaining: float) -> BudgetSnapshot:
    return BudgetSnapshot(
        month="2025-06",
        total_budget=20000,
        projected_spend=20000 - remaining,
        remaining_budget=remaining,
        usage_percentage=0,
    )


@pytest.mark.parametrize(
    "current,previous,expected",
    [
        (5750, 11500, -50.0),
        (11500, 5750, 100.0),
        (10, 0, 100.0),
        (-5, 0, 0.0),
        (0, 0, 0.0),
        (-2000, -1000, -100.0),
    ],
)
def test_budget_change_percentage(current, previous, expected):
    assert budget_change_percentage(_snapshot(current), _snapshot(previous)) == expected


def test_budget_change_without_previous_month():
    assert budget_change_percentage(_snapshot(100), None) == 0.0
