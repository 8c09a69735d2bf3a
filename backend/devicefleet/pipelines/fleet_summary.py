from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Sequence, Union

from devicefleet.analytics.distributions import compute_distributions
from devicefleet.analytics.fleet_totals import compute_aggregate_totals
from devicefleet.analytics.kpi_metrics import compute_kpi_metrics
from devicefleet.intelligence.budget_alerts import (
    BudgetThresholds,
    build_budget_snapshot,
    evaluate_budget_alerts,
)
from devicefleet.observability.tracing import create_trace_id, trace_event
from devicefleet.shared.models import Device, FleetSummary
from devicefleet.shared.utils import utc_now

logger = logging.getLogger(__name__)


def build_fleet_summary(
    devices: Sequence[Device],
    total_budget: float,
    as_of: Optional[Union[date, datetime]] = None,
    trace_id: Optional[str] = None,
    thresholds: Optional[BudgetThresholds] = None,
) -> FleetSummary:
    """
    One pass over a device snapshot: totals, KPIs, distributions, budget and alerts.
    """
    trace_id = trace_id or create_trace_id()
    now = as_of if isinstance(as_of, datetime) else utc_now()
    day = as_of or now
    devices = list(devices)

    totals = compute_aggregate_totals(devices, day)
    trace_event(
        trace_id,
        "totals",
        inputs_ref={"device_count": len(devices)},
        outputs_ref={
            "estimated_repairs_total": totals.estimated_repairs_total,
            "estimated_replacements_total": totals.estimated_replacements_total,
        },
    )

    kpis = compute_kpi_metrics(devices, day)
    trace_event(
        trace_id,
        "kpis",
        outputs_ref={
            "upgrade_percentage": kpis.upgrade_percentage,
            "processor_below_spec": kpis.processor_below_spec,
        },
    )

    distributions = compute_distributions(devices, day)
    budget = build_budget_snapshot(totals, total_budget, day)
    alerts = evaluate_budget_alerts(totals, total_budget, now=now, thresholds=thresholds)
    trace_event(
        trace_id,
        "alerts",
        inputs_ref={"total_budget": total_budget},
        outputs_ref={
            "usage_percentage": budget.usage_percentage,
            "alert_ids": [alert.id for alert in alerts],
        },
    )

    logger.info(
        "Fleet summary %s: %s devices, RM %.0f needed of RM %.0f, %s alerts",
        trace_id,
        len(devices),
        totals.estimated_budget_needed,
        total_budget,
        len(alerts),
    )
    return FleetSummary(
        trace_id=trace_id,
        generated_at=now,
        total_devices=len(devices),
        totals=totals,
        kpi_metrics=kpis,
        distributions=distributions,
        budget=budget,
        alerts=alerts,
    )
