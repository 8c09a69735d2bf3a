from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Union

from devicefleet.intelligence.cost_model import estimate_device_cost
from devicefleet.intelligence.obsolescence import REPLACEMENT_POLICY, ObsolescencePolicy
from devicefleet.shared.models import AggregateTotals, BucketTotals, CostEstimate, Device
from devicefleet.shared.utils import resolve_as_of

logger = logging.getLogger(__name__)


def compute_aggregate_totals(
    devices: Iterable[Device],
    as_of: Optional[Union[date, datetime]] = None,
    replacement_policy: ObsolescencePolicy = REPLACEMENT_POLICY,
) -> AggregateTotals:
    """Fold per-device cost estimates into department, OS-family and device-type buckets.

    Every device lands in exactly one bucket per grouping, whether or not it
    costs anything. A device needing both repair and replacement is counted
    in both totals.
    """
    day = resolve_as_of(as_of)
    by_department: Dict[str, BucketTotals] = {}
    by_os: Dict[str, BucketTotals] = {}
    by_device_type: Dict[str, BucketTotals] = {}
    repair_ids: List[str] = []
    replacement_ids: List[str] = []
    repairs_total = 0.0
    replacements_total = 0.0
    total = 0

    for device in devices:
        estimate = estimate_device_cost(device, day, replacement_policy)
        total += 1
        repairs_total += estimate.repair_cost
        replacements_total += estimate.replacement_cost
        for buckets, label in (
            (by_department, device.department),
            (by_os, estimate.os_family),
            (by_device_type, device.device_type),
        ):
            _accumulate(buckets, label, estimate)
        if estimate.needs_repair:
            repair_ids.append(device.id)
        if estimate.needs_replacement:
            replacement_ids.append(device.id)

    logger.debug(
        "Aggregated %s devices: repairs=%s replacements=%s",
        total,
        repairs_total,
        replacements_total,
    )
    return AggregateTotals(
        total_devices=total,
        estimated_repairs_total=repairs_total,
        estimated_replacements_total=replacements_total,
        by_department=_sorted(by_department),
        by_os=_sorted(by_os),
        by_device_type=_sorted(by_device_type),
        repair_device_ids=sorted(repair_ids),
        replacement_device_ids=sorted(replacement_ids),
    )


def _accumulate(buckets: Dict[str, BucketTotals], label: str, estimate: CostEstimate) -> None:
    bucket = buckets.setdefault(label, BucketTotals())
    bucket.count += 1
    bucket.repair += estimate.repair_cost
    bucket.replacement += estimate.replacement_cost


def _sorted(buckets: Dict[str, BucketTotals]) -> Dict[str, BucketTotals]:
    return {label: buckets[label] for label in sorted(buckets)}
