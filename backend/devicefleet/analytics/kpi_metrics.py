from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from typing import Dict, Optional, Sequence, Union

from devicefleet.intelligence.obsolescence import (
    PROCESSOR_POLICY,
    UPGRADE_POLICY,
    ObsolescencePolicy,
)
from devicefleet.ontology.normalize import classify_os_family, ram_tier
from devicefleet.shared.models import (
    OS_FAMILIES,
    RAM_TIERS,
    Device,
    KPIMetrics,
    ProcessorStats,
    UpgradeStats,
)
from devicefleet.shared.utils import percent, resolve_as_of


def compute_kpi_metrics(
    devices: Sequence[Device],
    as_of: Optional[Union[date, datetime]] = None,
    upgrade_policy: ObsolescencePolicy = UPGRADE_POLICY,
    processor_policy: ObsolescencePolicy = PROCESSOR_POLICY,
) -> KPIMetrics:
    """Fleet health percentages; every ratio is 0 for an empty fleet.

    Devices whose RAM cannot be parsed are left out of every RAM tier, so
    ``ram_distribution`` need not sum to 100.
    """
    day = resolve_as_of(as_of)
    total = len(devices)

    needing_upgrade = sum(1 for device in devices if upgrade_policy.applies(device, day))
    upgraded = total - needing_upgrade
    below_spec = sum(1 for device in devices if processor_policy.applies(device, day))

    os_counts = Counter(classify_os_family(device.operating_system) for device in devices)
    ram_counts = Counter(ram_tier(device.ram) for device in devices)

    return KPIMetrics(
        total_devices=total,
        upgrade_percentage=percent(upgraded, total),
        upgrade_stats=UpgradeStats(upgraded=upgraded, total=total),
        os_distribution=_percentages(os_counts, OS_FAMILIES, total),
        processor_below_spec=percent(below_spec, total),
        processor_stats=ProcessorStats(below_spec=below_spec, total=total),
        ram_distribution=_percentages(ram_counts, RAM_TIERS, total),
    )


def _percentages(counts: Counter, labels: Sequence[str], total: int) -> Dict[str, int]:
    return {label: percent(counts.get(label, 0), total) for label in labels}
