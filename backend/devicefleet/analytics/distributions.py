from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from typing import Dict, Iterable, Optional, Union

from devicefleet.ontology.normalize import Known, parse_os_release_year
from devicefleet.shared.models import Device, FleetDistributions
from devicefleet.shared.utils import resolve_as_of


def compute_distributions(
    devices: Iterable[Device],
    as_of: Optional[Union[date, datetime]] = None,
) -> FleetDistributions:
    """Raw counts by status, type and department, plus OS age for recognised OS versions."""
    devices = list(devices)
    current_year = resolve_as_of(as_of).year

    os_age_years: Dict[str, int] = {}
    for device in devices:
        release = parse_os_release_year(device.operating_system)
        if isinstance(release, Known):
            os_age_years[device.operating_system] = max(0, current_year - release.value)

    return FleetDistributions(
        status=_count(device.status for device in devices),
        device_type=_count(device.device_type for device in devices),
        department=_count(device.department for device in devices),
        os_age_years=dict(sorted(os_age_years.items())),
    )


def _count(labels: Iterable[str]) -> Dict[str, int]:
    counts = Counter(labels)
    return {label: counts[label] for label in sorted(counts)}
