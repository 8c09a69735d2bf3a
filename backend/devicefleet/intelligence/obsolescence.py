"""Obsolescence criteria shared by the replacement flag and the upgrade KPI.

A policy is a named set of criteria plus thresholds. The aggregator receives
the policy it should apply instead of carrying its own ad-hoc predicates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, List, Optional, Union

from devicefleet.ontology.normalize import Known, parse_processor, parse_ram_gb
from devicefleet.shared.models import Device
from devicefleet.shared.utils import age_years, resolve_as_of

REPAIR_STATUSES = ("Broken", "Needs Repair")


class Criterion(str, Enum):
    AGE = "age"
    BROKEN_STATUS = "broken_status"
    NEEDS_ATTENTION_STATUS = "needs_attention_status"
    CPU_GENERATION = "cpu_generation"
    LOW_RAM = "low_ram"


def needs_repair_flag(status: str) -> bool:
    return status in REPAIR_STATUSES


def needs_replacement_flag(age: int, status: str, age_threshold: int = 8) -> bool:
    return age >= age_threshold or status == "Broken"


def cpu_is_obsolete(
    processor: Optional[str],
    as_of: Optional[Union[date, datetime]] = None,
    max_age_years: int = 8,
) -> bool:
    parsed = parse_processor(processor)
    if not isinstance(parsed, Known):
        return False
    info = parsed.value
    if info.legacy:
        return True
    cutoff_year = resolve_as_of(as_of).year - max_age_years
    return info.release_year is not None and info.release_year <= cutoff_year


def ram_is_below_minimum(ram: Optional[str], min_ram_gb: float = 8) -> bool:
    parsed = parse_ram_gb(ram)
    return isinstance(parsed, Known) and parsed.value < min_ram_gb


@dataclass(frozen=True)
class ObsolescencePolicy:
    name: str
    criteria: FrozenSet[Criterion] = field(default_factory=frozenset)
    age_threshold: int = 8
    min_ram_gb: float = 8
    cpu_max_age_years: int = 8

    def matched(
        self, device: Device, as_of: Optional[Union[date, datetime]] = None
    ) -> List[Criterion]:
        """Criteria of this policy that the device meets, in declaration order."""
        hits: List[Criterion] = []
        for criterion in Criterion:
            if criterion in self.criteria and self._check(criterion, device, as_of):
                hits.append(criterion)
        return hits

    def applies(self, device: Device, as_of: Optional[Union[date, datetime]] = None) -> bool:
        return bool(self.matched(device, as_of))

    def _check(
        self, criterion: Criterion, device: Device, as_of: Optional[Union[date, datetime]]
    ) -> bool:
        if criterion is Criterion.AGE:
            return age_years(device.created_at, as_of) >= self.age_threshold
        if criterion is Criterion.BROKEN_STATUS:
            return device.status == "Broken"
        if criterion is Criterion.NEEDS_ATTENTION_STATUS:
            return needs_repair_flag(device.status)
        if criterion is Criterion.CPU_GENERATION:
            return cpu_is_obsolete(device.processor, as_of, self.cpu_max_age_years)
        if criterion is Criterion.LOW_RAM:
            return ram_is_below_minimum(device.ram, self.min_ram_gb)
        return False


REPLACEMENT_POLICY = ObsolescencePolicy(
    name="replacement",
    criteria=frozenset({Criterion.AGE, Criterion.BROKEN_STATUS}),
)

UPGRADE_POLICY = ObsolescencePolicy(
    name="upgrade",
    criteria=frozenset(
        {Criterion.CPU_GENERATION, Criterion.LOW_RAM, Criterion.NEEDS_ATTENTION_STATUS}
    ),
)

PROCESSOR_POLICY = ObsolescencePolicy(
    name="processor",
    criteria=frozenset({Criterion.CPU_GENERATION}),
)
