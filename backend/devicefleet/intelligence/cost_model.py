from __future__ import annotations

import copy
import logging
import math
import os
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import yaml

from devicefleet.intelligence.obsolescence import (
    REPLACEMENT_POLICY,
    ObsolescencePolicy,
    needs_repair_flag,
    needs_replacement_flag,
)
from devicefleet.ontology.normalize import classify_cost_tier, classify_os_family, pricing_platform
from devicefleet.shared.models import CostEstimate, CostTier, Device, OSFamily
from devicefleet.shared.utils import age_years, round_to_step

logger = logging.getLogger(__name__)

__all__ = [
    "AgeCurve",
    "DEFAULT_AGE_CURVE",
    "age_band_multiplier",
    "age_years",
    "estimate_age_based_repair",
    "estimate_device_cost",
    "estimation_explanation",
    "load_cost_tables",
    "needs_repair_flag",
    "needs_replacement_flag",
    "repair_cost",
    "replacement_cost",
]

# RM prices. Tablet and Phone have no table of their own and read the Laptop one.
DEFAULT_COST_TABLES: Dict[str, Any] = {
    "replacement": {
        "Laptop": {
            "Windows": {"budget": 2500, "midRange": 4000, "premium": 7000},
            "macOS": {"budget": 4500, "midRange": 6500, "premium": 12000},
            "Linux": {"budget": 2000, "midRange": 3500, "premium": 5500},
        },
        "Desktop": {
            "Windows": {"budget": 2000, "midRange": 3500, "premium": 8000},
            "macOS": {"budget": 6000, "midRange": 8500, "premium": 15000},
            "Linux": {"budget": 1800, "midRange": 3000, "premium": 6000},
        },
    },
    "replacement_defaults": {"Laptop": 3500, "Desktop": 3000, "Tablet": 1500, "Phone": 1200},
    "repair": {"Laptop": 800, "Desktop": 600, "Tablet": 400, "Phone": 300},
    "repair_fallback": 500,
    "table_aliases": {"Tablet": "Laptop", "Phone": "Laptop"},
    "age_bands": [[3, 0.20], [7, 0.50], [10, 0.80], [None, 1.00]],
    "rounding_step": 50,
}

_COST_TABLES_CACHE: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class AgeCurve:
    """Maps device age to the share of a cost basis that is expected to be spent.

    ``bands`` holds ``(max_age, fraction)`` pairs in ascending order; a
    ``max_age`` of ``None`` closes the curve.
    """

    bands: Tuple[Tuple[Optional[int], float], ...]

    def multiplier(self, age: int) -> float:
        for max_age, fraction in self.bands:
            if max_age is None or age <= max_age:
                return fraction
        return self.bands[-1][1] if self.bands else 1.0

    def band_label(self, age: int) -> str:
        lower = 0
        for max_age, _ in self.bands:
            if max_age is None:
                return f"{lower - 1}+" if lower else "0+"
            if age <= max_age:
                return f"{lower}-{max_age}"
            lower = max_age + 1
        return f"{lower}+"

    def apply(self, cost_basis: float, age: int) -> float:
        return cost_basis * self.multiplier(age)

    @classmethod
    def from_bands(cls, bands: Sequence[Sequence[Any]]) -> "AgeCurve":
        parsed = tuple(
            (None if max_age is None else int(max_age), float(fraction))
            for max_age, fraction in bands
        )
        return cls(bands=parsed)


DEFAULT_AGE_CURVE = AgeCurve.from_bands(DEFAULT_COST_TABLES["age_bands"])


def load_cost_tables() -> Dict[str, Any]:
    """Bundled cost tables, overlaid with the YAML file named by ``FLEET_COST_TABLES``.

    Unreadable files are skipped with a warning; the built-in defaults always
    back the result.
    """
    global _COST_TABLES_CACHE
    if _COST_TABLES_CACHE is not None:
        return _COST_TABLES_CACHE

    tables = copy.deepcopy(DEFAULT_COST_TABLES)
    bundled = os.path.join(os.path.dirname(__file__), "cost_tables.yaml")
    override = os.getenv("FLEET_COST_TABLES", "").strip()
    for path in (bundled, override):
        if not path:
            continue
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Ignoring cost tables at %s: %s", path, exc)
            continue
        if isinstance(data, dict):
            _deep_merge(tables, data)
            logger.debug("Cost tables loaded from %s", path)
    _COST_TABLES_CACHE = tables
    return tables


def reset_cost_tables_cache() -> None:
    global _COST_TABLES_CACHE
    _COST_TABLES_CACHE = None


def age_curve(tables: Optional[Dict[str, Any]] = None) -> AgeCurve:
    bands = (tables or load_cost_tables()).get("age_bands")
    return AgeCurve.from_bands(bands) if bands else DEFAULT_AGE_CURVE


def age_band_multiplier(age: int, curve: Optional[AgeCurve] = None) -> float:
    return (curve or age_curve()).multiplier(age)


def replacement_cost(
    device_type: str,
    os_family: OSFamily,
    cost_tier: CostTier,
    tables: Optional[Dict[str, Any]] = None,
) -> float:
    tables = tables or load_cost_tables()
    table_type = tables.get("table_aliases", {}).get(device_type, device_type)
    platform = pricing_platform(os_family)
    cell = (
        tables.get("replacement", {})
        .get(table_type, {})
        .get(platform, {})
        .get(cost_tier)
    )
    if cell:
        return float(cell)
    defaults = tables.get("replacement_defaults", {})
    return float(defaults.get(device_type, defaults.get("Laptop", 0)))


def repair_cost(device_type: str, tables: Optional[Dict[str, Any]] = None) -> float:
    tables = tables or load_cost_tables()
    return float(tables.get("repair", {}).get(device_type, tables.get("repair_fallback", 0)))


def estimate_device_cost(
    device: Device,
    as_of: Optional[Union[date, datetime]] = None,
    policy: ObsolescencePolicy = REPLACEMENT_POLICY,
    tables: Optional[Dict[str, Any]] = None,
) -> CostEstimate:
    tables = tables or load_cost_tables()
    age = age_years(device.created_at, as_of)
    os_family = classify_os_family(device.operating_system)
    tier = classify_cost_tier(device.device_model, device.operating_system)

    needs_repair = needs_repair_flag(device.status)
    needs_replacement = policy.applies(device, as_of)

    return CostEstimate(
        device_id=device.id,
        repair_cost=repair_cost(device.device_type, tables) if needs_repair else 0.0,
        replacement_cost=(
            replacement_cost(device.device_type, os_family, tier, tables)
            if needs_replacement
            else 0.0
        ),
        age_years=age,
        os_family=os_family,
        cost_tier=tier,
        needs_repair=needs_repair,
        needs_replacement=needs_replacement,
    )


def estimate_age_based_repair(
    device: Device,
    as_of: Optional[Union[date, datetime]] = None,
    tables: Optional[Dict[str, Any]] = None,
) -> float:
    """Expected spend to keep the device running: its replacement cost scaled by age."""
    tables = tables or load_cost_tables()
    basis = _replacement_basis(device, tables)
    age = age_years(device.created_at, as_of)
    estimate = age_curve(tables).apply(basis, age)
    return round_to_step(estimate, int(tables.get("rounding_step", 0)))


def estimation_explanation(
    device: Device,
    as_of: Optional[Union[date, datetime]] = None,
    tables: Optional[Dict[str, Any]] = None,
) -> str:
    tables = tables or load_cost_tables()
    curve = age_curve(tables)
    basis = _replacement_basis(device, tables)
    age = age_years(device.created_at, as_of)
    share = int(math.floor(curve.multiplier(age) * 100 + 0.5))
    return (
        f"{age} years old ({curve.band_label(age)} years) -> "
        f"{share}% of RM{basis:,.0f} replacement cost"
    )


def _replacement_basis(device: Device, tables: Dict[str, Any]) -> float:
    os_family = classify_os_family(device.operating_system)
    tier = classify_cost_tier(device.device_model, device.operating_system)
    return replacement_cost(device.device_type, os_family, tier, tables)


def _deep_merge(target: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = value
