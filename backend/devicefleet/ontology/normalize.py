"""Parsers for the free-form descriptive fields of a device record.

Every parser returns either ``Known`` (with the classified value) or
``Unknown`` (carrying the raw text), so callers decide how to treat an
unclassifiable field instead of silently receiving a default.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar, Union

import yaml

from devicefleet.shared.models import CostTier, OSFamily
from devicefleet.shared.utils import extract_with_regex, normalize_text

T = TypeVar("T")

_ONTOLOGY_CACHE: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class Known(Generic[T]):
    value: T
    rule: str = ""
    known: bool = True


@dataclass(frozen=True)
class Unknown:
    raw: str = ""
    known: bool = False


ParseResult = Union[Known[T], Unknown]


@dataclass(frozen=True)
class ProcessorInfo:
    vendor: str
    release_year: Optional[int] = None
    legacy: bool = False


def load_ontology() -> Dict[str, Any]:
    global _ONTOLOGY_CACHE
    if _ONTOLOGY_CACHE is not None:
        return _ONTOLOGY_CACHE

    path = os.path.join(os.path.dirname(__file__), "device_ontology.yaml")
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    _ONTOLOGY_CACHE = data
    return data


def parse_os_family(operating_system: Optional[str]) -> ParseResult[OSFamily]:
    text = normalize_text(operating_system)
    if not text:
        return Unknown(raw=operating_system or "")
    for entry in load_ontology().get("os_families", []):
        for keyword in entry.get("keywords", []):
            if keyword in text:
                return Known(value=entry["family"], rule=f"keyword:{keyword}")
    return Unknown(raw=operating_system or "")


def classify_os_family(operating_system: Optional[str]) -> OSFamily:
    result = parse_os_family(operating_system)
    return result.value if isinstance(result, Known) else "Unknown"


def pricing_platform(os_family: OSFamily) -> str:
    # Unknown systems are priced like the majority platform.
    return "Windows" if os_family == "Unknown" else os_family


def classify_cost_tier(device_model: Optional[str], operating_system: Optional[str]) -> CostTier:
    model = normalize_text(device_model)
    os_text = normalize_text(operating_system)
    tiers = load_ontology().get("cost_tiers", {})

    premium = tiers.get("premium", {})
    if any(keyword in model for keyword in premium.get("keywords", [])):
        return "premium"
    if "macos" in os_text and any(
        keyword in model for keyword in premium.get("macos_keywords", [])
    ):
        return "premium"

    if any(keyword in model for keyword in tiers.get("budget", {}).get("keywords", [])):
        return "budget"
    return "midRange"


def parse_ram_gb(ram: Optional[str]) -> ParseResult[float]:
    text = normalize_text(ram)
    if not text:
        return Unknown(raw=ram or "")

    match = re.search(r"(\d+(?:\.\d+)?)\s*(tb|gb|mb|g)\b", text)
    if match:
        amount = float(match.group(1))
        unit = match.group(2)
        if unit == "tb":
            amount *= 1024
        elif unit == "mb":
            amount /= 1024
        return Known(value=amount, rule=f"unit:{unit}")

    match = re.search(r"\b(\d+(?:\.\d+)?)\b", text)
    if match:
        return Known(value=float(match.group(1)), rule="bare-number")
    return Unknown(raw=ram or "")


def ram_tier(ram: Optional[str]) -> Optional[str]:
    result = parse_ram_gb(ram)
    if not isinstance(result, Known):
        return None
    if result.value < 8:
        return "under8GB"
    if result.value < 16:
        return "8GB"
    return "16GB+"


def parse_processor(processor: Optional[str]) -> ParseResult[ProcessorInfo]:
    text = normalize_text(processor)
    if not text:
        return Unknown(raw=processor or "")
    tables = load_ontology().get("processors", {})

    intel_markers = tables.get("intel_legacy_markers", [])
    if "intel" in text or re.search(r"\bi[3579]-\d", text) or any(m in text for m in intel_markers):
        generation = extract_with_regex(r"(\d+)(?:st|nd|rd|th)\s*gen", text)
        year = None
        if generation is not None:
            year = _lookup_year(tables.get("intel_generation_years", {}), int(generation))
        legacy = any(marker in text for marker in intel_markers)
        return Known(value=ProcessorInfo(vendor="intel", release_year=year, legacy=legacy), rule="intel")

    if "ryzen" in text:
        series = extract_with_regex(r"ryzen\s+\d+\s+(\d+)", text)
        year = None
        if series:
            year = _lookup_year(tables.get("ryzen_series_years", {}), int(series[0] + "000"))
        return Known(value=ProcessorInfo(vendor="amd", release_year=year), rule="ryzen")

    if "amd" in text:
        legacy = any(marker in text for marker in tables.get("amd_legacy_markers", []))
        return Known(value=ProcessorInfo(vendor="amd", legacy=legacy), rule="amd")

    apple_markers = tables.get("apple_markers", [])
    if any(re.search(rf"\b{re.escape(marker)}\b", text) for marker in apple_markers):
        return Known(value=ProcessorInfo(vendor="apple"), rule="apple")

    return Unknown(raw=processor or "")


def parse_os_release_year(operating_system: Optional[str]) -> ParseResult[int]:
    text = normalize_text(operating_system)
    years = load_ontology().get("os_release_years", {})
    if text in years:
        return Known(value=int(years[text]), rule="exact")
    return Unknown(raw=operating_system or "")


def _lookup_year(table: Dict[Any, Any], key: int) -> Optional[int]:
    value = table.get(key, table.get(str(key)))
    return int(value) if value is not None else None
