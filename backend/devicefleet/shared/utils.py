from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Optional, Union


def normalize_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return re.sub(r"\s+", " ", str(text).strip().lower())


def extract_with_regex(pattern: str, text: str, group: int = 1) -> Optional[str]:
    match = re.search(pattern, text, flags=re.IGNORECASE)
    if not match:
        return None
    return match.group(group).strip()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so stored records stay comparable."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def resolve_as_of(as_of: Optional[Union[date, datetime]] = None) -> date:
    if as_of is None:
        return utc_now().date()
    if isinstance(as_of, datetime):
        return as_of.date()
    return as_of


def age_years(created_at: Union[date, datetime], as_of: Optional[Union[date, datetime]] = None) -> int:
    """Whole calendar years between purchase and ``as_of``; month and day are ignored."""
    current_year = resolve_as_of(as_of).year
    return max(0, current_year - created_at.year)


def percent(count: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(100 * count / total)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def round_to_step(value: float, step: int) -> float:
    if step <= 0:
        return float(value)
    return float(round_half_up(value / step) * step)
