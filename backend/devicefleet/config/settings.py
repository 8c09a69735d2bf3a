from __future__ import annotations

import logging
import os
from typing import Optional

from devicefleet.intelligence.budget_alerts import DEFAULT_TOTAL_BUDGET

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("memory", "firestore")


class FleetSettings:
    """Runtime configuration read from the environment."""

    def __init__(self) -> None:
        self.total_budget = _float_env("FLEET_TOTAL_BUDGET", DEFAULT_TOTAL_BUDGET)
        self.cache_ttl_seconds = _float_env("FLEET_CACHE_TTL_SECONDS", 60.0)
        self.store_backend = (os.getenv("FLEET_STORE") or "memory").strip().lower()
        self.firestore_project_id = os.getenv("FIRESTORE_PROJECT_ID")
        self.firestore_api_key = os.getenv("FIRESTORE_API_KEY")
        self.firestore_token = os.getenv("FIRESTORE_TOKEN")
        self.firestore_database = os.getenv("FIRESTORE_DATABASE") or "(default)"
        self._validate()

    def _validate(self) -> None:
        if self.store_backend not in STORE_BACKENDS:
            logger.warning(
                "Unknown FLEET_STORE %r, falling back to the in-memory store", self.store_backend
            )
            self.store_backend = "memory"
        if self.store_backend == "firestore" and not self.firestore_configured:
            logger.warning(
                "Firestore not fully configured. Set FIRESTORE_PROJECT_ID and "
                "FIRESTORE_TOKEN or FIRESTORE_API_KEY"
            )

    @property
    def firestore_configured(self) -> bool:
        return bool(self.firestore_project_id and (self.firestore_token or self.firestore_api_key))


def get_settings() -> FleetSettings:
    return FleetSettings()


def _float_env(name: str, default: float) -> float:
    raw: Optional[str] = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default
