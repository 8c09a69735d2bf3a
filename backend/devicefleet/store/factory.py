from __future__ import annotations

import logging
from typing import Optional

from devicefleet.config.settings import FleetSettings, get_settings
from devicefleet.store.base import DeviceStore
from devicefleet.store.firestore import FirestoreDeviceStore
from devicefleet.store.memory import InMemoryDeviceStore

logger = logging.getLogger(__name__)


def build_device_store(settings: Optional[FleetSettings] = None) -> DeviceStore:
    settings = settings or get_settings()
    if settings.store_backend == "firestore":
        if settings.firestore_configured:
            return FirestoreDeviceStore(
                project_id=settings.firestore_project_id or "",
                api_key=settings.firestore_api_key,
                token=settings.firestore_token,
                database=settings.firestore_database,
            )
        logger.warning("Firestore selected but not configured; using the in-memory store")
    return InMemoryDeviceStore()
