from __future__ import annotations

import logging
import threading
import uuid
from typing import List

from devicefleet.shared.models import DepartmentRecord
from devicefleet.shared.utils import utc_now
from devicefleet.store.base import DepartmentNotFoundError, DuplicateDepartmentError

logger = logging.getLogger(__name__)

DEFAULT_DEPARTMENTS = (
    "MARKETING",
    "RUBIX",
    "CONVEY",
    "ACCOUNT",
    "HR",
    "LITIGATION",
    "SANCO",
    "POT/POC",
    "AFC",
    "RDHOMES",
    "QHOMES",
)


class DepartmentRegistry:
    """Admin-managed department labels. Deletion only deactivates a record."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: List[DepartmentRecord] = []

    def all_departments(self) -> List[DepartmentRecord]:
        with self._lock:
            return sorted(self._records, key=lambda record: record.created_at)

    def active_names(self) -> List[str]:
        return [record.name for record in self.all_departments() if record.is_active]

    def add(self, name: str) -> DepartmentRecord:
        normalized = name.strip().upper()
        if not normalized:
            raise ValueError("Department name must not be empty")
        with self._lock:
            if any(r.is_active and r.name.upper() == normalized for r in self._records):
                raise DuplicateDepartmentError(normalized)
            record = DepartmentRecord(id=uuid.uuid4().hex, name=normalized, created_at=utc_now())
            self._records.append(record)
        logger.info("Department %s added", normalized)
        return record

    def deactivate(self, name: str) -> DepartmentRecord:
        target = name.strip().upper()
        with self._lock:
            for index, record in enumerate(self._records):
                if record.is_active and record.name.upper() == target:
                    updated = record.model_copy(update={"is_active": False})
                    self._records[index] = updated
                    break
            else:
                raise DepartmentNotFoundError(target)
        logger.info("Department %s deactivated", target)
        return updated

    def initialize_defaults(self) -> int:
        """Seed the default departments when the registry is empty; returns how many were added."""
        with self._lock:
            if self._records:
                return 0
        for name in DEFAULT_DEPARTMENTS:
            self.add(name)
        return len(DEFAULT_DEPARTMENTS)
