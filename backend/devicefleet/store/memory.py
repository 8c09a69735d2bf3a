from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from devicefleet.shared.models import DEVICE_FIELDS, Device, DeviceData
from devicefleet.shared.utils import utc_now
from devicefleet.store.base import DeviceNotFoundError, DeviceStore

logger = logging.getLogger(__name__)


class InMemoryDeviceStore(DeviceStore):
    """Process-local device store guarded by a single lock."""

    def __init__(
        self,
        devices: Optional[Iterable[Device]] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._devices: Dict[str, Device] = {}
        for device in devices or []:
            self._devices[device.id] = device

    def list_devices(self) -> List[Device]:
        with self._lock:
            devices = list(self._devices.values())
        return sorted(devices, key=lambda device: device.created_at, reverse=True)

    def get_device(self, device_id: str) -> Device:
        with self._lock:
            device = self._devices.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device

    def add_device(self, data: DeviceData, created_at: Optional[datetime] = None) -> Device:
        now = self._clock()
        device = Device(
            id=uuid.uuid4().hex,
            created_at=created_at or now,
            updated_at=now,
            **data.model_dump(include=DEVICE_FIELDS),
        )
        with self._lock:
            self._devices[device.id] = device
        logger.debug("Added device %s for %s", device.id, device.department)
        return device

    def update_device(self, device_id: str, data: DeviceData) -> Device:
        with self._lock:
            current = self._devices.get(device_id)
            if current is None:
                raise DeviceNotFoundError(device_id)
            updated = Device(
                id=device_id,
                created_at=current.created_at,
                updated_at=self._clock(),
                **data.model_dump(include=DEVICE_FIELDS),
            )
            self._devices[device_id] = updated
        return updated

    def delete_device(self, device_id: str) -> None:
        with self._lock:
            if self._devices.pop(device_id, None) is None:
                raise DeviceNotFoundError(device_id)

    def search_devices(self, prefix: str) -> List[Device]:
        if not prefix.strip():
            return self.list_devices()
        with self._lock:
            matches = [d for d in self._devices.values() if d.staff_name.startswith(prefix)]
        return sorted(matches, key=lambda device: device.staff_name)

    def devices_by_department(self, department: str) -> List[Device]:
        return [device for device in self.list_devices() if device.department == department]
