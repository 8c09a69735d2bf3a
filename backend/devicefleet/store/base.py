from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional

from devicefleet.shared.models import Device, DeviceData


class DeviceStoreError(RuntimeError):
    """Upstream record store failure."""


class DeviceNotFoundError(LookupError):
    def __init__(self, device_id: str) -> None:
        super().__init__(f"Device not found: {device_id}")
        self.device_id = device_id


class DuplicateDepartmentError(ValueError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Department already exists: {name}")
        self.name = name


class DepartmentNotFoundError(LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Department not found or already inactive: {name}")
        self.name = name


class DeviceStore(ABC):
    """CRUD and prefix search over device records keyed by an opaque id."""

    @abstractmethod
    def list_devices(self) -> List[Device]:
        """All devices, newest ``created_at`` first."""

    @abstractmethod
    def get_device(self, device_id: str) -> Device:
        ...

    @abstractmethod
    def add_device(self, data: DeviceData, created_at: Optional[datetime] = None) -> Device:
        ...

    @abstractmethod
    def update_device(self, device_id: str, data: DeviceData) -> Device:
        ...

    @abstractmethod
    def delete_device(self, device_id: str) -> None:
        ...

    @abstractmethod
    def search_devices(self, prefix: str) -> List[Device]:
        """Devices whose staff name starts with ``prefix``; a blank prefix returns everything."""

    @abstractmethod
    def devices_by_department(self, department: str) -> List[Device]:
        ...

    def transfer_device(self, device_id: str, department: str) -> Device:
        device = self.get_device(device_id)
        payload = device.model_dump(exclude={"id", "created_at", "updated_at"})
        payload["department"] = department
        return self.update_device(device_id, DeviceData.model_validate(payload))

    def transfer_staff(
        self, from_department: str, to_department: str, staff_names: Iterable[str]
    ) -> List[Device]:
        """Move every device held by the named staff from one department to another."""
        if from_department == to_department:
            raise ValueError("Source and destination departments match")
        names = set(staff_names)
        moved: List[Device] = []
        for device in self.devices_by_department(from_department):
            if device.staff_name in names:
                moved.append(self.transfer_device(device.id, to_department))
        return moved
