"""Device store backed by the Firestore REST API.

Documents live in the ``devices`` collection with camelCase field names,
so records written by the admin web app are read unchanged.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from devicefleet.shared.models import DEVICE_FIELDS, Device, DeviceData
from devicefleet.shared.utils import ensure_utc, utc_now
from devicefleet.store.base import DeviceNotFoundError, DeviceStore, DeviceStoreError

logger = logging.getLogger(__name__)

FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"
COLLECTION_NAME = "devices"
# Last code point of the BMP private use area; closes a prefix range.
PREFIX_SENTINEL = "\uf8ff"

_FRACTION = re.compile(r"\.(\d{6})\d+")


def encode_value(value: Any) -> Dict[str, Any]:
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        stamp = ensure_utc(value).astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return {"timestampValue": stamp}
    return {"stringValue": str(value)}


def decode_value(value: Dict[str, Any]) -> Any:
    if "stringValue" in value:
        return value["stringValue"]
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "timestampValue" in value:
        return _parse_timestamp(value["timestampValue"])
    return None


def encode_fields(record: Dict[str, Any]) -> Dict[str, Any]:
    return {key: encode_value(item) for key, item in record.items()}


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: decode_value(item) for key, item in (fields or {}).items()}


class FirestoreDeviceStore(DeviceStore):
    def __init__(
        self,
        project_id: str,
        api_key: Optional[str] = None,
        token: Optional[str] = None,
        database: str = "(default)",
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.project_id = project_id
        self.api_key = api_key
        self.token = token
        self.database = database
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})
        logger.info("Firestore device store for project %s (%s)", project_id, database)

    @property
    def documents_url(self) -> str:
        return f"{FIRESTORE_BASE_URL}/projects/{self.project_id}/databases/{self.database}/documents"

    def list_devices(self) -> List[Device]:
        return self._run_query(order_by=[("createdAt", "DESCENDING")])

    def get_device(self, device_id: str) -> Device:
        response = self._request("GET", f"{self._collection_url}/{device_id}", device_id=device_id)
        return self._to_device(response.json())

    def add_device(self, data: DeviceData, created_at: Optional[datetime] = None) -> Device:
        now = utc_now()
        record = data.model_dump(by_alias=True, include=DEVICE_FIELDS)
        record["createdAt"] = created_at or now
        record["updatedAt"] = now
        response = self._request("POST", self._collection_url, json={"fields": encode_fields(record)})
        device = self._to_device(response.json())
        logger.info("Added device %s for %s", device.id, device.department)
        return device

    def update_device(self, device_id: str, data: DeviceData) -> Device:
        record = data.model_dump(by_alias=True, include=DEVICE_FIELDS)
        record["updatedAt"] = utc_now()
        params = [("updateMask.fieldPaths", key) for key in record]
        params.append(("currentDocument.exists", "true"))
        response = self._request(
            "PATCH",
            f"{self._collection_url}/{device_id}",
            params=params,
            json={"fields": encode_fields(record)},
            device_id=device_id,
        )
        return self._to_device(response.json())

    def delete_device(self, device_id: str) -> None:
        self._request(
            "DELETE",
            f"{self._collection_url}/{device_id}",
            params=[("currentDocument.exists", "true")],
            device_id=device_id,
        )

    def search_devices(self, prefix: str) -> List[Device]:
        if not prefix.strip():
            return self.list_devices()
        return self._run_query(
            filters=[
                ("staffName", "GREATER_THAN_OR_EQUAL", prefix),
                ("staffName", "LESS_THAN_OR_EQUAL", prefix + PREFIX_SENTINEL),
            ],
            order_by=[("staffName", "ASCENDING")],
        )

    def devices_by_department(self, department: str) -> List[Device]:
        return self._run_query(
            filters=[("department", "EQUAL", department)],
            order_by=[("createdAt", "DESCENDING")],
        )

    @property
    def _collection_url(self) -> str:
        return f"{self.documents_url}/{COLLECTION_NAME}"

    def _run_query(
        self,
        filters: Optional[List[tuple]] = None,
        order_by: Optional[List[tuple]] = None,
    ) -> List[Device]:
        query: Dict[str, Any] = {"from": [{"collectionId": COLLECTION_NAME}]}
        field_filters = [
            {
                "fieldFilter": {
                    "field": {"fieldPath": path},
                    "op": op,
                    "value": encode_value(value),
                }
            }
            for path, op, value in filters or []
        ]
        if len(field_filters) == 1:
            query["where"] = field_filters[0]
        elif field_filters:
            query["where"] = {"compositeFilter": {"op": "AND", "filters": field_filters}}
        if order_by:
            query["orderBy"] = [
                {"field": {"fieldPath": path}, "direction": direction}
                for path, direction in order_by
            ]

        response = self._request(
            "POST", f"{self.documents_url}:runQuery", json={"structuredQuery": query}
        )
        devices: List[Device] = []
        for row in response.json() or []:
            document = row.get("document")
            if not document:
                continue
            try:
                devices.append(self._to_device(document))
            except DeviceStoreError as exc:
                logger.warning("Skipping malformed device document: %s", exc)
        return devices

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[List[tuple]] = None,
        json: Optional[Dict[str, Any]] = None,
        device_id: Optional[str] = None,
    ) -> requests.Response:
        query = list(params or [])
        if self.api_key and not self.token:
            query.append(("key", self.api_key))
        try:
            response = self.session.request(
                method, url, params=query or None, json=json, timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.error("Firestore %s %s failed: %s", method, url, exc)
            raise DeviceStoreError(f"Firestore request failed: {exc}") from exc

        if response.status_code == 404 and device_id is not None:
            raise DeviceNotFoundError(device_id)
        if not response.ok:
            logger.error("Firestore %s %s returned %s: %s", method, url, response.status_code, response.text)
            raise DeviceStoreError(f"Firestore returned HTTP {response.status_code}")
        return response

    @staticmethod
    def _to_device(document: Dict[str, Any]) -> Device:
        name = document.get("name", "")
        record = decode_fields(document.get("fields", {}))
        record["id"] = name.rsplit("/", 1)[-1]
        if record.get("createdAt") is None:
            record["createdAt"] = _parse_timestamp(document.get("createTime")) or utc_now()
        if record.get("updatedAt") is None:
            record["updatedAt"] = _parse_timestamp(document.get("updateTime"))
        try:
            return Device.model_validate(record)
        except ValidationError as exc:
            raise DeviceStoreError(f"Invalid device document {name}: {exc}") from exc


def _parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    text = _FRACTION.sub(r".\1", raw.replace("Z", "+00:00"))
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None
