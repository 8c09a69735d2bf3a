from datetime import datetime, timezone

import pytest
import requests

from devicefleet.shared.models import DeviceData
from devicefleet.store.base import DeviceNotFoundError, DeviceStoreError
from devicefleet.store.firestore import (
    PREFIX_SENTINEL,
    FirestoreDeviceStore,
    decode_value,
    encode_value,
)

DOCS_URL = "https://firestore.googleapis.com/v1/projects/fleet-test/databases/(default)/documents"


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.text = str(payload)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses=None, error=None):
        self.headers = {}
        self.calls = []
        self._responses = list(responses or [])
        self._error = error

    def request(self, method, url, params=None, json=None, timeout=None):
        self.calls.append({"method": method, "url": url, "params": params, "json": json})
        if self._error is not None:
            raise self._error
        return self._responses.pop(0)


def _document(doc_id, staff_name="Aisyah", department="HR"):
    return {
        "name": f"projects/fleet-test/databases/(default)/documents/devices/{doc_id}",
        "fields": {
            "staffName": {"stringValue": staff_name},
            "department": {"stringValue": department},
            "deviceType": {"stringValue": "Laptop"},
            "operatingSystem": {"stringValue": "Windows 11"},
            "status": {"stringValue": "Working"},
            "upgraded": {"booleanValue": True},
            "createdAt": {"timestampValue": "2019-04-01T08:00:00.123456789Z"},
        },
        "updateTime": "2024-01-02T00:00:00Z",
    }


def _store(session, **kwargs):
    return FirestoreDeviceStore(project_id="fleet-test", session=session, **kwargs)


def test_value_encoding():
    assert encode_value("x") == {"stringValue": "x"}
    assert encode_value(True) == {"booleanValue": True}
    assert encode_value(3) == {"integerValue": "3"}
    assert encode_value(1.5) == {"doubleValue": 1.5}
    assert encode_value(None) == {"nullValue": None}
    stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert encode_value(stamp) == {"timestampValue": "2024-05-01T12:00:00Z"}
    assert decode_value({"timestampValue": "2024-05-01T12:00:00Z"}) == stamp
    assert decode_value({"integerValue": "7"}) == 7
    assert decode_value({"nullValue": None}) is None


def test_list_devices_runs_ordered_query():
    session = FakeSession(
        [FakeResponse(payload=[{"document": _document("a1")}, {"readTime": "2024-01-01T00:00:00Z"}])]
    )
    devices = _store(session).list_devices()

    assert [d.id for d in devices] == ["a1"]
    assert devices[0].staff_name == "Aisyah"
    assert devices[0].created_at.year == 2019
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == f"{DOCS_URL}:runQuery"
    query = call["json"]["structuredQuery"]
    assert query["from"] == [{"collectionId": "devices"}]
    assert query["orderBy"] == [{"field": {"fieldPath": "createdAt"}, "direction": "DESCENDING"}]


def test_malformed_documents_are_skipped():
    broken = {"name": "projects/p/databases/d/documents/devices/bad", "fields": {}}
    session = FakeSession([FakeResponse(payload=[{"document": broken}, {"document": _document("ok")}])])
    assert [d.id for d in _store(session).list_devices()] == ["ok"]


def test_search_uses_prefix_range():
    session = FakeSession([FakeResponse(payload=[{"document": _document("a1")}])])
    _store(session).search_devices("Ai")

    where = session.calls[0]["json"]["structuredQuery"]["where"]["compositeFilter"]
    assert where["op"] == "AND"
    bounds = [f["fieldFilter"]["value"]["stringValue"] for f in where["filters"]]
    assert bounds == ["Ai", "Ai" + PREFIX_SENTINEL]


def test_blank_search_lists_everything():
    session = FakeSession([FakeResponse(payload=[])])
    assert _store(session).search_devices("") == []
    assert "where" not in session.calls[0]["json"]["structuredQuery"]


def test_devices_by_department_filters_on_equality():
    session = FakeSession([FakeResponse(payload=[])])
    _store(session).devices_by_department("AFC")
    where = session.calls[0]["json"]["structuredQuery"]["where"]
    assert where["fieldFilter"]["op"] == "EQUAL"
    assert where["fieldFilter"]["value"] == {"stringValue": "AFC"}


def test_add_device_writes_camel_case_fields():
    session = FakeSession([FakeResponse(payload=_document("new1"))])
    device = _store(session).add_device(
        DeviceData(staff_name="Aisyah", department="HR", device_type="Laptop")
    )
    assert device.id == "new1"
    fields = session.calls[0]["json"]["fields"]
    assert fields["staffName"] == {"stringValue": "Aisyah"}
    assert fields["deviceType"] == {"stringValue": "Laptop"}
    assert "timestampValue" in fields["createdAt"]
    assert session.calls[0]["url"] == f"{DOCS_URL}/devices"


def test_update_requires_existing_document():
    session = FakeSession([FakeResponse(status_code=404, payload={"error": {}})])
    with pytest.raises(DeviceNotFoundError):
        _store(session).update_device("gone", DeviceData(department="HR", device_type="Laptop"))
    params = session.calls[0]["params"]
    assert ("currentDocument.exists", "true") in params
    assert ("updateMask.fieldPaths", "staffName") in params


def test_get_missing_device():
    session = FakeSession([FakeResponse(status_code=404, payload={})])
    with pytest.raises(DeviceNotFoundError):
        _store(session).get_device("gone")


def test_upstream_error_status():
    session = FakeSession([FakeResponse(status_code=500, payload={})])
    with pytest.raises(DeviceStoreError):
        _store(session).list_devices()


def test_network_failure():
    session = FakeSession(error=requests.ConnectionError("down"))
    with pytest.raises(DeviceStoreError):
        _store(session).get_device("a1")


def test_api_key_is_sent_as_query_parameter():
    session = FakeSession([FakeResponse(payload=_document("a1"))])
    _store(session, api_key="secret").get_device("a1")
    assert ("key", "secret") in session.calls[0]["params"]
    assert "Authorization" not in session.headers


def test_token_is_sent_as_bearer_header():
    session = FakeSession([FakeResponse(payload=_document("a1"))])
    _store(session, token="tok", api_key="secret").get_device("a1")
    assert session.headers["Authorization"] == "Bearer tok"
    assert session.calls[0]["params"] is None
