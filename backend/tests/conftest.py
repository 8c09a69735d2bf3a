"""Pytest fixtures for backend tests (cost model, aggregation, stores, API)."""
import sys
from datetime import date, datetime, timezone
from itertools import count
from pathlib import Path

import pytest

# Ensure backend is on path
backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from devicefleet.intelligence.cost_model import reset_cost_tables_cache  # noqa: E402
from devicefleet.shared.models import Device  # noqa: E402

AS_OF = date(2025, 6, 1)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("FLEET_TRACE_DIR", str(tmp_path / "traces"))
    monkeypatch.delenv("FLEET_COST_TABLES", raising=False)
    monkeypatch.delenv("FLEET_STORE", raising=False)
    monkeypatch.delenv("FLEET_TOTAL_BUDGET", raising=False)
    reset_cost_tables_cache()
    yield
    reset_cost_tables_cache()


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def make_device():
    ids = count(1)

    def _make(purchased_year=2023, **overrides):
        fields = {
            "id": f"dev-{next(ids)}",
            "staff_name": "Staff",
            "department": "HR",
            "device_type": "Laptop",
            "device_model": "Dell Latitude 7420",
            "operating_system": "Windows 11",
            "processor": "Intel Core i7-11th Gen",
            "ram": "16GB",
            "status": "Working",
            "created_at": datetime(purchased_year, 3, 1, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        return Device(**fields)

    return _make
