from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path, override=True)

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from devicefleet.analytics.fleet_totals import compute_aggregate_totals
from devicefleet.analytics.kpi_metrics import compute_kpi_metrics
from devicefleet.config.settings import FleetSettings, get_settings
from devicefleet.intelligence.budget_alerts import (
    budget_change_percentage,
    build_budget_snapshot,
    evaluate_budget_alerts,
)
from devicefleet.intelligence.cost_model import (
    estimate_age_based_repair,
    estimate_device_cost,
    estimation_explanation,
)
from devicefleet.intelligence.obsolescence import REPLACEMENT_POLICY, UPGRADE_POLICY
from devicefleet.pipelines.fleet_summary import build_fleet_summary
from devicefleet.shared.models import AggregateTotals, Device, DeviceData, KPIMetrics
from devicefleet.shared.utils import utc_now
from devicefleet.store.base import (
    DepartmentNotFoundError,
    DeviceNotFoundError,
    DeviceStore,
    DeviceStoreError,
    DuplicateDepartmentError,
)
from devicefleet.store.budget_history import BudgetHistory
from devicefleet.store.departments import DepartmentRegistry
from devicefleet.store.factory import build_device_store

from .cache import AnalyticsCache
from .schemas import (
    BudgetResponse,
    DepartmentListResponse,
    DepartmentRequest,
    DeviceCreateRequest,
    DeviceEstimateResponse,
    DeviceTransferRequest,
    HealthResponse,
    StaffTransferRequest,
    SummaryResponse,
)

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[DeviceStore] = None,
    settings: Optional[FleetSettings] = None,
    departments: Optional[DepartmentRegistry] = None,
    clock: Callable[[], datetime] = utc_now,
    cache: Optional[AnalyticsCache] = None,
) -> FastAPI:
    settings = settings or get_settings()
    store = store or build_device_store(settings)
    if departments is None:
        departments = DepartmentRegistry()
        departments.initialize_defaults()
    cache = cache or AnalyticsCache(ttl_seconds=settings.cache_ttl_seconds)
    history = BudgetHistory()

    app = FastAPI(title="Device Fleet API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def snapshot() -> List[Device]:
        try:
            return store.list_devices()
        except DeviceStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    def fetch(device_id: str) -> Device:
        try:
            return store.get_device(device_id)
        except DeviceNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except DeviceStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(store=settings.store_backend)

    @app.get("/devices", response_model=List[Device])
    def list_devices(department: Optional[str] = None) -> List[Device]:
        if department is None:
            return snapshot()
        try:
            return store.devices_by_department(department)
        except DeviceStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    @app.get("/devices/search", response_model=List[Device])
    def search_devices(q: str = Query("", description="Staff name prefix")) -> List[Device]:
        try:
            return store.search_devices(q)
        except DeviceStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    @app.post("/devices", response_model=Device, status_code=201)
    def add_device(payload: DeviceCreateRequest) -> Device:
        data = DeviceData.model_validate(payload.model_dump(exclude={"created_at"}))
        try:
            device = store.add_device(data, created_at=payload.created_at)
        except DeviceStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        cache.invalidate()
        return device

    @app.get("/devices/{device_id}", response_model=Device)
    def get_device(device_id: str) -> Device:
        return fetch(device_id)

    @app.put("/devices/{device_id}", response_model=Device)
    def update_device(device_id: str, payload: DeviceData) -> Device:
        try:
            device = store.update_device(device_id, payload)
        except DeviceNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except DeviceStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        cache.invalidate()
        return device

    @app.delete("/devices/{device_id}", status_code=204)
    def delete_device(device_id: str) -> None:
        try:
            store.delete_device(device_id)
        except DeviceNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except DeviceStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        cache.invalidate()

    @app.get("/devices/{device_id}/estimate", response_model=DeviceEstimateResponse)
    def device_estimate(device_id: str) -> DeviceEstimateResponse:
        device = fetch(device_id)
        as_of = clock()
        return DeviceEstimateResponse(
            estimate=estimate_device_cost(device, as_of),
            age_based_repair=estimate_age_based_repair(device, as_of),
            explanation=estimation_explanation(device, as_of),
            replacement_criteria=[c.value for c in REPLACEMENT_POLICY.matched(device, as_of)],
            upgrade_criteria=[c.value for c in UPGRADE_POLICY.matched(device, as_of)],
        )

    @app.post("/devices/{device_id}/transfer", response_model=Device)
    def transfer_device(device_id: str, payload: DeviceTransferRequest) -> Device:
        try:
            device = store.transfer_device(device_id, payload.department)
        except DeviceNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except DeviceStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        cache.invalidate()
        return device

    @app.post("/staff/transfer", response_model=List[Device])
    def transfer_staff(payload: StaffTransferRequest) -> List[Device]:
        try:
            moved = store.transfer_staff(
                payload.from_department, payload.to_department, payload.staff_names
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except DeviceStoreError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        cache.invalidate()
        return moved

    @app.get("/departments", response_model=DepartmentListResponse)
    def list_departments() -> DepartmentListResponse:
        return DepartmentListResponse(departments=departments.active_names())

    @app.post("/departments", response_model=DepartmentListResponse, status_code=201)
    def add_department(payload: DepartmentRequest) -> DepartmentListResponse:
        try:
            departments.add(payload.name)
        except DuplicateDepartmentError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return DepartmentListResponse(departments=departments.active_names())

    @app.delete("/departments/{name}", response_model=DepartmentListResponse)
    def delete_department(name: str) -> DepartmentListResponse:
        try:
            departments.deactivate(name)
        except DepartmentNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return DepartmentListResponse(departments=departments.active_names())

    @app.get("/analytics/summary", response_model=SummaryResponse)
    def analytics_summary() -> SummaryResponse:
        hit = cache.get()
        if hit is not None:
            summary, age = hit
            return summary.model_copy(update={"cached": True, "cache_age": age})

        summary = build_fleet_summary(snapshot(), settings.total_budget, as_of=clock())
        response = SummaryResponse.model_validate(
            {**summary.model_dump(), "cached": False, "cache_age": 0}
        )
        cache.set(response)
        return response

    @app.get("/analytics/totals", response_model=AggregateTotals)
    def analytics_totals() -> AggregateTotals:
        return compute_aggregate_totals(snapshot(), clock())

    @app.get("/analytics/kpis", response_model=KPIMetrics)
    def analytics_kpis() -> KPIMetrics:
        return compute_kpi_metrics(snapshot(), clock())

    @app.get("/budget", response_model=BudgetResponse)
    def budget() -> BudgetResponse:
        now = clock()
        totals = compute_aggregate_totals(snapshot(), now)
        current = build_budget_snapshot(totals, settings.total_budget, now)
        previous = history.record(current)
        return BudgetResponse(
            snapshot=current,
            change_percentage=budget_change_percentage(current, previous),
            alerts=evaluate_budget_alerts(totals, settings.total_budget, now=now),
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
