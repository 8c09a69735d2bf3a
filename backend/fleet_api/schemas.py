from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from devicefleet.shared.models import (
    BudgetAlert,
    BudgetSnapshot,
    CostEstimate,
    DeviceData,
    FleetSummary,
)
from devicefleet.shared.utils import ensure_utc


class HealthResponse(BaseModel):
    status: str = "ok"
    store: str = "memory"


class DeviceCreateRequest(DeviceData):
    # Purchase date for devices registered after the fact; defaults to now.
    created_at: Optional[datetime] = None

    utc_created_at = field_validator("created_at")(ensure_utc)


class DeviceTransferRequest(BaseModel):
    department: str = Field(..., min_length=1)


class StaffTransferRequest(BaseModel):
    from_department: str = Field(..., min_length=1)
    to_department: str = Field(..., min_length=1)
    staff_names: List[str] = Field(..., min_length=1)


class DepartmentRequest(BaseModel):
    name: str = Field(..., min_length=1)


class DepartmentListResponse(BaseModel):
    departments: List[str]


class DeviceEstimateResponse(BaseModel):
    estimate: CostEstimate
    age_based_repair: float
    explanation: str
    replacement_criteria: List[str] = Field(default_factory=list)
    upgrade_criteria: List[str] = Field(default_factory=list)


class SummaryResponse(FleetSummary):
    cached: bool = False
    cache_age: int = 0


class BudgetResponse(BaseModel):
    snapshot: BudgetSnapshot
    change_percentage: float = 0.0
    alerts: List[BudgetAlert] = Field(default_factory=list)
