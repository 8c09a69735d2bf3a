from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from devicefleet.shared.utils import ensure_utc

DeviceType = Literal["Laptop", "Desktop", "Tablet", "Phone"]
DeviceStatus = Literal["Working", "Broken", "Needs Repair"]
Ownership = Literal["Company-owned", "Personal"]
OSFamily = Literal["Windows", "macOS", "iOS", "Android", "Linux", "Unknown"]
CostTier = Literal["budget", "midRange", "premium"]
AlertType = Literal["budget_exceeded", "budget_warning", "repair_cost_high"]
AlertSeverity = Literal["low", "medium", "high", "critical"]

OS_FAMILIES = get_args(OSFamily)
RAM_TIERS = ("under8GB", "8GB", "16GB+")


class DeviceData(BaseModel):
    """Editable part of a device record, as submitted by the admin form."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    staff_name: str = ""
    department: str = Field(..., min_length=1)
    device_type: DeviceType
    device_model: str = ""
    operating_system: str = ""
    processor: str = ""
    ram: str = ""
    storage: str = ""
    graphics: str = ""
    status: DeviceStatus = "Working"
    ownership: Optional[Ownership] = None
    notes: Optional[str] = None


DEVICE_FIELDS = set(DeviceData.model_fields)


class Device(DeviceData):
    """A staff-assigned device as held by the record store.

    ``created_at`` doubles as the purchase date when estimating age.
    """

    id: str = Field(..., min_length=1)
    created_at: datetime
    updated_at: Optional[datetime] = None

    utc_timestamps = field_validator("created_at", "updated_at")(ensure_utc)


class BucketTotals(BaseModel):
    repair: float = 0.0
    replacement: float = 0.0
    count: int = 0


class CostEstimate(BaseModel):
    device_id: str
    repair_cost: float = Field(ge=0)
    replacement_cost: float = Field(ge=0)
    age_years: int = Field(ge=0)
    os_family: OSFamily
    cost_tier: CostTier
    needs_repair: bool
    needs_replacement: bool


class AggregateTotals(BaseModel):
    total_devices: int = 0
    estimated_repairs_total: float = 0.0
    estimated_replacements_total: float = 0.0
    by_department: Dict[str, BucketTotals] = Field(default_factory=dict)
    by_os: Dict[str, BucketTotals] = Field(default_factory=dict)
    by_device_type: Dict[str, BucketTotals] = Field(default_factory=dict)
    repair_device_ids: List[str] = Field(default_factory=list)
    replacement_device_ids: List[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def estimated_budget_needed(self) -> float:
        return self.estimated_repairs_total + self.estimated_replacements_total


class UpgradeStats(BaseModel):
    upgraded: int = 0
    total: int = 0


class ProcessorStats(BaseModel):
    below_spec: int = 0
    total: int = 0


class KPIMetrics(BaseModel):
    total_devices: int = 0
    upgrade_percentage: int = 0
    upgrade_stats: UpgradeStats = Field(default_factory=UpgradeStats)
    os_distribution: Dict[str, int] = Field(default_factory=dict)
    processor_below_spec: int = 0
    processor_stats: ProcessorStats = Field(default_factory=ProcessorStats)
    ram_distribution: Dict[str, int] = Field(default_factory=dict)


class BudgetAlert(BaseModel):
    id: str
    type: AlertType
    severity: AlertSeverity
    message: str
    is_active: bool = True
    created_at: datetime


class BudgetSnapshot(BaseModel):
    month: str
    total_budget: float
    projected_spend: float
    remaining_budget: float
    usage_percentage: float


class FleetDistributions(BaseModel):
    status: Dict[str, int] = Field(default_factory=dict)
    device_type: Dict[str, int] = Field(default_factory=dict)
    department: Dict[str, int] = Field(default_factory=dict)
    os_age_years: Dict[str, int] = Field(default_factory=dict)


class FleetSummary(BaseModel):
    trace_id: str
    generated_at: datetime
    total_devices: int
    totals: AggregateTotals
    kpi_metrics: KPIMetrics
    distributions: FleetDistributions
    budget: BudgetSnapshot
    alerts: List[BudgetAlert] = Field(default_factory=list)


class DepartmentRecord(BaseModel):
    id: str
    name: str = Field(..., min_length=1)
    is_active: bool = True
    created_at: datetime
