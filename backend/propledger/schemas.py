# backend/propledger/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional, List

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from .domain.appliance_status import normalize_appliance_status

Urgency = Literal["critical", "high", "medium", "low"]
IssueStatus = Literal["open", "scheduled", "in_progress", "resolved", "cancelled"]
MaintenanceType = Literal["routine", "repair", "inspection", "replacement", "cleaning", "upgrade"]
MaintenanceStatus = Literal["scheduled", "in_progress", "completed", "cancelled"]
PaymentStatus = Literal["paid", "late", "partial"]


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


# -------------------- Auth --------------------

class RegisterIn(BaseModel):
    email: str
    password: str
    name: str


class LoginIn(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str
    model_config = ConfigDict(from_attributes=True)


class PrincipalOut(BaseModel):
    user_id: int
    email: str
    role: str


# -------------------- Properties --------------------

class PropertyCreate(BaseModel):
    address: str
    property_type: Optional[str] = None
    monthly_rent: Optional[float] = Field(default=None, ge=0)

    @field_validator("address")
    @classmethod
    def address_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Address is required")
        return v.strip()


class PropertyOut(PropertyCreate):
    id: int
    user_id: int
    created_at: datetime
    appliance_count: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


# -------------------- Appliances --------------------

def _appliance_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    if not v.strip():
        raise ValueError("Appliance name is required")
    return v.strip()


# legacy synonyms are translated here so they never reach the table
def _appliance_status(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    return normalize_appliance_status(v)


class ApplianceCreate(BaseModel):
    property_id: int
    name: str
    type: Optional[str] = None
    installation_date: Optional[date] = None
    status: str = Field(default="working", validate_default=True)

    name_required = field_validator("name")(_appliance_name)
    status_canonical = field_validator("status")(_appliance_status)


class ApplianceUpdate(BaseModel):
    """Only the fields a client sends are applied; the rollups are not writable."""

    name: Optional[str] = None
    type: Optional[str] = None
    installation_date: Optional[date] = None
    status: Optional[str] = None

    name_required = field_validator("name")(_appliance_name)
    status_canonical = field_validator("status")(_appliance_status)


class ApplianceOut(BaseModel):
    id: int
    property_id: int
    name: str
    type: Optional[str] = None
    installation_date: Optional[date] = None
    status: str
    has_open_issues: bool
    urgency_level: Optional[str] = None
    last_maintenance: Optional[date] = None
    last_maintenance_cost: Optional[float] = None
    maintenance_count: int
    total_maintenance_cost: float
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# -------------------- Maintenance --------------------

class MaintenanceRecordCreate(BaseModel):
    appliance_id: int
    maintenance_type: MaintenanceType
    description: str
    cost: Optional[float] = Field(default=None, ge=0)
    technician_name: Optional[str] = None
    technician_company: Optional[str] = None
    maintenance_date: date
    next_due_date: Optional[date] = None
    notes: Optional[str] = None
    parts_replaced: Optional[List[str]] = None
    warranty_until: Optional[date] = None
    status: Optional[MaintenanceStatus] = None

    blank_cost = field_validator("cost", mode="before")(_blank_to_none)

    @field_validator("description")
    @classmethod
    def description_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("description is required")
        return v.strip()

    @model_validator(mode="after")
    def date_order(self):
        if self.next_due_date is not None and self.next_due_date <= self.maintenance_date:
            raise ValueError("next_due_date must be after maintenance_date")
        if self.warranty_until is not None and self.warranty_until < self.maintenance_date:
            raise ValueError("warranty_until cannot be before maintenance_date")
        return self


class MaintenanceRecordUpdate(BaseModel):
    # unknown keys are dropped; null values are ignored by the service
    model_config = ConfigDict(extra="ignore")

    maintenance_type: Optional[MaintenanceType] = None
    description: Optional[str] = None
    cost: Optional[float] = Field(default=None, ge=0)
    technician_name: Optional[str] = None
    technician_company: Optional[str] = None
    maintenance_date: Optional[date] = None
    next_due_date: Optional[date] = None
    notes: Optional[str] = None
    parts_replaced: Optional[List[str]] = None
    warranty_until: Optional[date] = None
    status: Optional[MaintenanceStatus] = None

    blank_cost = field_validator("cost", mode="before")(_blank_to_none)


class MaintenanceRecordOut(BaseModel):
    id: int
    appliance_id: int
    maintenance_type: str
    description: str
    cost: Optional[float] = None
    technician_name: Optional[str] = None
    technician_company: Optional[str] = None
    maintenance_date: date
    next_due_date: Optional[date] = None
    notes: Optional[str] = None
    parts_replaced: Optional[List[str]] = None
    warranty_until: Optional[date] = None
    status: str
    created_at: datetime
    updated_at: datetime

    appliance_name: Optional[str] = None
    property_address: Optional[str] = None
    # set on create only
    resolved_issue_count: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


# -------------------- Issues --------------------

class IssueCreate(BaseModel):
    appliance_id: int
    title: str
    description: str
    urgency: Optional[Urgency] = None
    reported_date: Optional[date] = None

    @field_validator("title", "description")
    @classmethod
    def required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("title and description are required")
        return v


class IssueUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    urgency: Optional[Urgency] = None
    status: Optional[IssueStatus] = None
    scheduled_date: Optional[date] = None
    resolved_date: Optional[date] = None
    resolution_notes: Optional[str] = None
    maintenance_record_id: Optional[int] = None


class IssueOut(BaseModel):
    id: int
    appliance_id: int
    title: str
    description: str
    urgency: str
    status: str
    reported_date: date
    reported_by: Optional[int] = None
    scheduled_date: Optional[date] = None
    resolved_date: Optional[date] = None
    resolution_notes: Optional[str] = None
    maintenance_record_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    appliance_name: Optional[str] = None
    property_address: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# -------------------- Rent --------------------

class RentPaymentCreate(BaseModel):
    property_id: int
    amount: float = Field(gt=0)
    payment_date: date
    due_date: date
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[PaymentStatus] = None
    late_fee_amount: Optional[float] = Field(default=None, ge=0)


class RentPaymentOut(BaseModel):
    id: int
    property_id: int
    amount: float
    payment_date: date
    due_date: date
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    status: str
    late_fee_amount: float
    created_at: datetime

    property_address: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RentStatusOut(BaseModel):
    property_id: int
    property_address: str
    monthly_rent: Optional[float] = None
    last_payment_date: Optional[date] = None
    last_payment_amount: Optional[float] = None
    total_collected_this_month: float
    total_collected_this_year: float
    days_since_last_payment: Optional[int] = None
    rent_status: str


# -------------------- Analytics --------------------

class PropertyAnalyticsOut(BaseModel):
    property_id: int
    property_address: str
    monthly_rent: Optional[float] = None
    total_rent_collected: float
    total_late_fees: float
    months_with_payments: int
    expected_yearly_rent: Optional[float] = None
    last_payment_date: Optional[date] = None
    total_maintenance_cost: float
    maintenance_count: int
    recent_maintenance_cost: float
    maintenance_to_rent_ratio: Optional[float] = None
    net_income: float
    occupancy_rate: Optional[float] = None
    maintenance_category: str
    performance_rating: str
    payment_status: str


class MonthlyAnalyticsOut(BaseModel):
    property_id: int
    property_address: str
    month: int
    year: int
    rent_collected: float
    maintenance_cost: float
    net_income: float
    payments_count: int
    maintenance_count: int
    expected_rent: float
