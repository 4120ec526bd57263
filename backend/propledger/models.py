# backend/propledger/models.py
from __future__ import annotations

import json
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


# -----------------------------
# Accounts
# -----------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="user")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    properties: Mapped[List["Property"]] = relationship(back_populates="owner", cascade="all, delete-orphan")


# -----------------------------
# Core domain: Properties / Appliances
# -----------------------------
class Property(Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    address: Mapped[str] = mapped_column(String(255), nullable=False)
    property_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    monthly_rent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    owner: Mapped["User"] = relationship(back_populates="properties")
    appliances: Mapped[List["Appliance"]] = relationship(back_populates="property", cascade="all, delete-orphan")
    rent_payments: Mapped[List["RentPayment"]] = relationship(
        back_populates="property", cascade="all, delete-orphan"
    )


class Appliance(Base):
    __tablename__ = "appliances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    installation_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # working|needs_repair|under_repair|out_of_service
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="working")

    # derived from issues (see services/appliance_state.py)
    has_open_issues: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    urgency_level: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # maintenance rollups (see services/appliance_state.py)
    last_maintenance: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_maintenance_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    maintenance_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_maintenance_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    property: Mapped["Property"] = relationship(back_populates="appliances")
    maintenance_records: Mapped[List["MaintenanceRecord"]] = relationship(
        back_populates="appliance", cascade="all, delete-orphan"
    )
    issues: Mapped[List["Issue"]] = relationship(back_populates="appliance", cascade="all, delete-orphan")


class MaintenanceRecord(Base):
    __tablename__ = "maintenance_records"
    __table_args__ = (Index("ix_maintenance_records_appliance_date", "appliance_id", "maintenance_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    appliance_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("appliances.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # routine|repair|inspection|replacement|cleaning|upgrade
    maintenance_type: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    technician_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    technician_company: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)

    maintenance_date: Mapped[date] = mapped_column(Date, nullable=False)
    next_due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # structured JSON serialized to text for portability
    parts_replaced_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    warranty_until: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # scheduled|in_progress|completed|cancelled
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    appliance: Mapped["Appliance"] = relationship(back_populates="maintenance_records")

    @property
    def parts_replaced(self) -> Optional[list[str]]:
        if not self.parts_replaced_json:
            return None
        return list(json.loads(self.parts_replaced_json))

    @parts_replaced.setter
    def parts_replaced(self, value: Optional[list[str]]) -> None:
        self.parts_replaced_json = json.dumps(list(value)) if value is not None else None


class Issue(Base):
    __tablename__ = "issues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    appliance_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("appliances.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    urgency: Mapped[str] = mapped_column(String(20), nullable=False, default="medium", index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open", index=True)

    reported_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today, index=True)
    reported_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    resolved_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    maintenance_record_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("maintenance_records.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    appliance: Mapped["Appliance"] = relationship(back_populates="issues")


# -----------------------------
# Rent
# -----------------------------
class RentPayment(Base):
    __tablename__ = "rent_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="paid")  # paid|late|partial
    late_fee_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    property: Mapped["Property"] = relationship(back_populates="rent_payments")
