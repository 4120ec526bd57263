# backend/propledger/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from propledger.auth import hash_password
from propledger.db import SessionLocal
from propledger.models import Appliance, Property, RentPayment, User


@dataclass(frozen=True)
class SeedResult:
    user_email: str
    property_id: Optional[int]
    appliance_id: Optional[int]


def _get_or_create_user(db: Session, email: str, name: str, password: Optional[str]) -> User:
    row = db.query(User).filter(User.email == email).one_or_none()
    if row:
        return row
    row = User(email=email, name=name, password_hash=hash_password(password) if password else None)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _get_or_create_property(db: Session, user_id: int, address: str, monthly_rent: float) -> Property:
    row = db.query(Property).filter(Property.user_id == user_id, Property.address == address).one_or_none()
    if row:
        return row
    row = Property(user_id=user_id, address=address, property_type="single_family", monthly_rent=monthly_rent)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _ensure_appliance(db: Session, property_id: int, name: str, type_: str) -> Appliance:
    row = db.query(Appliance).filter(Appliance.property_id == property_id, Appliance.name == name).one_or_none()
    if row:
        return row
    row = Appliance(property_id=property_id, name=name, type=type_, installation_date=date(2020, 5, 1))
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _ensure_rent_history(db: Session, property_id: int, monthly_rent: float, months: int, *, today: date) -> None:
    if db.query(RentPayment).filter(RentPayment.property_id == property_id).first():
        return
    for i in range(months):
        due = (today.replace(day=1) - timedelta(days=30 * i)).replace(day=1)
        db.add(
            RentPayment(
                property_id=property_id,
                amount=monthly_rent,
                payment_date=due + timedelta(days=2),
                due_date=due,
                payment_method="bank_transfer",
                status="paid",
                late_fee_amount=0.0,
            )
        )
    db.commit()


def seed_demo(
    *,
    user_email: str,
    user_name: str,
    password: Optional[str] = None,
    create_sample_property: bool = True,
    monthly_rent: float = 1500.0,
    today: Optional[date] = None,
) -> SeedResult:
    """Idempotent: re-running finds the rows it created last time."""
    today = today or date.today()
    db = SessionLocal()
    try:
        u = _get_or_create_user(db, user_email.strip().lower(), user_name, password)
        if not create_sample_property:
            return SeedResult(user_email=u.email, property_id=None, appliance_id=None)

        prop = _get_or_create_property(db, int(u.id), "123 Demo St", monthly_rent)
        appliance = _ensure_appliance(db, int(prop.id), "Kitchen Refrigerator", "refrigerator")
        _ensure_rent_history(db, int(prop.id), monthly_rent, 3, today=today)

        return SeedResult(user_email=u.email, property_id=int(prop.id), appliance_id=int(appliance.id))
    finally:
        db.close()
