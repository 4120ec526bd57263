# backend/propledger/domain/appliance_status.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

APPLIANCE_STATUSES = ("working", "needs_repair", "under_repair", "out_of_service")

# pre-issues schema used these two values
LEGACY_STATUS_MAP = {
    "maintenance": "needs_repair",
    "broken": "out_of_service",
}

ISSUE_STATUSES = ("open", "scheduled", "in_progress", "resolved", "cancelled")
ACTIVE_ISSUE_STATUSES = ("open", "scheduled", "in_progress")

URGENCY_LEVELS = ("low", "medium", "high", "critical")
URGENCY_RANK = {u: i + 1 for i, u in enumerate(URGENCY_LEVELS)}

MAINTENANCE_TYPES = ("routine", "repair", "inspection", "replacement", "cleaning", "upgrade")
MAINTENANCE_STATUSES = ("scheduled", "in_progress", "completed", "cancelled")

# completing one of these puts the appliance back in service
RESOLVING_MAINTENANCE_TYPES = ("repair", "replacement")


def normalize_appliance_status(value: Optional[str]) -> str:
    """
    Map an incoming status to one of APPLIANCE_STATUSES.

    None/blank means "working". Legacy synonyms are translated; anything else
    raises ValueError so it never reaches the table.
    """
    s = (value or "").strip().lower()
    if not s:
        return "working"
    s = LEGACY_STATUS_MAP.get(s, s)
    if s not in APPLIANCE_STATUSES:
        raise ValueError(f"invalid appliance status: {value!r}")
    return s


def urgency_from_rank(rank: Optional[int]) -> Optional[str]:
    if not rank:
        return None
    return URGENCY_LEVELS[int(rank) - 1]


@dataclass(frozen=True)
class DerivedApplianceState:
    has_open_issues: bool
    urgency_level: Optional[str]
    status: str


def derive_state(active_count: int, top_urgency: Optional[str]) -> DerivedApplianceState:
    """
    out_of_service if any active issue is critical, needs_repair if any
    active issue exists, else working.
    """
    if active_count <= 0:
        return DerivedApplianceState(has_open_issues=False, urgency_level=None, status="working")

    status = "out_of_service" if top_urgency == "critical" else "needs_repair"
    return DerivedApplianceState(has_open_issues=True, urgency_level=top_urgency, status=status)


def resolves_issues(maintenance_type: str, status: Optional[str]) -> bool:
    return maintenance_type in RESOLVING_MAINTENANCE_TYPES and (status or "completed") == "completed"


def auto_resolution_note(maintenance_type: str, description: str) -> str:
    return f"Auto-resolved: {maintenance_type} maintenance completed - {description}"
