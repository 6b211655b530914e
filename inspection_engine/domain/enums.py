# inspection_engine/domain/enums.py
from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional


class InspectionKind(str, Enum):
    ROUTINE = "routine"
    ENTRY = "entry"
    EXIT = "exit"
    PRE_LISTING = "pre_listing"
    MAINTENANCE = "maintenance"
    COMPLAINT = "complaint"


class InspectionStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    TENANT_REVIEW = "tenant_review"
    DISPUTED = "disputed"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"


class Condition(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DAMAGED = "damaged"
    MISSING = "missing"
    NOT_APPLICABLE = "not_applicable"


class OutsourceMode(str, Enum):
    SELF = "self"
    PROFESSIONAL = "professional"
    AUTO_MANAGED = "auto_managed"


class ChangeType(str, Enum):
    WEAR_AND_TEAR = "wear_and_tear"
    MINOR_DAMAGE = "minor_damage"
    MAJOR_DAMAGE = "major_damage"
    MISSING = "missing"


class Severity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"


class ComparisonStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class DisputeStatus(str, Enum):
    OPEN = "open"
    OWNER_RESPONDED = "owner_responded"
    RESOLVED = "resolved"
    ESCALATED = "escalated"


class SubmissionType(str, Enum):
    NEW_PHOTO = "new_photo"
    DESCRIPTION_ALTERATION = "description_alteration"
    NEW_ITEM = "new_item"
    QUERY = "query"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RESOLVED = "resolved"


# lower = better; not_applicable sorts last and is ignored by worst_condition
CONDITION_SEVERITY: dict[str, int] = {
    Condition.EXCELLENT.value: 0,
    Condition.GOOD.value: 1,
    Condition.FAIR.value: 2,
    Condition.POOR.value: 3,
    Condition.DAMAGED.value: 4,
    Condition.MISSING.value: 5,
    Condition.NOT_APPLICABLE.value: 6,
}


def condition_value(raw: Optional[str | Condition]) -> Optional[str]:
    """Normalize a condition to its string value; raises ValueError for unknown labels."""
    if raw is None:
        return None
    if isinstance(raw, Condition):
        return raw.value
    s = str(raw).strip().lower()
    if not s:
        return None
    return Condition(s).value


def condition_severity(condition: Optional[str]) -> int:
    return CONDITION_SEVERITY.get(condition or "", CONDITION_SEVERITY[Condition.NOT_APPLICABLE.value])


def worst_condition(conditions: Iterable[Optional[str]]) -> Optional[str]:
    rated = [c for c in conditions if c and c != Condition.NOT_APPLICABLE.value]
    if not rated:
        return None
    return max(rated, key=condition_severity)
