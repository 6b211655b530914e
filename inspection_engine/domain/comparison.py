# inspection_engine/domain/comparison.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Optional, Sequence, Union

from .enums import ChangeType, Condition, Severity, condition_severity
from .templates import name_key

# -----------------------------------------------------------------------------
# Entry vs exit comparison, pure part.
#
# services/comparison_engine.py snapshots the two inspections into RoomSnapshot /
# ItemSnapshot, calls align() and a classifier, then aggregate(). Nothing here
# touches the DB or the network.
# -----------------------------------------------------------------------------

DEFAULT_SEVERITY: dict[str, str] = {
    ChangeType.WEAR_AND_TEAR.value: Severity.MINOR.value,
    ChangeType.MINOR_DAMAGE.value: Severity.MODERATE.value,
    ChangeType.MISSING.value: Severity.MODERATE.value,
    ChangeType.MAJOR_DAMAGE.value: Severity.MAJOR.value,
}


@dataclass(frozen=True)
class Evidence:
    """What the classifier gets to see for one side of an aligned item."""

    condition: Optional[str]
    notes: Optional[str] = None
    image_ids: tuple[int, ...] = ()
    image_urls: tuple[str, ...] = ()

    @property
    def has_images(self) -> bool:
        return bool(self.image_urls)


def _number(value: object, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} must be a number, got {value!r}")
    return float(value)


@dataclass(frozen=True)
class Classification:
    change_type: str
    is_tenant_responsible: bool
    confidence: float
    estimated_cost: float
    evidence_notes: str = ""
    severity: Optional[str] = None
    description: Optional[str] = None

    def normalized(self) -> "Classification":
        """
        Coerces a classifier answer into a valid record. Raises ValueError on an
        unknown change_type, a non-boolean tenant flag or a non-numeric cost or
        confidence, so a malformed answer fails the run instead of being guessed.
        """
        if not isinstance(self.is_tenant_responsible, bool):
            raise ValueError(f"is_tenant_responsible must be a boolean, got {self.is_tenant_responsible!r}")
        confidence = _number(self.confidence, "confidence")
        cost = _number(self.estimated_cost, "estimated_cost")

        change_type = ChangeType(str(self.change_type).strip().lower()).value
        severity = self.severity
        if severity is not None:
            severity = Severity(str(severity).strip().lower()).value
        else:
            severity = DEFAULT_SEVERITY[change_type]

        tenant = self.is_tenant_responsible
        # wear and tear is never deductible
        if change_type == ChangeType.WEAR_AND_TEAR.value:
            tenant = False

        return replace(
            self,
            change_type=change_type,
            severity=severity,
            is_tenant_responsible=tenant,
            confidence=min(1.0, max(0.0, confidence)),
            estimated_cost=max(0.0, round(cost, 2)),
            evidence_notes=self.evidence_notes or "",
        )


# -----------------------------
# Alignment
# -----------------------------
@dataclass(frozen=True)
class ItemSnapshot:
    id: int
    name: str
    condition: Optional[str]
    entry_condition: Optional[str] = None
    notes: Optional[str] = None
    image_ids: tuple[int, ...] = ()
    image_urls: tuple[str, ...] = ()


@dataclass(frozen=True)
class RoomSnapshot:
    id: int
    name: str
    items: tuple[ItemSnapshot, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AlignedItem:
    room_id: int
    room_name: str
    item_id: int
    item_name: str
    entry: Evidence
    exit: Evidence
    entry_item_id: Optional[int] = None

    @property
    def key(self) -> tuple[str, str]:
        return (name_key(self.room_name), name_key(self.item_name))


def is_material_change(entry_condition: Optional[str], exit_condition: Optional[str]) -> bool:
    """
    A change worth classifying. Unrated or not_applicable exits never are; an exit
    rating with nothing to compare against is an addition; improvements are not issues.
    """
    if exit_condition is None or exit_condition == Condition.NOT_APPLICABLE.value:
        return False
    if entry_condition is None or entry_condition == Condition.NOT_APPLICABLE.value:
        return True
    if entry_condition == exit_condition:
        return False
    return condition_severity(exit_condition) > condition_severity(entry_condition)


def align(entry_rooms: Sequence[RoomSnapshot], exit_rooms: Sequence[RoomSnapshot]) -> list[AlignedItem]:
    """
    Pairs exit items with entry items by room name then item name (trimmed,
    case-insensitive) and keeps only material changes, in exit checklist order.
    Entry-only items are dropped. An exit item without an entry partner falls
    back to its own entry_condition snapshot.
    """
    entry_index: dict[tuple[str, str], tuple[ItemSnapshot, RoomSnapshot]] = {}
    for room in entry_rooms:
        for item in room.items:
            entry_index.setdefault((name_key(room.name), name_key(item.name)), (item, room))

    out: list[AlignedItem] = []
    for room in exit_rooms:
        for item in room.items:
            if item.condition is None:
                continue
            partner = entry_index.get((name_key(room.name), name_key(item.name)))
            if partner is not None:
                entry_item = partner[0]
                entry_ev = Evidence(
                    condition=entry_item.condition,
                    notes=entry_item.notes,
                    image_ids=entry_item.image_ids,
                    image_urls=entry_item.image_urls,
                )
                entry_item_id: Optional[int] = entry_item.id
            else:
                entry_ev = Evidence(condition=item.entry_condition)
                entry_item_id = None

            if not is_material_change(entry_ev.condition, item.condition):
                continue

            out.append(
                AlignedItem(
                    room_id=room.id,
                    room_name=room.name,
                    item_id=item.id,
                    item_name=item.name,
                    entry=entry_ev,
                    exit=Evidence(
                        condition=item.condition,
                        notes=item.notes,
                        image_ids=item.image_ids,
                        image_urls=item.image_urls,
                    ),
                    entry_item_id=entry_item_id,
                )
            )
    return out


# -----------------------------
# Owner overrides as a tagged variant
# -----------------------------
@dataclass(frozen=True)
class Computed:
    classification: Classification

    @property
    def effective(self) -> Classification:
        return self.classification


@dataclass(frozen=True)
class Overridden:
    classification: Classification
    owner_agreed: bool
    by: Optional[str]
    at: Optional[datetime]
    change_type: Optional[str] = None
    is_tenant_responsible: Optional[bool] = None
    estimated_cost: Optional[float] = None

    @property
    def effective(self) -> Classification:
        base = self.classification
        if not self.owner_agreed and self.change_type is None and self.is_tenant_responsible is None and self.estimated_cost is None:
            return replace(base, is_tenant_responsible=False)
        patched = replace(
            base,
            change_type=self.change_type or base.change_type,
            is_tenant_responsible=base.is_tenant_responsible if self.is_tenant_responsible is None else self.is_tenant_responsible,
            estimated_cost=base.estimated_cost if self.estimated_cost is None else self.estimated_cost,
            severity=None if self.change_type else base.severity,
        )
        return patched.normalized()


Verdict = Union[Computed, Overridden]


@dataclass(frozen=True)
class Aggregate:
    total_issues: int
    tenant_responsible_count: int
    wear_and_tear_count: int
    total_estimated_cost: float
    bond_deduction_amount: float
    bond_deduction_recommended: float


def _deductible(c: Classification) -> bool:
    return c.is_tenant_responsible and c.change_type != ChangeType.WEAR_AND_TEAR.value


def aggregate(verdicts: Iterable[Verdict]) -> Aggregate:
    """
    Counts and bond_deduction_amount come from the machine classification only;
    bond_deduction_recommended follows the owner where an override exists.
    """
    vs = list(verdicts)
    machine = [v.classification for v in vs]
    tenant_count = sum(1 for c in machine if c.is_tenant_responsible)
    return Aggregate(
        total_issues=len(machine),
        tenant_responsible_count=tenant_count,
        wear_and_tear_count=len(machine) - tenant_count,
        total_estimated_cost=round(sum(c.estimated_cost for c in machine), 2),
        bond_deduction_amount=round(sum(c.estimated_cost for c in machine if _deductible(c)), 2),
        bond_deduction_recommended=round(sum(v.effective.estimated_cost for v in vs if _deductible(v.effective)), 2),
    )


def compose_summary(agg: Aggregate, manual_review: int = 0) -> str:
    if agg.total_issues == 0:
        return "No material condition changes found between entry and exit inspections."
    parts = [
        f"{agg.total_issues} issue{'s' if agg.total_issues != 1 else ''} found",
        f"{agg.tenant_responsible_count} tenant-responsible",
        f"{agg.wear_and_tear_count} fair wear and tear",
        f"estimated total ${agg.total_estimated_cost:,.2f}",
    ]
    text = "; ".join(parts) + "."
    if manual_review:
        text += f" {manual_review} low-confidence finding{'s' if manual_review != 1 else ''} need manual review."
    return text


def compose_reasoning(lines: Iterable[tuple[str, str, Classification]]) -> str:
    """lines: (room name, item name, effective classification)."""
    charged = [(r, i, c) for r, i, c in lines if _deductible(c)]
    if not charged:
        return "No tenant-responsible damage; no bond deduction recommended."
    body = "; ".join(f"{r} / {i}: {c.change_type.replace('_', ' ')} ${c.estimated_cost:,.2f}" for r, i, c in charged)
    total = sum(c.estimated_cost for _, _, c in charged)
    return f"Recommended deduction ${total:,.2f} for tenant-responsible items: {body}."
