# inspection_engine/domain/status_machine.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .enums import DisputeStatus, InspectionStatus
from .errors import InvalidTransition, ValidationError

# -----------------------------------------------------------------------------
# Inspection lifecycle
# -----------------------------------------------------------------------------
#   scheduled -> in_progress -> completed -> tenant_review -> finalized
#                                                          -> disputed -> finalized
#   any non-terminal state -> cancelled
#
# This module is pure: guards take plain values so they can be tested without a DB.
# services/inspection_status.py applies them to rows.
# -----------------------------------------------------------------------------

S = InspectionStatus

TERMINAL: frozenset[str] = frozenset({S.FINALIZED.value, S.CANCELLED.value})

EDGES: dict[str, frozenset[str]] = {
    S.SCHEDULED.value: frozenset({S.IN_PROGRESS.value, S.CANCELLED.value}),
    S.IN_PROGRESS.value: frozenset({S.COMPLETED.value, S.CANCELLED.value}),
    S.COMPLETED.value: frozenset({S.TENANT_REVIEW.value, S.CANCELLED.value}),
    S.TENANT_REVIEW.value: frozenset({S.FINALIZED.value, S.DISPUTED.value, S.CANCELLED.value}),
    S.DISPUTED.value: frozenset({S.FINALIZED.value, S.CANCELLED.value}),
    S.FINALIZED.value: frozenset(),
    S.CANCELLED.value: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in EDGES.get(current, frozenset())


def ensure_edge(current: str, target: str) -> None:
    if current in TERMINAL:
        raise InvalidTransition(current, target, f"'{current}' is terminal")
    if not can_transition(current, target):
        allowed = ", ".join(sorted(EDGES.get(current, ()))) or "none"
        raise InvalidTransition(current, target, f"allowed targets from '{current}': {allowed}")


@dataclass(frozen=True)
class CompletionCheck:
    total_rooms: int
    incomplete_rooms: tuple[str, ...]

    @property
    def ok(self) -> bool:
        return not self.incomplete_rooms


def check_completion(
    current: str,
    room_completion: Iterable[tuple[str, bool]],
    *,
    override: bool = False,
) -> CompletionCheck:
    """
    in_progress -> completed requires every room to be completed unless the caller overrides.
    Returns the check so the caller can log what an override skipped.
    """
    ensure_edge(current, S.COMPLETED.value)
    rooms = list(room_completion)
    pending = tuple(name for name, done in rooms if not done)
    check = CompletionCheck(total_rooms=len(rooms), incomplete_rooms=pending)
    if pending and not override:
        raise InvalidTransition(
            current,
            S.COMPLETED.value,
            f"{len(pending)} room(s) not completed: {', '.join(pending)}",
        )
    return check


def check_send_for_review(current: str, tenancy_id: Optional[int]) -> None:
    ensure_edge(current, S.TENANT_REVIEW.value)
    if tenancy_id is None:
        raise InvalidTransition(current, S.TENANT_REVIEW.value, "no tenancy is linked, nobody can review")


def check_acknowledge(current: str) -> None:
    if current != S.TENANT_REVIEW.value:
        raise InvalidTransition(current, S.FINALIZED.value, "tenant can only acknowledge during tenant_review")
    ensure_edge(current, S.FINALIZED.value)


def check_dispute(current: str, dispute_text: Optional[str]) -> None:
    ensure_edge(current, S.DISPUTED.value)
    if not (dispute_text or "").strip():
        raise ValidationError("dispute text is required", field="tenant_disputes")


def check_finalize_disputed(current: str, dispute_statuses: Iterable[str]) -> None:
    if current != S.DISPUTED.value:
        raise InvalidTransition(
            current,
            S.FINALIZED.value,
            "only disputed inspections are finalized by the owner; tenant_review finalizes on acknowledgment",
        )
    open_count = sum(1 for s in dispute_statuses if s != DisputeStatus.RESOLVED.value)
    if open_count:
        raise InvalidTransition(current, S.FINALIZED.value, f"{open_count} item dispute(s) not resolved")


def check_cancel(current: str) -> None:
    ensure_edge(current, S.CANCELLED.value)
