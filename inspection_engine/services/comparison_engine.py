# inspection_engine/services/comparison_engine.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import SYSTEM_ACTOR, Actor, require_capability
from ..config import settings
from ..domain.audit import audit_write
from ..domain.comparison import (
    AlignedItem,
    Classification,
    Computed,
    Evidence,
    Overridden,
    RoomSnapshot,
    ItemSnapshot,
    Verdict,
    aggregate,
    align,
    compose_reasoning,
    compose_summary,
)
from ..domain.enums import ChangeType, ComparisonStatus, InspectionKind, InspectionStatus
from ..domain.errors import ConcurrencyAnomaly, ExternalCapabilityFailure, NotFound, ValidationError
from ..domain.templates import name_key
from ..integrations.vision_client import VisionClassifier, get_classifier
from ..models import AIComparison, AIIssue, Inspection
from .inspection_store import ensure_party, load_inspection_tree, must_get_inspection

log = logging.getLogger("inspections.comparison")

COMPARABLE_STATUSES = frozenset(
    {
        InspectionStatus.COMPLETED.value,
        InspectionStatus.TENANT_REVIEW.value,
        InspectionStatus.DISPUTED.value,
        InspectionStatus.FINALIZED.value,
    }
)


def _utcnow() -> datetime:
    return datetime.utcnow()


def evidence_factor(entry: Evidence, exit: Evidence) -> float:
    """Confidence multiplier for how much photographic evidence backed a judgment."""
    f = float(settings.comparison_no_image_confidence_factor)
    sides = int(entry.has_images) + int(exit.has_images)
    if sides == 2:
        return 1.0
    if sides == 1:
        return (1.0 + f) / 2.0
    return f


# -----------------------------
# Lookups
# -----------------------------
def must_get_comparison(db: Session, comparison_id: int) -> AIComparison:
    row = db.get(AIComparison, comparison_id)
    if row is None:
        raise NotFound("comparison", comparison_id)
    return row


def find_comparison(db: Session, *, entry_inspection_id: int, exit_inspection_id: int) -> Optional[AIComparison]:
    return db.scalar(
        select(AIComparison).where(
            AIComparison.entry_inspection_id == entry_inspection_id,
            AIComparison.exit_inspection_id == exit_inspection_id,
        )
    )


def get_comparison(db: Session, *, actor: Actor, comparison_id: int) -> AIComparison:
    row = must_get_comparison(db, comparison_id)
    ensure_party(db, must_get_inspection(db, row.exit_inspection_id), actor)
    return row


# -----------------------------
# Claim (single-flight)
# -----------------------------
def _validate_pair(entry: Inspection, exit_: Inspection) -> None:
    if entry.id == exit_.id:
        raise ValidationError("entry and exit inspections must differ", field="exit_inspection_id")
    if entry.property_id != exit_.property_id:
        raise ValidationError("entry and exit inspections belong to different properties", field="exit_inspection_id")
    if entry.inspection_type != InspectionKind.ENTRY.value:
        raise ValidationError(f"inspection {entry.id} is not an entry inspection", field="entry_inspection_id")
    if exit_.inspection_type != InspectionKind.EXIT.value:
        raise ValidationError(f"inspection {exit_.id} is not an exit inspection", field="exit_inspection_id")
    if exit_.status not in COMPARABLE_STATUSES:
        raise ValidationError(f"exit inspection is '{exit_.status}'; complete it before comparing", field="exit_inspection_id")


def claim_comparison(
    db: Session,
    *,
    actor: Actor,
    entry_inspection_id: int,
    exit_inspection_id: int,
    now: Optional[datetime] = None,
) -> AIComparison:
    """
    Creates or re-arms the single AIComparison for an (entry, exit) pair and marks
    it processing. Only one run per pair is in flight: a second claim while the
    first is processing (and not stale) raises ConcurrencyAnomaly.
    """
    require_capability(actor, "comparison.run")
    entry = must_get_inspection(db, entry_inspection_id)
    exit_ = must_get_inspection(db, exit_inspection_id)
    ensure_party(db, exit_, actor)
    _validate_pair(entry, exit_)

    now = now or _utcnow()
    row = find_comparison(db, entry_inspection_id=entry.id, exit_inspection_id=exit_.id)

    if row is None:
        row = AIComparison(
            entry_inspection_id=entry.id,
            exit_inspection_id=exit_.id,
            property_id=exit_.property_id,
            status=ComparisonStatus.PROCESSING.value,
            run_count=1,
            started_at=now,
        )
        db.add(row)
        try:
            db.flush()
        except IntegrityError as e:
            db.rollback()
            log.warning("comparison claim lost insert race", extra={"inspection_id": exit_.id})
            raise ConcurrencyAnomaly("a comparison for this pair is already being created") from e
    else:
        stale_before = now - timedelta(seconds=int(settings.comparison_stale_after_seconds))
        claimed = db.execute(
            update(AIComparison)
            .where(
                AIComparison.id == row.id,
                or_(
                    AIComparison.status != ComparisonStatus.PROCESSING.value,
                    AIComparison.started_at.is_(None),
                    AIComparison.started_at < stale_before,
                ),
            )
            .values(
                status=ComparisonStatus.PROCESSING.value,
                started_at=now,
                error_message=None,
                run_count=AIComparison.run_count + 1,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            db.rollback()
            log.warning(
                "comparison already in flight",
                extra={"comparison_id": row.id, "inspection_id": exit_.id},
            )
            raise ConcurrencyAnomaly(f"comparison {row.id} is already processing")
        db.refresh(row)

    audit_write(
        db,
        actor=actor,
        action="comparison.run",
        entity_type="AIComparison",
        entity_id=row.id,
        after={"entry_inspection_id": entry.id, "exit_inspection_id": exit_.id, "run_count": row.run_count},
    )
    db.commit()
    log.info("comparison claimed", extra={"comparison_id": row.id, "inspection_id": exit_.id})
    return row


# -----------------------------
# Execution
# -----------------------------
def _rooms_snapshot(db: Session, inspection_id: int) -> list[RoomSnapshot]:
    tree = load_inspection_tree(db, inspection_id)
    images: dict[int, list] = {}
    for img in sorted(tree.images, key=lambda i: ((i.capture_sequence or 0), i.id)):
        if img.item_id is not None:
            images.setdefault(img.item_id, []).append(img)

    rooms: list[RoomSnapshot] = []
    for room in tree.rooms:
        items = tuple(
            ItemSnapshot(
                id=item.id,
                name=item.name,
                condition=item.condition,
                entry_condition=item.entry_condition,
                notes=item.notes,
                image_ids=tuple(i.id for i in images.get(item.id, [])),
                image_urls=tuple(i.url for i in images.get(item.id, [])),
            )
            for item in room.items
        )
        rooms.append(RoomSnapshot(id=room.id, name=room.name, items=items))
    return rooms


def classify_all(aligned: list[AlignedItem], classifier: VisionClassifier) -> list[Classification]:
    """
    Runs the classifier over every aligned item with bounded concurrency. Returns
    only when all answers are in; the first failure propagates.
    """
    if not aligned:
        return []
    workers = max(1, min(int(settings.comparison_max_concurrency), len(aligned)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="classify") as pool:
        futures = [pool.submit(classifier.classify, a.entry, a.exit, a.item_name) for a in aligned]
        answers = [f.result() for f in futures]

    out: list[Classification] = []
    for a, c in zip(aligned, answers):
        c = c.normalized()
        out.append(replace(c, confidence=round(c.confidence * evidence_factor(a.entry, a.exit), 4)))
    return out


def verdict_for(issue: AIIssue) -> Verdict:
    machine = Classification(
        change_type=issue.change_type,
        is_tenant_responsible=issue.is_tenant_responsible,
        confidence=issue.confidence,
        estimated_cost=issue.estimated_cost,
        evidence_notes=issue.evidence_notes or "",
        severity=issue.severity,
        description=issue.description,
    )
    if issue.owner_agreed is None:
        return Computed(machine)
    return Overridden(
        classification=machine,
        owner_agreed=bool(issue.owner_agreed),
        by=issue.overridden_by,
        at=issue.overridden_at,
        change_type=issue.override_change_type,
        is_tenant_responsible=issue.override_is_tenant_responsible,
        estimated_cost=issue.override_estimated_cost,
    )


def _clear_override(issue: AIIssue) -> None:
    issue.owner_agreed = None
    issue.owner_notes = None
    issue.override_change_type = None
    issue.override_is_tenant_responsible = None
    issue.override_estimated_cost = None
    issue.overridden_by = None
    issue.overridden_at = None


def _apply_machine(issue: AIIssue, a: AlignedItem, c: Classification, order: int) -> None:
    issue.room_id = a.room_id
    issue.item_id = a.item_id
    issue.room_name = a.room_name
    issue.item_name = a.item_name
    issue.entry_condition = a.entry.condition
    issue.exit_condition = a.exit.condition
    issue.description = c.description or f"{a.item_name} changed from {a.entry.condition or 'unrecorded'} to {a.exit.condition}"
    issue.severity = c.severity
    issue.change_type = c.change_type
    issue.is_tenant_responsible = c.is_tenant_responsible
    issue.confidence = c.confidence
    issue.estimated_cost = c.estimated_cost
    issue.evidence_notes = c.evidence_notes
    issue.requires_manual_review = c.confidence < float(settings.comparison_manual_review_threshold)
    issue.entry_image_id = a.entry.image_ids[0] if a.entry.image_ids else None
    issue.exit_image_id = a.exit.image_ids[0] if a.exit.image_ids else None
    issue.display_order = order


def refresh_aggregates(row: AIComparison) -> None:
    issues = list(row.issues)
    agg = aggregate(verdict_for(i) for i in issues)
    row.total_issues = agg.total_issues
    row.tenant_responsible_count = agg.tenant_responsible_count
    row.wear_and_tear_count = agg.wear_and_tear_count
    row.total_estimated_cost = agg.total_estimated_cost
    row.bond_deduction_amount = agg.bond_deduction_amount
    row.bond_deduction_recommended = agg.bond_deduction_recommended
    row.summary = compose_summary(agg, manual_review=sum(1 for i in issues if i.requires_manual_review))
    row.bond_deduction_reasoning = compose_reasoning(
        (i.room_name, i.item_name, verdict_for(i).effective) for i in issues
    )


def _publish(db: Session, row: AIComparison, aligned: list[AlignedItem], results: list[Classification], *, reset: bool) -> None:
    """
    Replaces the issue set in one transaction. Issues are matched to the previous
    run by (room, item) name so owner overrides carry over; an overridden issue
    that no longer appears is kept as the owner left it. reset drops all overrides.
    """
    previous: dict[tuple[str, str], AIIssue] = {}
    for issue in row.issues:
        previous.setdefault((name_key(issue.room_name), name_key(issue.item_name)), issue)

    kept: list[AIIssue] = []
    for order, (a, c) in enumerate(zip(aligned, results)):
        issue = previous.pop(a.key, None)
        if issue is None:
            issue = AIIssue()
            row.issues.append(issue)
        elif reset:
            _clear_override(issue)
        _apply_machine(issue, a, c, order)
        kept.append(issue)

    order = len(kept)
    for issue in previous.values():
        if issue.owner_agreed is not None and not reset:
            issue.display_order = order
            order += 1
            continue
        row.issues.remove(issue)

    refresh_aggregates(row)
    row.status = ComparisonStatus.COMPLETED.value
    row.error_message = None
    row.processed_at = _utcnow()


def _mark_failed(db: Session, comparison_id: int, message: str) -> AIComparison:
    db.rollback()
    row = must_get_comparison(db, comparison_id)
    row.status = ComparisonStatus.FAILED.value
    row.error_message = message[:2000]
    row.processed_at = _utcnow()
    audit_write(
        db,
        actor=SYSTEM_ACTOR,
        action="comparison.failed",
        entity_type="AIComparison",
        entity_id=row.id,
        after={"error": row.error_message},
    )
    db.commit()
    return row


def execute_comparison(
    db: Session,
    comparison_id: int,
    *,
    classifier: Optional[VisionClassifier] = None,
    reset: bool = False,
) -> AIComparison:
    """
    Runs a claimed comparison to completion or failure. Never raises for
    classifier or data problems: they end as status=failed with error_message.
    A row that is not processing is returned untouched.
    """
    row = must_get_comparison(db, comparison_id)
    if row.status != ComparisonStatus.PROCESSING.value:
        return row

    classifier = classifier or get_classifier()
    try:
        entry_rooms = _rooms_snapshot(db, row.entry_inspection_id)
        exit_rooms = _rooms_snapshot(db, row.exit_inspection_id)
        aligned = align(entry_rooms, exit_rooms)
        results = classify_all(aligned, classifier)
    except ExternalCapabilityFailure as e:
        log.warning("comparison failed: %s", e.message, extra={"comparison_id": comparison_id})
        return _mark_failed(db, comparison_id, e.message)
    except (ValueError, TypeError) as e:
        log.warning("comparison failed on malformed classification", extra={"comparison_id": comparison_id})
        return _mark_failed(db, comparison_id, f"malformed classification: {e}")
    except Exception as e:
        log.exception("comparison classification crashed", extra={"comparison_id": comparison_id})
        return _mark_failed(db, comparison_id, f"{type(e).__name__}: {e}")

    try:
        _publish(db, row, aligned, results, reset=reset)
        db.commit()
    except Exception as e:
        log.exception("comparison publish failed", extra={"comparison_id": comparison_id})
        return _mark_failed(db, comparison_id, f"{type(e).__name__}: {e}")

    log.info(
        "comparison completed",
        extra={"comparison_id": row.id, "inspection_id": row.exit_inspection_id},
    )
    return row


# -----------------------------
# Owner overrides
# -----------------------------
def override_issue(
    db: Session,
    *,
    actor: Actor,
    issue_id: int,
    owner_agreed: bool,
    owner_notes: Optional[str] = None,
    change_type: Optional[str] = None,
    is_tenant_responsible: Optional[bool] = None,
    estimated_cost: Optional[float] = None,
) -> AIIssue:
    require_capability(actor, "comparison.override")
    issue = db.get(AIIssue, issue_id)
    if issue is None:
        raise NotFound("issue", issue_id)
    row = issue.comparison
    ensure_party(db, must_get_inspection(db, row.exit_inspection_id), actor)
    if row.status == ComparisonStatus.PROCESSING.value:
        raise ValidationError("comparison is still processing", field="status")

    if change_type is not None:
        try:
            change_type = ChangeType(str(change_type).strip().lower()).value
        except ValueError:
            raise ValidationError(f"unknown change_type {change_type!r}", field="change_type")
    if estimated_cost is not None and float(estimated_cost) < 0:
        raise ValidationError("estimated_cost cannot be negative", field="estimated_cost")

    before = {"bond_deduction_recommended": row.bond_deduction_recommended, "owner_agreed": issue.owner_agreed}
    issue.owner_agreed = bool(owner_agreed)
    issue.owner_notes = owner_notes
    issue.override_change_type = change_type
    issue.override_is_tenant_responsible = is_tenant_responsible
    issue.override_estimated_cost = float(estimated_cost) if estimated_cost is not None else None
    issue.overridden_by = actor.user_id
    issue.overridden_at = _utcnow()

    refresh_aggregates(row)
    audit_write(
        db,
        actor=actor,
        action="comparison.override_issue",
        entity_type="AIIssue",
        entity_id=issue.id,
        before=before,
        after={"bond_deduction_recommended": row.bond_deduction_recommended, "owner_agreed": issue.owner_agreed},
    )
    db.commit()
    log.info("issue overridden", extra={"comparison_id": row.id, "actor_role": actor.role})
    return issue
