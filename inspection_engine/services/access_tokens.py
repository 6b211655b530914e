# inspection_engine/services/access_tokens.py
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..auth import Actor, require_capability
from ..config import settings
from ..domain.audit import audit_write
from ..domain.enums import InspectionStatus
from ..domain.errors import ConcurrencyAnomaly, InvalidToken, NotFound, ValidationError
from ..models import InspectorAccessToken
from .inspection_status import apply_completion
from .inspection_store import ensure_party, must_get_inspection
from .outsourcing import finish_assignment, must_get_assignment

log = logging.getLogger("inspections.access")

TOKEN_BYTES = 16  # 32 hex characters


def _utcnow() -> datetime:
    return datetime.utcnow()


def new_token_value() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def token_is_valid(row: Optional[InspectorAccessToken], now: datetime) -> bool:
    """
    Pure check on (token row, now). Revocation and completion are checked before
    expiry; none of them can be undone, so validity never comes back.
    """
    if row is None:
        return False
    if row.revoked:
        return False
    if row.completed_at is not None:
        return False
    return now < row.expires_at


def access_link(token: str) -> str:
    return f"{settings.access_link_base_url.rstrip('/')}/{token}"


def token_actor(row: InspectorAccessToken) -> Actor:
    """The external inspector holds no account; the token is its only identity."""
    return Actor(role="inspector", user_id=None, email=row.email)


def generate_access_token(
    db: Session,
    *,
    actor: Actor,
    inspection_id: int,
    assignment_id: int,
    email: str,
    now: Optional[datetime] = None,
) -> InspectorAccessToken:
    require_capability(actor, "token.issue")
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    asg = must_get_assignment(db, assignment_id)
    if asg.inspection_id != insp.id:
        raise NotFound("assignment", assignment_id)
    if asg.superseded_by_id is not None or asg.accepted is False:
        raise ValidationError(f"assignment {asg.id} is no longer active", field="assignment_id")
    clean_email = (email or "").strip().lower()
    if not clean_email or "@" not in clean_email:
        raise ValidationError("a valid email is required", field="email")

    now = now or _utcnow()

    # one live link per (inspection, assignment, email)
    db.execute(
        update(InspectorAccessToken)
        .where(
            InspectorAccessToken.inspection_id == insp.id,
            InspectorAccessToken.assignment_id == asg.id,
            InspectorAccessToken.email == clean_email,
            InspectorAccessToken.revoked.is_(False),
        )
        .values(revoked=True, revoked_at=now)
    )

    row = InspectorAccessToken(
        inspection_id=insp.id,
        assignment_id=asg.id,
        token=new_token_value(),
        email=clean_email,
        created_at=now,
        expires_at=now + timedelta(hours=int(settings.access_token_ttl_hours)),
        revoked=False,
    )
    db.add(row)
    db.flush()
    audit_write(
        db,
        actor=actor,
        action="token.issue",
        entity_type="InspectorAccessToken",
        entity_id=row.id,
        after={"inspection_id": insp.id, "assignment_id": asg.id, "expires_at": row.expires_at},
    )
    db.commit()
    log.info("access link issued", extra={"inspection_id": insp.id, "assignment_id": asg.id})
    return row


def validate_access_token(db: Session, token: str, *, now: Optional[datetime] = None) -> InspectorAccessToken:
    """
    Resolves a presented token. Every failure raises the same InvalidToken so the
    holder cannot tell unknown from expired from revoked. The first successful use
    stamps used_at.
    """
    now = now or _utcnow()
    value = (token or "").strip().lower()
    row = None
    if len(value) == TOKEN_BYTES * 2:
        row = db.scalar(select(InspectorAccessToken).where(InspectorAccessToken.token == value))
    if not token_is_valid(row, now):
        log.info("access link rejected")
        raise InvalidToken()

    if row.used_at is None:
        db.execute(
            update(InspectorAccessToken)
            .where(InspectorAccessToken.id == row.id, InspectorAccessToken.used_at.is_(None))
            .values(used_at=now)
        )
        db.commit()
    return row


def revoke_access_token(db: Session, *, actor: Actor, token_id: int) -> InspectorAccessToken:
    require_capability(actor, "token.revoke")
    row = db.get(InspectorAccessToken, token_id)
    if row is None:
        raise NotFound("token", token_id)
    ensure_party(db, must_get_inspection(db, row.inspection_id), actor)

    now = _utcnow()
    db.execute(
        update(InspectorAccessToken)
        .where(InspectorAccessToken.id == row.id, InspectorAccessToken.revoked.is_(False))
        .values(revoked=True, revoked_at=now)
    )
    audit_write(db, actor=actor, action="token.revoke", entity_type="InspectorAccessToken", entity_id=row.id)
    db.commit()
    db.refresh(row)
    log.info("access link revoked", extra={"inspection_id": row.inspection_id, "assignment_id": row.assignment_id})
    return row


def list_tokens(db: Session, *, actor: Actor, inspection_id: int) -> list[InspectorAccessToken]:
    insp = must_get_inspection(db, inspection_id)
    ensure_party(db, insp, actor)
    return list(
        db.scalars(
            select(InspectorAccessToken)
            .where(InspectorAccessToken.inspection_id == insp.id)
            .order_by(InspectorAccessToken.id.asc())
        ).all()
    )


def submit_inspection(
    db: Session,
    token: str,
    *,
    overall_condition: Optional[str] = None,
    summary_notes: Optional[str] = None,
    action_items: Optional[Iterable[str]] = None,
    override_incomplete: bool = False,
    now: Optional[datetime] = None,
) -> InspectorAccessToken:
    """
    The external inspector's final action. Claims completed_at with a
    compare-and-set so only one submission wins, completes the assignment and
    moves the inspection to completed in the same transaction.
    """
    now = now or _utcnow()
    row = validate_access_token(db, token, now=now)
    actor = token_actor(row)

    try:
        claimed = db.execute(
            update(InspectorAccessToken)
            .where(
                InspectorAccessToken.id == row.id,
                InspectorAccessToken.completed_at.is_(None),
                InspectorAccessToken.revoked.is_(False),
            )
            .values(completed_at=now)
        ).rowcount
        if claimed != 1:
            raise ConcurrencyAnomaly(f"access token {row.id} was completed or revoked concurrently")

        insp = must_get_inspection(db, row.inspection_id)
        if insp.status == InspectionStatus.IN_PROGRESS.value:
            apply_completion(
                db,
                insp,
                actor=actor,
                overall_condition=overall_condition,
                summary_notes=summary_notes,
                action_items=action_items,
                override_incomplete=override_incomplete,
            )
        elif insp.status != InspectionStatus.COMPLETED.value:
            # surfaces the state machine error for anything not yet started
            apply_completion(db, insp, actor=actor, override_incomplete=override_incomplete)

        asg = must_get_assignment(db, row.assignment_id)
        if asg.completed_at is None:
            finish_assignment(db, asg, now=now)
        db.commit()
    except ConcurrencyAnomaly as e:
        db.rollback()
        log.warning(str(e), extra={"inspection_id": row.inspection_id, "assignment_id": row.assignment_id})
        raise InvalidToken() from e
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    log.info("inspection submitted via access link", extra={"inspection_id": row.inspection_id, "assignment_id": row.assignment_id})
    return row
