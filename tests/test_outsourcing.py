# tests/test_outsourcing.py
from __future__ import annotations

from datetime import time

import pytest

from inspection_engine.auth import Actor
from inspection_engine.domain.errors import Forbidden, ValidationError
from inspection_engine.services import access_tokens
from inspection_engine.services import inspection_store as store
from inspection_engine.services import outsourcing

PRO = Actor(role="inspector", user_id="pro-1", email="pro@inspect.co")
PRO2 = Actor(role="inspector", user_id="pro-2", email="pro2@inspect.co")


def _assign(db, world, insp_id, inspector_id="pro-1", email="pro@inspect.co"):
    return outsourcing.create_assignment(
        db,
        actor=world.owner,
        inspection_id=insp_id,
        inspector_id=inspector_id,
        inspector_email=email,
        fee_amount=180.0,
        proposed_date="2026-03-02",
        proposed_time_start=time(9, 0),
        proposed_time_end=time(12, 0),
    )


def test_assignment_marks_inspection_outsourced(db, world, schedule):
    insp_id = schedule("exit")
    asg = _assign(db, world, insp_id)

    insp = store.must_get_inspection(db, insp_id)
    assert insp.is_outsourced is True
    assert insp.outsource_mode == "professional"
    assert insp.inspector_id == "pro-1"
    assert asg.assigned_by == "owner"
    assert asg.accepted is None


def test_second_assignment_needs_a_decline_first(db, world, schedule):
    insp_id = schedule("routine")
    _assign(db, world, insp_id)

    with pytest.raises(ValidationError):
        _assign(db, world, insp_id, inspector_id="pro-2")


def test_decline_then_reassign_supersedes_and_revokes_links(db, world, schedule):
    insp_id = schedule("routine")
    first = _assign(db, world, insp_id)
    link = access_tokens.generate_access_token(
        db, actor=world.owner, inspection_id=insp_id, assignment_id=first.id, email="pro@inspect.co"
    )

    outsourcing.decline_assignment(db, actor=PRO, assignment_id=first.id, reason="fully booked that week")
    second = _assign(db, world, insp_id, inspector_id="pro-2", email="pro2@inspect.co")

    db.refresh(first)
    db.refresh(link)
    assert first.superseded_by_id == second.id
    assert first.superseded_at is not None
    assert first.declined_reason == "fully booked that week"
    assert link.revoked is True
    assert store.must_get_inspection(db, insp_id).inspector_id == "pro-2"
    assert [a.id for a in outsourcing.list_assignments(db, actor=world.owner, inspection_id=insp_id)] == [first.id, second.id]

    with pytest.raises(ValidationError):
        outsourcing.accept_assignment(db, actor=PRO, assignment_id=first.id, confirmed_date="2026-03-02", confirmed_time=time(9))


def test_accept_requires_confirmed_slot_and_the_assignee(db, world, schedule):
    insp_id = schedule("routine")
    asg = _assign(db, world, insp_id)

    with pytest.raises(ValidationError):
        outsourcing.accept_assignment(db, actor=PRO, assignment_id=asg.id, confirmed_date="2026-03-02", confirmed_time=None)
    with pytest.raises(Forbidden):
        outsourcing.accept_assignment(db, actor=PRO2, assignment_id=asg.id, confirmed_date="2026-03-02", confirmed_time=time(9))

    asg = outsourcing.accept_assignment(db, actor=PRO, assignment_id=asg.id, confirmed_date="2026-03-02", confirmed_time=time(9, 30))
    assert asg.accepted is True
    assert asg.confirmed_time == time(9, 30)

    with pytest.raises(ValidationError):
        outsourcing.decline_assignment(db, actor=PRO, assignment_id=asg.id, reason="changed my mind")


def test_decline_needs_a_reason(db, world, schedule):
    asg = _assign(db, world, schedule("routine"))
    with pytest.raises(ValidationError):
        outsourcing.decline_assignment(db, actor=PRO, assignment_id=asg.id, reason="  ")


def test_assigned_professional_becomes_a_party(db, world, schedule):
    insp_id = schedule("routine")
    _assign(db, world, insp_id)

    rows = outsourcing.list_assignments(db, actor=PRO, inspection_id=insp_id)
    assert len(rows) == 1
    with pytest.raises(Forbidden):
        outsourcing.list_assignments(db, actor=PRO2, inspection_id=insp_id)


def test_rating_and_payment_follow_completion(db, world, schedule):
    insp_id = schedule("routine")
    asg = _assign(db, world, insp_id)
    outsourcing.accept_assignment(db, actor=PRO, assignment_id=asg.id, confirmed_date="2026-03-02", confirmed_time=time(9))

    with pytest.raises(ValidationError):
        outsourcing.rate_inspector(db, actor=world.owner, assignment_id=asg.id, rating=5)

    outsourcing.complete_assignment(db, actor=PRO, assignment_id=asg.id)

    with pytest.raises(ValidationError):
        outsourcing.rate_inspector(db, actor=world.owner, assignment_id=asg.id, rating=6)
    asg = outsourcing.rate_inspector(db, actor=world.owner, assignment_id=asg.id, rating=5, review_text="thorough")
    assert asg.rating == 5

    asg = outsourcing.mark_assignment_paid(db, actor=world.owner, assignment_id=asg.id)
    assert asg.fee_paid is True


def test_fee_cannot_be_negative(db, world, schedule):
    with pytest.raises(ValidationError):
        outsourcing.create_assignment(db, actor=world.owner, inspection_id=schedule("routine"), inspector_id="pro-1", fee_amount=-1)
