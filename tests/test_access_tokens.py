# tests/test_access_tokens.py
from __future__ import annotations

import re
from datetime import datetime, time, timedelta

import pytest

from inspection_engine.auth import Actor
from inspection_engine.domain.errors import InvalidToken, NotFound
from inspection_engine.domain.templates import TemplateRoomSpec
from inspection_engine.models import InspectorAccessToken
from inspection_engine.services import access_tokens
from inspection_engine.services import inspection_status as status_svc
from inspection_engine.services import inspection_store as store
from inspection_engine.services import outsourcing
from inspection_engine.services.template_expander import expand_template

PRO = Actor(role="inspector", user_id="pro-1", email="pro@inspect.co")
T0 = datetime(2026, 3, 1, 9, 0, 0)


def _outsourced(db, world, schedule):
    insp_id = schedule("routine")
    asg = outsourcing.create_assignment(
        db, actor=world.owner, inspection_id=insp_id, inspector_id="pro-1", inspector_email="pro@inspect.co", fee_amount=150
    )
    return insp_id, asg


def _issue(db, world, insp_id, asg, *, now=None, email="pro@inspect.co"):
    return access_tokens.generate_access_token(
        db, actor=world.owner, inspection_id=insp_id, assignment_id=asg.id, email=email, now=now
    )


def test_tokens_are_unique_32_hex():
    values = [access_tokens.new_token_value() for _ in range(10_000)]
    assert len(set(values)) == 10_000
    assert all(re.fullmatch(r"[0-9a-f]{32}", v) for v in values)


def test_validity_window_is_48_hours(db, world, schedule):
    insp_id, asg = _outsourced(db, world, schedule)
    row = _issue(db, world, insp_id, asg, now=T0)

    assert row.expires_at == T0 + timedelta(hours=48)
    assert access_tokens.validate_access_token(db, row.token, now=T0 + timedelta(hours=47, minutes=59)).id == row.id
    with pytest.raises(InvalidToken):
        access_tokens.validate_access_token(db, row.token, now=T0 + timedelta(hours=48, minutes=1))


def test_revoked_token_stays_invalid(db, world, schedule):
    t = datetime.utcnow()
    insp_id, asg = _outsourced(db, world, schedule)
    row = _issue(db, world, insp_id, asg, now=t)

    access_tokens.validate_access_token(db, row.token, now=t + timedelta(hours=1))
    access_tokens.revoke_access_token(db, actor=world.owner, token_id=row.id)

    with pytest.raises(InvalidToken):
        access_tokens.validate_access_token(db, row.token, now=t + timedelta(hours=2))


def test_validity_never_returns():
    row = InspectorAccessToken(token="a" * 32, email="x@y.z", expires_at=T0 + timedelta(hours=48), revoked=False, completed_at=None)
    seen_invalid = False
    for hour in range(0, 100):
        ok = access_tokens.token_is_valid(row, T0 + timedelta(hours=hour))
        if seen_invalid:
            assert not ok
        seen_invalid = seen_invalid or not ok
    assert seen_invalid

    row.revoked = True
    assert not access_tokens.token_is_valid(row, T0)
    assert not access_tokens.token_is_valid(None, T0)


def test_reissue_revokes_previous_link(db, world, schedule):
    insp_id, asg = _outsourced(db, world, schedule)
    first = _issue(db, world, insp_id, asg)
    second = _issue(db, world, insp_id, asg)

    db.refresh(first)
    assert first.revoked is True
    assert second.revoked is False
    with pytest.raises(InvalidToken):
        access_tokens.validate_access_token(db, first.token)
    assert access_tokens.validate_access_token(db, second.token).id == second.id


def test_unknown_and_expired_look_identical(db, world, schedule):
    insp_id, asg = _outsourced(db, world, schedule)
    row = _issue(db, world, insp_id, asg, now=T0)

    with pytest.raises(InvalidToken) as unknown:
        access_tokens.validate_access_token(db, "0" * 32)
    with pytest.raises(InvalidToken) as malformed:
        access_tokens.validate_access_token(db, "not-a-token")
    with pytest.raises(InvalidToken) as expired:
        access_tokens.validate_access_token(db, row.token, now=T0 + timedelta(days=3))

    assert unknown.value.message == malformed.value.message == expired.value.message == InvalidToken.GENERIC_MESSAGE


def test_first_use_is_stamped_once(db, world, schedule):
    insp_id, asg = _outsourced(db, world, schedule)
    row = _issue(db, world, insp_id, asg, now=T0)

    access_tokens.validate_access_token(db, row.token, now=T0 + timedelta(hours=1))
    access_tokens.validate_access_token(db, row.token, now=T0 + timedelta(hours=5))

    db.refresh(row)
    assert row.used_at == T0 + timedelta(hours=1)


def test_portal_submission_completes_inspection_and_assignment(db, world, schedule):
    insp_id, asg = _outsourced(db, world, schedule)
    outsourcing.accept_assignment(db, actor=PRO, assignment_id=asg.id, confirmed_date="2026-03-02", confirmed_time=time(9))
    expand_template(db, actor=world.owner, inspection_id=insp_id, rooms=[TemplateRoomSpec("Kitchen", ("Oven", "Sink"), 0)])
    row = _issue(db, world, insp_id, asg)

    actor = access_tokens.token_actor(row)
    status_svc.start_inspection(db, actor=actor, inspection_id=insp_id, scope_inspection_id=insp_id)
    room = store.load_inspection_tree(db, insp_id).rooms[0]
    for item in room.items:
        store.rate_item(db, actor=actor, item_id=item.id, condition="good", scope_inspection_id=insp_id)
    store.complete_room(db, actor=actor, room_id=room.id, scope_inspection_id=insp_id)

    done = access_tokens.submit_inspection(db, row.token, summary_notes="all good")

    assert done.completed_at is not None
    insp = store.must_get_inspection(db, insp_id)
    db.refresh(insp)
    assert insp.status == "completed"
    assert insp.summary_notes == "all good"
    db.refresh(asg)
    assert asg.completed_at is not None

    with pytest.raises(InvalidToken):
        access_tokens.validate_access_token(db, row.token)
    with pytest.raises(InvalidToken):
        access_tokens.submit_inspection(db, row.token)


def test_token_scope_hides_other_inspections(db, world, schedule, conduct, items_of):
    other_id = conduct("routine", {"Kitchen": {"Oven": None}}, complete=False)
    foreign_item = items_of(other_id)[("Kitchen", "Oven")]

    insp_id, asg = _outsourced(db, world, schedule)
    row = _issue(db, world, insp_id, asg)
    actor = access_tokens.token_actor(row)

    with pytest.raises(NotFound):
        store.rate_item(db, actor=actor, item_id=foreign_item, condition="damaged", scope_inspection_id=insp_id)
    with pytest.raises(NotFound):
        status_svc.start_inspection(db, actor=actor, inspection_id=other_id, scope_inspection_id=insp_id)


def test_access_link_uses_configured_base():
    assert access_tokens.access_link("ab" * 16).endswith("/" + "ab" * 16)


def test_declining_the_assignment_kills_its_link(db, world, schedule):
    insp_id, asg = _outsourced(db, world, schedule)
    row = _issue(db, world, insp_id, asg)
    assert access_tokens.validate_access_token(db, row.token).id == row.id

    outsourcing.decline_assignment(db, actor=PRO, assignment_id=asg.id, reason="out of area")

    db.refresh(row)
    assert row.revoked is True
    assert row.revoked_at is not None
    with pytest.raises(InvalidToken):
        access_tokens.validate_access_token(db, row.token)
    with pytest.raises(InvalidToken):
        access_tokens.submit_inspection(db, row.token)
    assert store.must_get_inspection(db, insp_id).status == "scheduled"
