# tests/test_inspection_lifecycle.py
from __future__ import annotations

import json

import pytest

from inspection_engine.domain.errors import Forbidden, InvalidTransition, ValidationError
from inspection_engine.models import AuditEvent
from inspection_engine.services import disputes as dispute_svc
from inspection_engine.services import inspection_status as status_svc
from inspection_engine.services import inspection_store as store


def _in_review(db, world, conduct, rooms=None) -> int:
    insp_id = conduct("entry", rooms or {"Kitchen": {"Oven": "good", "Sink": "fair"}})
    status_svc.send_for_review(db, actor=world.owner, inspection_id=insp_id)
    return insp_id


def test_happy_path_ends_finalized_with_signature(db, world, conduct):
    insp_id = _in_review(db, world, conduct)

    insp = status_svc.acknowledge_inspection(
        db, actor=world.tenant, inspection_id=insp_id, signature_url="https://cdn.example.com/sig/t1.png"
    )

    assert insp.status == "finalized"
    assert insp.tenant_acknowledged is True
    assert insp.tenant_acknowledged_at is not None
    assert insp.tenant_signature_url.endswith("t1.png")

    events = (
        db.query(AuditEvent)
        .filter(AuditEvent.entity_type == "Inspection", AuditEvent.entity_id == str(insp_id))
        .order_by(AuditEvent.id)
        .all()
    )
    actions = [e.action for e in events]
    assert actions[-4:] == ["inspection.start", "inspection.complete", "inspection.send_for_review", "inspection.acknowledge"]


def test_start_stamps_actual_date_and_completion_derives_overall(db, world, conduct):
    insp_id = conduct("routine", {"Kitchen": {"Oven": "good", "Sink": "poor"}, "Laundry": {"Tub": "fair"}})
    insp = store.must_get_inspection(db, insp_id)

    assert insp.status == "completed"
    assert insp.actual_date is not None
    assert insp.overall_condition == "poor"
    assert insp.duration_minutes is not None and insp.duration_minutes >= 0


def test_completion_with_incomplete_rooms(db, world, conduct):
    insp_id = conduct("routine", {"Kitchen": {"Oven": "good"}, "Garage": {"Door": "good"}}, complete=False)

    with pytest.raises(InvalidTransition):
        status_svc.complete_inspection(db, actor=world.inspector, inspection_id=insp_id)
    assert store.must_get_inspection(db, insp_id).status == "in_progress"

    insp = status_svc.complete_inspection(db, actor=world.inspector, inspection_id=insp_id, override_incomplete=True)
    assert insp.status == "completed"

    ev = db.query(AuditEvent).filter(AuditEvent.action == "inspection.complete_override").one()
    assert sorted(json.loads(ev.after_json)["incomplete_rooms"]) == ["Garage", "Kitchen"]


def test_completion_records_summary_and_action_items(db, world, conduct):
    insp_id = conduct("routine", {"Kitchen": {"Oven": "good"}}, complete=False)
    room = store.load_inspection_tree(db, insp_id).rooms[0]
    store.complete_room(db, actor=world.inspector, room_id=room.id)

    insp = status_svc.complete_inspection(
        db,
        actor=world.inspector,
        inspection_id=insp_id,
        summary_notes="tidy",
        action_items=["replace smoke detector battery"],
    )
    assert store.action_items(insp) == ["replace smoke detector battery"]
    assert insp.summary_notes == "tidy"


def test_acknowledge_requires_signature(db, world, conduct):
    insp_id = _in_review(db, world, conduct)
    with pytest.raises(ValidationError):
        status_svc.acknowledge_inspection(db, actor=world.tenant, inspection_id=insp_id, signature_url=" ")
    assert store.must_get_inspection(db, insp_id).status == "tenant_review"


def test_owner_cannot_acknowledge_for_tenant(db, world, conduct):
    insp_id = _in_review(db, world, conduct)
    with pytest.raises(Forbidden):
        status_svc.acknowledge_inspection(db, actor=world.owner, inspection_id=insp_id, signature_url="https://x/sig.png")


def test_review_without_tenancy_is_rejected(db, world, schedule):
    insp_id = schedule("pre_listing", tenancy=False)
    status_svc.start_inspection(db, actor=world.inspector, inspection_id=insp_id)
    status_svc.complete_inspection(db, actor=world.inspector, inspection_id=insp_id)

    with pytest.raises(InvalidTransition):
        status_svc.send_for_review(db, actor=world.owner, inspection_id=insp_id)


def test_disputes_block_finalize_until_resolved(db, world, conduct, items_of):
    insp_id = _in_review(db, world, conduct)
    oven = items_of(insp_id)[("Kitchen", "Oven")]

    insp = status_svc.dispute_inspection(
        db,
        actor=world.tenant,
        inspection_id=insp_id,
        dispute_text="oven rating is wrong",
        item_disputes=[{"item_id": oven, "reason": "door was already cracked", "proposed_condition": "poor"}],
    )
    assert insp.status == "disputed"
    assert insp.tenant_disputes == "oven rating is wrong"

    [dispute] = dispute_svc.list_disputes(db, actor=world.owner, inspection_id=insp_id)
    assert dispute.status == "open"

    with pytest.raises(InvalidTransition):
        status_svc.finalize_inspection(db, actor=world.owner, inspection_id=insp_id)

    dispute_svc.respond_to_dispute(db, actor=world.owner, dispute_id=dispute.id, response="agreed", resolved_condition="poor")
    item = store.must_get_item(db, oven)
    assert item.condition == "poor"

    insp = status_svc.finalize_inspection(db, actor=world.owner, inspection_id=insp_id)
    assert insp.status == "finalized"


def test_escalated_dispute_blocks_finalize(db, world, conduct, items_of):
    insp_id = _in_review(db, world, conduct)
    status_svc.dispute_inspection(db, actor=world.tenant, inspection_id=insp_id, dispute_text="disagree")
    d = dispute_svc.raise_item_dispute(
        db, actor=world.tenant, inspection_id=insp_id, item_id=items_of(insp_id)[("Kitchen", "Sink")], reason="sink was fine"
    )

    dispute_svc.respond_to_dispute(db, actor=world.owner, dispute_id=d.id, response="photo shows stains")
    assert dispute_svc.must_get_dispute(db, d.id).status == "owner_responded"

    dispute_svc.escalate_dispute(db, actor=world.tenant, dispute_id=d.id, notes="sending to tribunal")
    with pytest.raises(InvalidTransition):
        status_svc.finalize_inspection(db, actor=world.owner, inspection_id=insp_id)


def test_item_disputes_only_during_review(db, world, conduct, items_of):
    insp_id = conduct("routine", {"Kitchen": {"Oven": "good"}})
    with pytest.raises(ValidationError):
        dispute_svc.raise_item_dispute(
            db, actor=world.tenant, inspection_id=insp_id, item_id=items_of(insp_id)[("Kitchen", "Oven")], reason="no"
        )


def test_resolved_dispute_cannot_be_escalated(db, world, conduct, items_of):
    insp_id = _in_review(db, world, conduct)
    d = dispute_svc.raise_item_dispute(
        db, actor=world.tenant, inspection_id=insp_id, item_id=items_of(insp_id)[("Kitchen", "Oven")], reason="x"
    )
    dispute_svc.respond_to_dispute(db, actor=world.owner, dispute_id=d.id, response="ok", resolved_condition="good")
    with pytest.raises(ValidationError):
        dispute_svc.escalate_dispute(db, actor=world.tenant, dispute_id=d.id)


def test_terminal_states_cannot_be_cancelled(db, world, conduct):
    insp_id = _in_review(db, world, conduct)
    status_svc.acknowledge_inspection(db, actor=world.tenant, inspection_id=insp_id, signature_url="https://x/s.png")

    with pytest.raises(InvalidTransition):
        status_svc.cancel_inspection(db, actor=world.owner, inspection_id=insp_id)


def test_owner_countersign_keeps_status(db, world, conduct):
    insp_id = conduct("routine", {"Kitchen": {"Oven": "good"}})
    insp = status_svc.sign_inspection(db, actor=world.owner, inspection_id=insp_id, signature_url="https://x/o.png")
    assert insp.status == "completed"
    assert insp.owner_signed_at is not None


def test_tenant_signature_is_acknowledgment(db, world, conduct):
    insp_id = _in_review(db, world, conduct)
    insp = status_svc.sign_inspection(db, actor=world.tenant, inspection_id=insp_id, signature_url="https://x/t.png")
    assert insp.status == "finalized"
