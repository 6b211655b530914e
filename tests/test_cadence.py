# tests/test_cadence.py
from __future__ import annotations

from datetime import date, datetime

import pytest

from inspection_engine.domain.cadence import add_months, next_inspection_due
from inspection_engine.models import Property
from inspection_engine.services import inspection_status as status_svc


@pytest.mark.parametrize(
    "start, months, expected",
    [
        (date(2026, 3, 15), 6, date(2026, 9, 15)),
        (date(2026, 8, 31), 6, date(2027, 2, 28)),
        (date(2027, 8, 31), 6, date(2028, 2, 29)),
        (date(2026, 11, 30), 3, date(2027, 2, 28)),
        (date(2026, 1, 31), 12, date(2027, 1, 31)),
    ],
)
def test_add_months_clamps_to_month_end(start, months, expected):
    assert add_months(start, months) == expected


def test_missing_or_bad_interval_uses_six_months():
    at = datetime(2026, 4, 10, 9, 30)
    assert next_inspection_due(at, None) == date(2026, 10, 10)
    assert next_inspection_due(at, 0) == date(2026, 10, 10)
    assert next_inspection_due(at, 3) == date(2026, 7, 10)


def test_completion_moves_property_markers(db, world, conduct):
    prop = db.get(Property, world.property_id)
    assert prop.last_inspection_at is None
    assert prop.next_inspection_due is None

    conduct("routine", {"Kitchen": {"Oven": "good"}})

    db.refresh(prop)
    assert prop.last_inspection_at is not None
    assert prop.next_inspection_due == add_months(prop.last_inspection_at.date(), 6)


def test_property_interval_is_honoured(db, world, conduct):
    prop = db.get(Property, world.property_id)
    prop.inspection_interval_months = 12
    db.commit()

    conduct("routine", {"Kitchen": {"Oven": "good"}})

    db.refresh(prop)
    assert prop.next_inspection_due == add_months(prop.last_inspection_at.date(), 12)


def test_finalizing_keeps_markers_on_the_property(db, world, conduct):
    insp_id = conduct("entry", {"Kitchen": {"Oven": "good"}})
    status_svc.send_for_review(db, actor=world.owner, inspection_id=insp_id)
    status_svc.acknowledge_inspection(
        db, actor=world.tenant, inspection_id=insp_id, signature_url="https://cdn.example.com/sig/t1.png"
    )

    prop = db.get(Property, world.property_id)
    db.refresh(prop)
    assert prop.last_inspection_at is not None
    assert prop.next_inspection_due is not None


def test_scheduling_alone_does_not_move_markers(db, world, schedule):
    schedule("routine")
    prop = db.get(Property, world.property_id)
    assert prop.last_inspection_at is None
