# tests/test_comparison_rules.py
from __future__ import annotations

from datetime import datetime

import pytest

from inspection_engine.domain.comparison import (
    Classification,
    Computed,
    Evidence,
    ItemSnapshot,
    Overridden,
    RoomSnapshot,
    aggregate,
    align,
    compose_reasoning,
    is_material_change,
)
from inspection_engine.integrations.vision_client import ConditionRuleClassifier
from inspection_engine.services.comparison_engine import evidence_factor


@pytest.mark.parametrize(
    "entry,exit,material",
    [
        ("good", "damaged", True),
        ("good", "fair", True),
        ("fair", "good", False),
        ("good", "good", False),
        (None, "poor", True),
        ("not_applicable", "poor", True),
        ("good", None, False),
        ("good", "not_applicable", False),
    ],
)
def test_material_change(entry, exit, material):
    assert is_material_change(entry, exit) is material


def test_align_matches_names_loosely_and_keeps_exit_order():
    entry = [
        RoomSnapshot(1, "Living Room", (ItemSnapshot(10, "Carpet", "good"), ItemSnapshot(11, "Blinds", "good"))),
        RoomSnapshot(2, "Garage", (ItemSnapshot(12, "Door", "good"),)),
    ]
    exit_ = [
        RoomSnapshot(5, "living  room", (ItemSnapshot(20, "blinds ", "poor"), ItemSnapshot(21, "CARPET", "damaged"))),
        RoomSnapshot(6, "Study", (ItemSnapshot(22, "Desk", "fair", entry_condition="good"),)),
    ]

    aligned = align(entry, exit_)

    assert [(a.room_name, a.item_name) for a in aligned] == [("living  room", "blinds "), ("living  room", "CARPET"), ("Study", "Desk")]
    assert [a.entry_item_id for a in aligned] == [11, 10, None]
    assert aligned[2].entry.condition == "good"
    assert aligned[1].key == ("living room", "carpet")


def test_unrated_exit_items_are_skipped():
    entry = [RoomSnapshot(1, "Kitchen", (ItemSnapshot(10, "Oven", "good"),))]
    exit_ = [RoomSnapshot(2, "Kitchen", (ItemSnapshot(20, "Oven", None),))]
    assert align(entry, exit_) == []


def test_normalized_rejects_unknown_change_type_and_clamps():
    with pytest.raises(ValueError):
        Classification("scratched", True, 0.5, 10).normalized()

    c = Classification("major_damage", True, 1.7, -5).normalized()
    assert c.confidence == 1.0
    assert c.estimated_cost == 0.0
    assert c.severity == "major"

    w = Classification("wear_and_tear", True, 0.9, 80).normalized()
    assert w.is_tenant_responsible is False


@pytest.mark.parametrize(
    "tenant,confidence,cost",
    [
        ("false", 0.9, 100),
        (1, 0.9, 100),
        (True, "0.9", 100),
        (True, 0.9, None),
    ],
)
def test_normalized_rejects_loosely_typed_answers(tenant, confidence, cost):
    with pytest.raises(ValueError):
        Classification("minor_damage", tenant, confidence, cost).normalized()


def test_aggregate_uses_machine_counts_and_owner_recommendation():
    damage = Classification("major_damage", True, 0.9, 600).normalized()
    wear = Classification("wear_and_tear", False, 0.9, 50).normalized()
    verdicts = [
        Overridden(damage, owner_agreed=False, by="owner-1", at=datetime(2026, 3, 5)),
        Computed(wear),
        Computed(Classification("missing", True, 0.8, 250).normalized()),
    ]

    agg = aggregate(verdicts)

    assert agg.total_issues == 3
    assert agg.tenant_responsible_count == 2
    assert agg.wear_and_tear_count == 1
    assert agg.total_estimated_cost == pytest.approx(900.0)
    assert agg.bond_deduction_amount == pytest.approx(850.0)
    assert agg.bond_deduction_recommended == pytest.approx(250.0)


def test_reasoning_lists_charged_items_only():
    lines = [
        ("Living Room", "Carpet", Classification("major_damage", True, 0.9, 600).normalized()),
        ("Kitchen", "Walls", Classification("wear_and_tear", False, 0.9, 50).normalized()),
    ]
    text = compose_reasoning(lines)
    assert "Carpet" in text and "$600.00" in text
    assert "Walls" not in text
    assert compose_reasoning([]).startswith("No tenant-responsible")


def test_evidence_factor():
    with_photo = Evidence("good", image_urls=("https://cdn/a.jpg",))
    without = Evidence("good")
    assert evidence_factor(with_photo, with_photo) == pytest.approx(1.0)
    assert evidence_factor(without, with_photo) == pytest.approx(0.8)
    assert evidence_factor(without, without) == pytest.approx(0.6)


@pytest.mark.parametrize(
    "entry,exit,change,tenant",
    [
        ("good", "damaged", "major_damage", True),
        ("excellent", "damaged", "major_damage", True),
        ("fair", "damaged", "minor_damage", True),
        ("good", "missing", "missing", True),
        ("good", "poor", "minor_damage", True),
        ("fair", "poor", "wear_and_tear", False),
        ("excellent", "fair", "wear_and_tear", False),
        (None, "damaged", "major_damage", True),
    ],
)
def test_condition_rules(entry, exit, change, tenant):
    c = ConditionRuleClassifier().classify(Evidence(entry), Evidence(exit), "Carpet")
    assert c.change_type == change
    assert c.is_tenant_responsible is tenant
    assert c.confidence == pytest.approx(0.9)
    assert c.estimated_cost == ConditionRuleClassifier.COSTS[change]
