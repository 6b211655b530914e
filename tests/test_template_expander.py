# tests/test_template_expander.py
from __future__ import annotations

import pytest

from inspection_engine.cli.__main__ import main as cli_main, seed as seed_cli
from inspection_engine.domain.errors import NotFound, ValidationError
from inspection_engine.domain.templates import TemplateRoomSpec, name_key, validate_template_rooms
from inspection_engine.models import InspectionItem, InspectionRoom
from inspection_engine.services import inspection_store as store
from inspection_engine.services.template_expander import (
    create_template,
    expand_template,
    get_template,
    list_templates,
    seed_default_templates,
)


def _room_count(db, inspection_id: int) -> int:
    return db.query(InspectionRoom).filter(InspectionRoom.inspection_id == inspection_id).count()


def test_default_template_seed_is_idempotent(db, world):
    first = seed_default_templates(db)
    second = seed_default_templates(db)

    assert first.id == second.id
    assert first.is_default is True
    assert [r.name for r in first.rooms][:3] == ["Entry/Hallway", "Living Room", "Kitchen"]
    assert len(first.rooms) == 8
    assert len(list_templates(db, actor=world.owner)) == 1


def test_expand_default_template_materializes_unrated_checklist(db, world, schedule):
    tpl = seed_default_templates(db)
    insp_id = schedule("routine")

    created = expand_template(db, actor=world.owner, inspection_id=insp_id, template_id=tpl.id)

    assert len(created) == 8
    tree = store.load_inspection_tree(db, insp_id)
    kitchen = next(r for r in tree.rooms if r.name == "Kitchen")
    assert "Oven" in [i.name for i in kitchen.items]
    assert all(i.condition is None and i.condition_changed is False for r in tree.rooms for i in r.items)
    assert [r.display_order for r in tree.rooms] == list(range(8))


def test_expansion_is_all_or_nothing_on_blank_item(db, world, schedule):
    insp_id = schedule("routine")
    rooms = [
        TemplateRoomSpec("Kitchen", ("Oven", "Sink"), 0),
        TemplateRoomSpec("Bathroom", ("Toilet", "   "), 1),
    ]

    with pytest.raises(ValidationError):
        expand_template(db, actor=world.owner, inspection_id=insp_id, rooms=rooms)

    assert _room_count(db, insp_id) == 0
    assert db.query(InspectionItem).count() == 0


def test_expansion_needs_exactly_one_source(db, world, schedule):
    tpl = seed_default_templates(db)
    insp_id = schedule("routine")

    with pytest.raises(ValidationError):
        expand_template(db, actor=world.owner, inspection_id=insp_id)
    with pytest.raises(ValidationError):
        expand_template(
            db,
            actor=world.owner,
            inspection_id=insp_id,
            template_id=tpl.id,
            rooms=[TemplateRoomSpec("Kitchen", ("Oven",), 0)],
        )


def test_second_expansion_appends_after_existing_rooms(db, world, schedule):
    insp_id = schedule("routine")
    expand_template(db, actor=world.owner, inspection_id=insp_id, rooms=[TemplateRoomSpec("Kitchen", ("Oven",), 0)])
    expand_template(db, actor=world.owner, inspection_id=insp_id, rooms=[TemplateRoomSpec("Garage", ("Door",), 0)])

    tree = store.load_inspection_tree(db, insp_id)
    assert [(r.name, r.display_order) for r in tree.rooms] == [("Kitchen", 0), ("Garage", 1)]


def test_exit_expansion_snapshots_entry_ratings_by_normalized_name(db, world, conduct, schedule):
    entry_id = conduct("entry", {"Living Room": {"Carpet": "good"}})
    exit_id = schedule("exit", compare_to=entry_id)

    expand_template(
        db,
        actor=world.owner,
        inspection_id=exit_id,
        rooms=[TemplateRoomSpec(" living   room ", ("CARPET", "Blinds"), 0)],
    )

    tree = store.load_inspection_tree(db, exit_id)
    items = {i.name: i for i in tree.rooms[0].items}
    assert items["CARPET"].entry_condition == "good"
    assert items["Blinds"].entry_condition is None
    assert items["CARPET"].condition_changed is False


def test_expansion_rejected_once_inspection_completed(db, world, conduct):
    insp_id = conduct("routine", {"Kitchen": {"Oven": "good"}})

    with pytest.raises(ValidationError):
        expand_template(db, actor=world.owner, inspection_id=insp_id, rooms=[TemplateRoomSpec("Garage", ("Door",), 0)])


def test_private_templates_are_invisible_to_other_owners(db, world):
    tpl = create_template(
        db,
        actor=world.owner,
        name="Studio flat",
        rooms=[TemplateRoomSpec("Main room", ("Flooring", "Walls"), 0)],
    )

    assert get_template(db, actor=world.owner, template_id=tpl.id).name == "Studio flat"
    with pytest.raises(NotFound):
        get_template(db, actor=world.other_owner, template_id=tpl.id)
    assert tpl.id not in [t.id for t in list_templates(db, actor=world.other_owner)]


def test_validate_template_rooms_normalizes_names():
    out = validate_template_rooms([TemplateRoomSpec("  Master   Bedroom ", (" Wardrobe  doors ",), 0)])
    assert out[0].name == "Master Bedroom"
    assert out[0].items == ("Wardrobe doors",)
    assert name_key(" Master  BEDROOM") == name_key("master bedroom")

    with pytest.raises(ValidationError):
        validate_template_rooms([])


def test_seed_cli_reports_the_same_default_on_rerun(db, capsys):
    first = seed_cli()
    second = seed_cli()

    assert first["ok"] is True
    assert first["template_id"] == second["template_id"]
    assert first["rooms"] == 8

    cli_main([])
    assert "'ok': True" in capsys.readouterr().out
