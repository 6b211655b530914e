# inspection_engine/domain/templates.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .errors import ValidationError


@dataclass(frozen=True)
class TemplateRoomSpec:
    name: str
    items: tuple[str, ...]
    display_order: int = 0


STANDARD_TEMPLATE_NAME = "Standard Residential"


def standard_residential_template() -> list[TemplateRoomSpec]:
    return [
        TemplateRoomSpec("Entry/Hallway", ("Front door", "Door locks", "Flooring", "Walls", "Ceiling", "Light fixtures", "Power points", "Smoke detector"), 0),
        TemplateRoomSpec("Living Room", ("Flooring", "Walls", "Ceiling", "Windows", "Window coverings", "Light fixtures", "Power points", "Air conditioning"), 1),
        TemplateRoomSpec("Kitchen", ("Flooring", "Walls", "Ceiling", "Benchtops", "Sink", "Tap/mixer", "Oven", "Cooktop", "Rangehood", "Dishwasher", "Cupboards", "Drawers"), 2),
        TemplateRoomSpec("Bathroom", ("Flooring", "Walls", "Ceiling", "Toilet", "Vanity", "Mirror", "Shower", "Bath", "Tap/mixer", "Exhaust fan", "Towel rails"), 3),
        TemplateRoomSpec("Bedroom 1", ("Flooring", "Walls", "Ceiling", "Windows", "Window coverings", "Wardrobe", "Light fixtures", "Power points"), 4),
        TemplateRoomSpec("Bedroom 2", ("Flooring", "Walls", "Ceiling", "Windows", "Window coverings", "Wardrobe", "Light fixtures", "Power points"), 5),
        TemplateRoomSpec("Laundry", ("Flooring", "Walls", "Ceiling", "Tub", "Tap", "Cupboards", "Dryer connection"), 6),
        TemplateRoomSpec("Outdoor/Garage", ("Driveway", "Garage door", "Garden", "Lawn", "Fencing", "Letterbox", "Clothesline"), 7),
    ]


def normalize_name(text: str) -> str:
    return " ".join((text or "").strip().split())


def name_key(text: str) -> str:
    """Alignment key for rooms/items: trimmed, whitespace-collapsed, case-insensitive."""
    return normalize_name(text).casefold()


def validate_template_rooms(rooms: Iterable[TemplateRoomSpec]) -> list[TemplateRoomSpec]:
    """
    Normalizes names and rejects blanks up front so expansion never starts
    on a template it cannot finish.
    """
    out: list[TemplateRoomSpec] = []
    for idx, room in enumerate(sorted(rooms, key=lambda r: r.display_order)):
        name = normalize_name(room.name)
        if not name:
            raise ValidationError(f"template room #{idx} has a blank name", field="rooms")
        items = tuple(normalize_name(i) for i in room.items)
        if any(not i for i in items):
            raise ValidationError(f"template room '{name}' has a blank item name", field="items")
        out.append(TemplateRoomSpec(name=name, items=items, display_order=room.display_order))
    if not out:
        raise ValidationError("template has no rooms", field="rooms")
    return out
