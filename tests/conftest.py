# tests/conftest.py
from __future__ import annotations

import os
import tempfile
from types import SimpleNamespace

# must be set before inspection_engine.config is imported
_DB_DIR = tempfile.mkdtemp(prefix="inspection-engine-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["AUTH_MODE"] = "dev"
os.environ["VISION_ENABLED"] = "false"
os.environ["CELERY_BROKER_URL"] = ""

import pytest

from inspection_engine import models  # noqa: F401
from inspection_engine.auth import Actor
from inspection_engine.db import Base, SessionLocal, engine
from inspection_engine.domain.templates import TemplateRoomSpec
from inspection_engine.models import Property, Tenancy
from inspection_engine.services import inspection_status as status_svc
from inspection_engine.services import inspection_store as store
from inspection_engine.services.template_expander import expand_template

OWNER = Actor(role="owner", user_id="owner-1", email="owner@demo.local")
OTHER_OWNER = Actor(role="owner", user_id="owner-2", email="other@demo.local")
TENANT = Actor(role="tenant", user_id="tenant-1", email="tenant@demo.local")
INSPECTOR = Actor(role="inspector", user_id="insp-1", email="insp@demo.local")
AGENT = Actor(role="agent", user_id="agent-1")
ADMIN = Actor(role="admin", user_id="admin-1")


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def world(db):
    prop = Property(owner_user_id=OWNER.user_id, address="12 Harbour St", state="NSW")
    db.add(prop)
    db.flush()
    tenancy = Tenancy(property_id=prop.id, tenant_user_id=TENANT.user_id)
    db.add(tenancy)
    db.commit()
    return SimpleNamespace(
        property_id=prop.id,
        tenancy_id=tenancy.id,
        owner=OWNER,
        other_owner=OTHER_OWNER,
        tenant=TENANT,
        inspector=INSPECTOR,
        agent=AGENT,
        admin=ADMIN,
    )


def item_ids(db, inspection_id: int) -> dict[tuple[str, str], int]:
    tree = store.load_inspection_tree(db, inspection_id)
    return {(r.name, i.name): i.id for r in tree.rooms for i in r.items}


@pytest.fixture
def schedule(db, world):
    def _schedule(kind: str = "routine", *, compare_to=None, tenancy: bool = True):
        insp = store.schedule_inspection(
            db,
            actor=OWNER,
            property_id=world.property_id,
            inspector_id=INSPECTOR.user_id,
            kind=kind,
            scheduled_date="2026-03-01",
            tenancy_id=world.tenancy_id if tenancy else None,
            compare_to_inspection_id=compare_to,
        )
        return insp.id

    return _schedule


@pytest.fixture
def conduct(db, schedule):
    """
    Runs an inspection end to end: rooms is {room: {item: condition}}, photos is
    a set of (room, item) pairs that get one image each. Returns the inspection id.
    """

    def _conduct(kind: str, rooms: dict, *, compare_to=None, photos=(), complete: bool = True) -> int:
        insp_id = schedule(kind, compare_to=compare_to)
        expand_template(
            db,
            actor=OWNER,
            inspection_id=insp_id,
            rooms=[TemplateRoomSpec(name=r, items=tuple(items), display_order=i) for i, (r, items) in enumerate(rooms.items())],
        )
        status_svc.start_inspection(db, actor=INSPECTOR, inspection_id=insp_id)

        ids = item_ids(db, insp_id)
        for room_name, items in rooms.items():
            for item_name, cond in items.items():
                if cond is not None:
                    store.rate_item(db, actor=INSPECTOR, item_id=ids[(room_name, item_name)], condition=cond)
                if (room_name, item_name) in photos:
                    store.attach_image(
                        db,
                        actor=INSPECTOR,
                        inspection_id=insp_id,
                        storage_path=f"inspections/{insp_id}/{item_name}.jpg",
                        url=f"https://cdn.example.com/{insp_id}/{item_name}.jpg",
                        item_id=ids[(room_name, item_name)],
                    )

        if complete:
            tree = store.load_inspection_tree(db, insp_id)
            for room in tree.rooms:
                store.complete_room(db, actor=INSPECTOR, room_id=room.id)
            status_svc.complete_inspection(db, actor=INSPECTOR, inspection_id=insp_id)
        return insp_id

    return _conduct


@pytest.fixture
def items_of(db):
    def _items_of(inspection_id: int) -> dict[tuple[str, str], int]:
        return item_ids(db, inspection_id)

    return _items_of
