# inspection_engine/cli/__main__.py
from __future__ import annotations

import argparse

from ..auth import ROLES, Actor, issue_actor_jwt
from ..db import SessionLocal, engine
from ..models import Base
from ..services.template_expander import seed_default_templates


def seed(*, create_schema: bool = False) -> dict:
    if create_schema:
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        tpl = seed_default_templates(db)
        return {"ok": True, "template_id": tpl.id, "template_name": tpl.name, "rooms": len(tpl.rooms)}
    finally:
        db.close()


def mint_token(*, user_id: str, role: str, email: str | None = None) -> dict:
    actor = Actor(role=role, user_id=user_id, email=(email or "").strip().lower() or None)
    return {"ok": True, "token_type": "bearer", "access_token": issue_actor_jwt(actor)}


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="inspection_engine.cli")
    p.add_argument("--create-schema", action="store_true", help="create tables without alembic (dev sqlite)")
    sub = p.add_subparsers(dest="cmd")

    t = sub.add_parser("token", help="mint a bearer token for an identity from the upstream auth system")
    t.add_argument("--user-id", required=True)
    t.add_argument("--role", required=True, choices=list(ROLES))
    t.add_argument("--email", default=None)

    args = p.parse_args(argv)

    if args.cmd == "token":
        print(mint_token(user_id=args.user_id, role=args.role, email=args.email))
        return
    print(seed(create_schema=args.create_schema))


if __name__ == "__main__":
    main()
