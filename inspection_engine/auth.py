# inspection_engine/auth.py
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Header, HTTPException, Request

from .config import settings
from .domain.errors import Forbidden


ROLES = ("owner", "tenant", "inspector", "agent", "admin")


@dataclass(frozen=True)
class Actor:
    """Who is performing a mutation. Passed explicitly into every service call."""

    role: str  # owner | tenant | inspector | agent | admin
    user_id: Optional[str] = None
    email: Optional[str] = None


# Fixed per-operation allow-list. Services call require_capability() before writing.
CAPABILITIES: dict[str, frozenset[str]] = {
    "inspection.schedule": frozenset({"owner", "inspector", "agent", "admin"}),
    "inspection.expand_template": frozenset({"owner", "inspector", "agent", "admin"}),
    "inspection.edit_checklist": frozenset({"owner", "inspector", "admin"}),
    "inspection.rate_item": frozenset({"owner", "inspector", "admin"}),
    "inspection.complete_room": frozenset({"owner", "inspector", "admin"}),
    "inspection.attach_evidence": frozenset({"owner", "inspector", "tenant", "admin"}),
    "inspection.start": frozenset({"owner", "inspector", "admin"}),
    "inspection.complete": frozenset({"owner", "inspector", "admin"}),
    "inspection.send_for_review": frozenset({"owner", "agent", "admin"}),
    "inspection.acknowledge": frozenset({"tenant"}),
    "inspection.dispute": frozenset({"tenant"}),
    "inspection.finalize": frozenset({"owner", "admin"}),
    "inspection.cancel": frozenset({"owner", "agent", "admin"}),
    "inspection.sign": frozenset({"owner", "tenant"}),
    "inspection.record_report": frozenset({"owner", "agent", "admin"}),
    "template.manage": frozenset({"owner", "admin"}),
    "assignment.create": frozenset({"owner", "agent", "admin"}),
    "assignment.respond": frozenset({"inspector", "agent", "admin"}),
    "assignment.complete": frozenset({"owner", "inspector", "agent", "admin"}),
    "assignment.rate": frozenset({"owner", "admin"}),
    "assignment.mark_paid": frozenset({"owner", "agent", "admin"}),
    "token.issue": frozenset({"owner", "agent", "admin"}),
    "token.revoke": frozenset({"owner", "agent", "admin"}),
    "comparison.run": frozenset({"owner", "agent", "admin"}),
    "comparison.override": frozenset({"owner", "admin"}),
    "dispute.raise": frozenset({"tenant"}),
    "dispute.respond": frozenset({"owner", "admin"}),
    "dispute.escalate": frozenset({"owner", "tenant", "admin"}),
    "submission.create": frozenset({"tenant"}),
    "submission.review": frozenset({"owner", "admin"}),
    "room.acknowledge": frozenset({"tenant", "owner"}),
}


def require_capability(actor: Actor, operation: str) -> None:
    allowed = CAPABILITIES.get(operation)
    if allowed is None:
        raise KeyError(f"unknown operation {operation!r}")
    if actor.role not in allowed:
        raise Forbidden(actor.role, operation)


SYSTEM_ACTOR = Actor(role="agent", user_id="system")


# -------------------------
# JWT helpers (HS256, stdlib only)
# -------------------------
def _b64(x: bytes) -> str:
    return base64.urlsafe_b64encode(x).decode().rstrip("=")


def _ub64(s: str) -> bytes:
    s2 = s + "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode(s2.encode())


def jwt_sign(payload: dict[str, Any]) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    header_b = _b64(json.dumps(header, separators=(",", ":")).encode())
    payload_b = _b64(json.dumps(payload, separators=(",", ":")).encode())
    msg = f"{header_b}.{payload_b}".encode()
    sig = hmac.new(settings.jwt_secret.encode(), msg, hashlib.sha256).digest()
    return f"{header_b}.{payload_b}.{_b64(sig)}"


def issue_actor_jwt(actor: Actor, *, now: Optional[datetime] = None) -> str:
    """Bearer token for an actor, valid for settings.jwt_exp_minutes."""
    now = now or datetime.utcnow()
    exp = int((now + timedelta(minutes=int(settings.jwt_exp_minutes))).timestamp())
    claims: dict[str, Any] = {"sub": str(actor.user_id), "role": actor.role, "exp": exp}
    if actor.email:
        claims["email"] = actor.email
    return jwt_sign(claims)


def jwt_verify(token: str) -> dict[str, Any]:
    try:
        header_b, payload_b, sig_b = token.split(".", 2)
        msg = f"{header_b}.{payload_b}".encode()
        expected = hmac.new(settings.jwt_secret.encode(), msg, hashlib.sha256).digest()
        if not hmac.compare_digest(_ub64(sig_b), expected):
            raise HTTPException(status_code=401, detail="Invalid token signature")

        payload = json.loads(_ub64(payload_b).decode())
        exp = payload.get("exp")
        if exp is not None and int(exp) < int(datetime.utcnow().timestamp()):
            raise HTTPException(status_code=401, detail="Token expired")
        return dict(payload)
    except HTTPException:
        raise
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid token")


# -------------------------
# get_actor
# -------------------------
def get_actor(
    request: Request,
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Actor:
    """
    Auth modes supported (in priority order):
      1) Authorization: Bearer <jwt> with sub/role/email claims
      2) dev header spoofing (ONLY if settings.auth_mode == "dev")
    """
    if authorization and str(authorization).lower().startswith("bearer "):
        claims = jwt_verify(str(authorization).split(" ", 1)[1].strip())
        sub = str(claims.get("sub") or "")
        role = str(claims.get("role") or "").lower()
        if not sub:
            raise HTTPException(status_code=401, detail="Token missing sub")
        if role not in ROLES:
            raise HTTPException(status_code=401, detail="Token has unknown role")
        return Actor(role=role, user_id=sub, email=claims.get("email"))

    if settings.auth_mode == "dev":
        user_id = (request.headers.get(settings.dev_header_user_id) or "").strip()
        role = (request.headers.get(settings.dev_header_user_role) or "owner").strip().lower()
        email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower() or None
        if not user_id:
            raise HTTPException(status_code=401, detail=f"Missing {settings.dev_header_user_id} for dev auth")
        if role not in ROLES:
            raise HTTPException(status_code=401, detail=f"Unknown role {role!r}")
        return Actor(role=role, user_id=user_id, email=email)

    raise HTTPException(status_code=401, detail="Not authenticated")
