# inspection_engine/domain/errors.py
from __future__ import annotations

from typing import Optional


class InspectionError(Exception):
    """Base class for every error the inspection workflow raises on purpose."""

    code = "inspection_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(InspectionError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: object = None):
        msg = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(msg)
        self.entity = entity
        self.entity_id = entity_id


class InvalidTransition(InspectionError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, requested: str, reason: str):
        super().__init__(f"cannot move inspection from '{current}' to '{requested}': {reason}")
        self.current = current
        self.requested = requested
        self.reason = reason


class InvalidToken(InspectionError):
    """
    Raised for unknown, expired, revoked or already-completed access tokens.
    The message is fixed so callers cannot tell those cases apart.
    """

    code = "invalid_token"
    status_code = 401
    GENERIC_MESSAGE = "invalid or expired access link"

    def __init__(self) -> None:
        super().__init__(self.GENERIC_MESSAGE)


class ValidationError(InspectionError):
    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class Forbidden(InspectionError):
    code = "forbidden"
    status_code = 403

    def __init__(self, role: str, operation: str):
        super().__init__(f"role '{role}' may not perform '{operation}'")
        self.role = role
        self.operation = operation


class ExternalCapabilityFailure(InspectionError):
    code = "external_capability_failure"
    status_code = 502


class ConcurrencyAnomaly(InspectionError):
    code = "concurrency_anomaly"
    status_code = 409
