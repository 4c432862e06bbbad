"""
Error taxonomy shared by the store, the guard, the controllers and the
assignment service.
"""
from __future__ import annotations


class PanelError(Exception):
    """Base exception for panel operations."""


class NotFound(PanelError):
    """Referenced entity id (or relation name) does not exist."""

    def __init__(self, entity_type: str, entity_id: object = None) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        if entity_id is None:
            super().__init__(f"{entity_type} not found")
        else:
            super().__init__(f"{entity_type} {entity_id!r} not found")


class Forbidden(PanelError):
    """Actor lacks the permission required for the operation."""

    def __init__(self, permission: str) -> None:
        self.permission = permission
        super().__init__(f"Missing permission: {permission}")


class ValidationFailed(PanelError):
    """Input fields fail declared constraints. `errors` maps field -> message."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class IntegrityViolation(PanelError):
    """Association references an unrecognized entity."""
