"""
Declared field sets for entity input.

Each entity declares its accepted fields once; `parse()` turns raw request
input into column values or raises `ValidationFailed` with one message per
offending field. Keys that are not declared are rejected, never ignored.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any, ClassVar

from werkzeug.security import generate_password_hash

from app.schoolpanel.errors import ValidationFailed

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

# Form plumbing that may ride along with any submission.
TRANSPORT_KEYS = frozenset({"csrf_token", "_method"})


@dataclass(frozen=True)
class Field:
    name: str
    kind: str = "text"  # text | date | email | password
    required: bool = True
    max_length: int | None = 255
    label: str | None = None

    @property
    def title(self) -> str:
        return self.label or self.name.replace("_", " ").capitalize()

    @property
    def column(self) -> str:
        return "password_hash" if self.kind == "password" else self.name


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD date string."""
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    return date.fromisoformat(s)


class FieldSet:
    fields: ClassVar[tuple[Field, ...]] = ()

    @classmethod
    def names(cls) -> frozenset[str]:
        return frozenset(f.name for f in cls.fields)

    @classmethod
    def parse(cls, payload: Mapping[str, Any], *, partial: bool = False) -> dict[str, Any]:
        """
        Validate `payload` and return column -> value.

        With `partial=True` (updates) absent fields are left out instead of
        being reported as missing, and a blank password keeps the current one.
        """
        errors: dict[str, str] = {}
        for key in sorted(set(payload) - cls.names() - TRANSPORT_KEYS):
            errors[key] = "Unknown field."

        values: dict[str, Any] = {}
        for f in cls.fields:
            if f.name not in payload:
                if f.required and not partial:
                    errors[f.name] = f"{f.title} is required."
                continue
            raw = payload.get(f.name)
            text = "" if raw is None else str(raw)
            if f.kind != "password":
                text = text.strip()
            if not text:
                if f.kind == "password" and partial:
                    continue
                if f.required:
                    errors[f.name] = f"{f.title} is required."
                else:
                    values[f.column] = None
                continue
            if f.max_length and len(text) > f.max_length:
                errors[f.name] = f"{f.title} may not be greater than {f.max_length} characters."
                continue
            try:
                values[f.column] = cls._convert(f, text)
            except ValueError as e:
                errors[f.name] = str(e)

        if errors:
            raise ValidationFailed(errors)
        return values

    @staticmethod
    def _convert(f: Field, text: str) -> Any:
        if f.kind == "date":
            try:
                return parse_date(text)
            except ValueError:
                raise ValueError(f"{f.title} must be a valid date (YYYY-MM-DD).")
        if f.kind == "email":
            email = text.lower()
            if not _EMAIL_RE.match(email):
                raise ValueError(f"{f.title} must be a valid email address.")
            return email
        if f.kind == "password":
            return generate_password_hash(text)
        return text

    @classmethod
    def echo(cls, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Submitted input safe to send back to a form (passwords dropped)."""
        secret = {f.name for f in cls.fields if f.kind == "password"}
        return {k: v for k, v in payload.items() if k in cls.names() and k not in secret}
