from __future__ import annotations

from app.schoolpanel.forms import Field, FieldSet


class SubjectForm(FieldSet):
    fields = (Field("name"),)
