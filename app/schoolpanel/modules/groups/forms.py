from __future__ import annotations

from app.schoolpanel.forms import Field, FieldSet


class GroupForm(FieldSet):
    fields = (Field("name"),)
