from __future__ import annotations

from app.schoolpanel.forms import Field, FieldSet


class UserForm(FieldSet):
    fields = (
        Field("fname", label="First name"),
        Field("lname", label="Last name"),
        Field("birthdate", kind="date", max_length=None),
        Field("address"),
        Field("email", kind="email", max_length=320),
        Field("gender"),
        Field("phonenum", label="Phone number"),
        Field("password", kind="password", max_length=None),
    )
