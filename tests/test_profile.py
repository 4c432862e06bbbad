"""Tests for the profile pages (own and others')."""
import json
from datetime import date

import pytest
from werkzeug.security import check_password_hash, generate_password_hash

from app.schoolpanel import create_app
from app.schoolpanel.db import session_scope
from app.schoolpanel.models import AuditEvent, Base, Permission, Role, User


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CSRF_ENABLED", "0")
    for k in ("PER_PAGE", "VIEW_RENDERER", "SUPERUSER_ROLE"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        perms = [Permission(key=f"users_{op}", name=f"Users: {op}") for op in ("show", "edit", "update")]
        admin = _user("admin@school.test", "Ada")
        admin.roles.append(Role(key="Admin", name="Administrator", permissions=perms))
        student = _user("stu@school.test", "Sam")
        student.roles.append(Role(key="Student", name="Student"))
        s.add_all([admin, student, _user("other@school.test", "Olga")])
    return app


def _user(email: str, fname: str) -> User:
    return User(
        fname=fname,
        lname="Test",
        birthdate=date(2001, 2, 3),
        address="-",
        email=email,
        gender="-",
        phonenum="-",
        password_hash=generate_password_hash("pw"),
        is_active=True,
    )


def _client(app, user_id: int):
    c = app.test_client()
    with c.session_transaction() as sess:
        sess["user_id"] = user_id
    return c


def _messages(r):
    return [(m["category"], m["text"]) for m in r.json["messages"]]


def test_profile_requires_login(app):
    c = app.test_client()
    assert c.get("/profile").status_code == 401
    assert c.patch("/profile/update", data={"fname": "X"}).status_code == 401


def test_own_profile_without_any_permission(app):
    c = _client(app, 2)
    r = c.get("/profile")
    assert r.status_code == 200
    assert r.json["view"] == "profile.show"
    assert r.json["context"]["user"]["email"] == "stu@school.test"
    assert r.json["context"]["own"] is True
    assert "password_hash" not in r.json["context"]["user"]

    r = c.get("/profile/edit")
    assert r.json["view"] == "profile.edit"

    # Own id through the /profiles routes counts as own profile.
    assert c.get("/profiles/2").status_code == 200


def test_update_own_profile(app):
    c = _client(app, 2)
    r = c.patch("/profile/update", data={"address": "7 Oak Ln", "password": "new-pass"}, follow_redirects=True)
    assert r.json["view"] == "profile.show"
    assert ("success", "Your profile was updated successfully.") in _messages(r)

    with session_scope(app) as s:
        u = s.get(User, 2)
        assert u.address == "7 Oak Ln"
        assert u.fname == "Sam"
        assert check_password_hash(u.password_hash, "new-pass")
        ev = s.query(AuditEvent).one()
        assert ev.action == "profile.update"
        assert ev.actor_user_email == "stu@school.test"
        assert json.loads(ev.metadata_json)["fields"] == ["address", "password_hash"]


def test_blank_password_keeps_current_one(app):
    c = _client(app, 2)
    c.post("/profile/update", data={"phonenum": "555-0199", "password": ""})
    with session_scope(app) as s:
        u = s.get(User, 2)
        assert u.phonenum == "555-0199"
        assert check_password_hash(u.password_hash, "pw")


def test_invalid_profile_update_is_unprocessable(app):
    c = _client(app, 2)
    r = c.patch("/profile/update", data={"password": "x", "birthdate": "nope"})
    assert r.status_code == 422
    assert r.json["view"] == "profile.edit"
    assert "birthdate" in r.json["context"]["errors"]
    assert "password" not in r.json["context"]["input"]

    r = c.patch("/profile/update", data={"email": "Admin@School.test"})
    assert r.status_code == 422
    assert r.json["context"]["errors"] == {"email": "Email has already been taken."}
    with session_scope(app) as s:
        assert s.get(User, 2).email == "stu@school.test"


def test_other_profiles_need_users_permissions(app):
    c = _client(app, 2)
    for method, path in (("get", "/profiles/3"), ("get", "/profiles/3/edit"), ("patch", "/profiles/3/update")):
        r = getattr(c, method)(path, data={"fname": "Hacked"})
        assert r.status_code == 403
    assert r.json["context"]["missing_permission"] == "users_update"
    with session_scope(app) as s:
        assert s.get(User, 3).fname == "Olga"


def test_admin_edits_another_profile(app):
    c = _client(app, 1)
    r = c.get("/profiles/3")
    assert r.json["context"]["user"]["email"] == "other@school.test"
    assert r.json["context"]["own"] is False

    r = c.patch("/profiles/3/update", json={"lname": "Ivanova"}, follow_redirects=True)
    assert r.json["view"] == "profile.show"
    assert ("success", "Olga Ivanova's profile was updated successfully.") in _messages(r)
    with session_scope(app) as s:
        assert s.get(User, 3).lname == "Ivanova"


def test_missing_profile_redirects(app):
    c = _client(app, 1)
    for method, path in (("get", "/profiles/404"), ("get", "/profiles/404/edit"), ("patch", "/profiles/404/update")):
        r = getattr(c, method)(path, follow_redirects=True)
        assert r.status_code == 200
        assert r.json["view"] == "profile.show"
        assert r.json["context"]["user"]["email"] == "admin@school.test"
        assert _messages(r) == [("error", "Profile not found")]
