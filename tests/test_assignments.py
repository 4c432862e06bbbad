"""Tests for many-to-many sync from an anchor entity."""
from datetime import date

import pytest
from werkzeug.security import generate_password_hash

from app.schoolpanel import create_app
from app.schoolpanel.assignments import AssignmentService
from app.schoolpanel.catalogue import permission_catalogue
from app.schoolpanel.db import session_scope
from app.schoolpanel.errors import IntegrityViolation, NotFound
from app.schoolpanel.models import AuditEvent, Base, Permission, Role, User
from app.schoolpanel.modules.groups.models import Group
from app.schoolpanel.modules.subjects.models import Subject
from app.schoolpanel.modules.users.admin import relations as user_relations
from app.schoolpanel.modules.subjects.admin import relations as subject_relations
from app.schoolpanel.rbac import AuthorizationGuard


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CSRF_ENABLED", "0")
    monkeypatch.setenv("SUPERUSER_ROLE", "Admin")
    for k in ("PER_PAGE", "VIEW_RENDERER"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        roles = [Role(key=key, name=key) for key in ("Admin", "Student", "Parent", "Teacher")]
        admin = _user("admin@school.test", "Ada")
        admin.roles.append(roles[0])
        s.add_all(roles)
        s.add_all([admin, _user("ann@x.test", "Ann"), _user("bob@x.test", "Bob")])
        s.add_all([Group(name="1A"), Subject(name="Maths"), Subject(name="History")])
    return app


def _user(email: str, fname: str) -> User:
    return User(
        fname=fname,
        lname="Test",
        birthdate=date(1990, 1, 1),
        address="-",
        email=email,
        gender="-",
        phonenum="-",
        password_hash=generate_password_hash("pw"),
        is_active=True,
    )


@pytest.fixture()
def client(app):
    c = app.test_client()
    with c.session_transaction() as sess:
        sess["user_id"] = 1
    return c


def _role_keys(app, user_id: int) -> set[str]:
    with session_scope(app) as s:
        return {r.key for r in s.get(User, user_id).roles}


def _messages(r):
    return [(m["category"], m["text"]) for m in r.json["messages"]]


def test_role_sync_replaces_the_whole_set(app):
    with session_scope(app) as s:
        change = AssignmentService(s, user_relations).update_assignment(2, "roles", ["Admin", "Teacher"])
        assert change.added == ("Admin", "Teacher")
        assert change.removed == ()
    assert _role_keys(app, 2) == {"Admin", "Teacher"}

    with session_scope(app) as s:
        change = AssignmentService(s, user_relations).update_assignment(2, "roles", ["Teacher"])
        assert change.added == ()
        assert change.removed == ("Admin",)
    assert _role_keys(app, 2) == {"Teacher"}


def test_sync_is_idempotent(app):
    with session_scope(app) as s:
        AssignmentService(s, user_relations).update_assignment(2, "subjects", [1, 2])
    with session_scope(app) as s:
        change = AssignmentService(s, user_relations).update_assignment(2, "subjects", ["2", "1", "1"])
        assert (change.added, change.removed) == ((), ())
        assert not change.changed
    with session_scope(app) as s:
        assert sorted(x.name for x in s.get(User, 2).subjects) == ["History", "Maths"]


def test_empty_selection_clears_the_set(app):
    with session_scope(app) as s:
        AssignmentService(s, user_relations).update_assignment(2, "roles", ["Student"])
    with session_scope(app) as s:
        change = AssignmentService(s, user_relations).update_assignment(2, "roles", [])
        assert change.removed == ("Student",)
    assert _role_keys(app, 2) == set()


def test_unknown_relation_and_anchor(app):
    with session_scope(app) as s:
        service = AssignmentService(s, user_relations)
        with pytest.raises(NotFound) as exc:
            service.update_assignment(2, "teachers", [1])
        assert exc.value.entity_type == "Relation"
        with pytest.raises(NotFound) as exc:
            service.update_assignment(99, "roles", ["Admin"])
        assert exc.value.entity_type == "User"
        with pytest.raises(NotFound):
            service.show_assignment(99, "roles")


def test_unknown_reference_rolls_back(app):
    with session_scope(app) as s:
        AssignmentService(s, user_relations).update_assignment(2, "roles", ["Student"])

    with session_scope(app) as s:
        service = AssignmentService(s, user_relations)
        with pytest.raises(IntegrityViolation):
            service.update_assignment(2, "roles", ["Teacher", "Janitor"])
        with pytest.raises(IntegrityViolation):
            service.update_assignment(2, "groups", ["one"])
    assert _role_keys(app, 2) == {"Student"}


def test_user_cannot_parent_themselves(app):
    with session_scope(app) as s:
        service = AssignmentService(s, user_relations)
        with pytest.raises(IntegrityViolation, match="itself"):
            service.update_assignment(2, "parents", [2, 3])
        change = service.update_assignment(2, "parents", [3])
        assert change.added == (3,)
    with session_scope(app) as s:
        assert [u.fname for u in s.get(User, 2).parents] == ["Bob"]
        assert [u.fname for u in s.get(User, 3).children] == ["Ann"]


def test_show_assignment_lists_candidates_and_selection(app):
    with session_scope(app) as s:
        service = AssignmentService(s, user_relations)
        service.update_assignment(2, "roles", ["Teacher", "Parent"])
        shown = service.show_assignment(2, "roles")
        assert [r.key for r in shown.candidates] == ["Admin", "Student", "Parent", "Teacher"]
        assert shown.selected == ["Parent", "Teacher"]

        parents = service.show_assignment(2, "parents")
        assert [u.id for u in parents.candidates] == [1, 3]


def test_sync_from_the_other_side(app):
    with session_scope(app) as s:
        AssignmentService(s, subject_relations).update_assignment(1, "users", [2, 3])
    with session_scope(app) as s:
        assert [x.name for x in s.get(User, 2).subjects] == ["Maths"]
        assert [x.name for x in s.get(User, 3).subjects] == ["Maths"]


def test_sync_is_audited(app):
    with session_scope(app) as s:
        actor = s.get(User, 1)
        AssignmentService(s, user_relations).update_assignment(2, "roles", ["Teacher"], actor=actor)
    with session_scope(app) as s:
        ev = s.query(AuditEvent).one()
        assert ev.action == "user.roles.sync"
        assert ev.entity_id == "2"
        assert ev.actor_user_email == "admin@school.test"


def test_roles_over_http(app, client):
    r = client.get("/users/2/roles")
    assert r.status_code == 200
    assert r.json["view"] == "users.roles"
    assert r.json["context"]["selected"] == []
    assert r.json["context"]["user"]["email"] == "ann@x.test"

    r = client.patch("/users/2/roles", json={"ids": ["Admin", "Teacher"]}, follow_redirects=True)
    assert ("success", "Ann Test roles updated successfully.") in _messages(r)

    r = client.post("/users/2/roles", data={"ids": ["Teacher"]})
    assert r.status_code == 302
    assert _role_keys(app, 2) == {"Teacher"}


def test_http_unknown_relation_or_anchor_redirects(client):
    r = client.get("/users/2/teachers", follow_redirects=True)
    assert r.json["view"] == "users.index"
    assert ("error", "Unknown assignment: teachers") in _messages(r)

    r = client.patch("/users/99/roles", data={"ids": ["Admin"]}, follow_redirects=True)
    assert r.json["view"] == "users.index"
    assert ("error", "User not found") in _messages(r)


def test_http_integrity_violation_returns_to_form(app, client):
    r = client.patch("/users/2/roles", data={"ids": ["Janitor"]})
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/users/2/roles")
    r = client.get("/users/2/roles")
    assert ("error", "Could not update roles: unknown Role 'Janitor'") in _messages(r)
    assert _role_keys(app, 2) == set()


@pytest.mark.parametrize(
    "body",
    [{"ids": "Student"}, {"ids": None}, {}, ["Student"]],
    ids=["string", "null", "missing", "array-body"],
)
def test_malformed_json_selection_changes_nothing(app, client, body):
    client.patch("/users/2/roles", json={"ids": ["Student", "Teacher"]})

    r = client.patch("/users/2/roles", json=body)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/users/2/roles")
    r = client.get("/users/2/roles")
    assert ("error", 'Could not update roles: request body must be a JSON object with an "ids" list') in _messages(r)
    assert _role_keys(app, 2) == {"Student", "Teacher"}


def test_explicit_empty_json_list_clears(app, client):
    client.patch("/users/2/roles", json={"ids": ["Student"]})
    r = client.patch("/users/2/roles", json={"ids": []})
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/users")
    assert _role_keys(app, 2) == set()


@pytest.mark.parametrize("bad", [1.9, True, [1], {"id": 1}])
def test_non_integral_ids_are_rejected(app, client, bad):
    r = client.patch("/users/2/groups", json={"ids": [bad]})
    assert r.headers["Location"].endswith("/users/2/groups")
    with session_scope(app) as s:
        assert s.get(User, 2).groups == []

    with session_scope(app) as s:
        change = AssignmentService(s, user_relations).update_assignment(2, "groups", [1.0])
        assert change.added == (1,)


def test_unknown_relation_redirects_without_superuser(app, client):
    app.extensions["authorization_guard"] = AuthorizationGuard()
    with session_scope(app) as s:
        admin = s.query(Role).filter(Role.key == "Admin").one()
        admin.permissions.extend(Permission(key=key, name=name) for key, name in permission_catalogue())

    for method in ("get", "patch"):
        r = getattr(client, method)("/users/1/teachers", follow_redirects=True)
        assert r.status_code == 200
        assert r.json["view"] == "users.index"
        assert ("error", "Unknown assignment: teachers") in _messages(r)
