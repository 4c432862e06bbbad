"""Tests for the generic entity store."""
from datetime import date

import pytest
from sqlalchemy import func, select

from app.schoolpanel import create_app
from app.schoolpanel.db import atomic, session_scope
from app.schoolpanel.errors import NotFound, ValidationFailed
from app.schoolpanel.models import Base, ChildParent, Role, User, UserRole
from app.schoolpanel.modules.groups.models import Group, GroupUser
from app.schoolpanel.modules.subjects.models import GroupSubject, Subject, SubjectUser
from app.schoolpanel.store import EntityStore


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


ANN = {
    "fname": "Ann",
    "lname": "Lee",
    "birthdate": date(1990, 5, 1),
    "address": "12 Elm St",
    "email": "ann@x.test",
    "gender": "f",
    "phonenum": "555-0101",
    "password_hash": "pbkdf2:sha256:fake",
}


def test_create_find_delete_scenario(app):
    with session_scope(app) as s:
        user = EntityStore(s, User).create(ANN)
        assert user.id == 1

    with session_scope(app) as s:
        found = EntityStore(s, User).find(1)
        assert found is not None
        for key, value in ANN.items():
            assert getattr(found, key) == value

    with session_scope(app) as s:
        with atomic(s):
            EntityStore(s, User).delete(1)

    with session_scope(app) as s:
        assert EntityStore(s, User).find(1) is None


def test_find_missing_returns_none(app):
    with session_scope(app) as s:
        for model in (User, Subject, Group, Role):
            assert EntityStore(s, model).find(424242) is None


def test_update_and_delete_missing_raise_not_found(app):
    with session_scope(app) as s:
        store = EntityStore(s, Subject)
        with pytest.raises(NotFound):
            store.update({"name": "x"}, 99)
        with pytest.raises(NotFound):
            store.delete(99)


def test_update_changes_only_given_fields(app):
    with session_scope(app) as s:
        EntityStore(s, User).create(ANN)

    with session_scope(app) as s:
        EntityStore(s, User).update({"fname": "Anna", "address": "9 Oak Ave"}, 1)

    with session_scope(app) as s:
        user = EntityStore(s, User).find(1)
        assert user.fname == "Anna"
        assert user.address == "9 Oak Ave"
        assert user.lname == "Lee"
        assert user.email == "ann@x.test"
        assert user.password_hash == ANN["password_hash"]


def test_unknown_fields_are_rejected(app):
    with session_scope(app) as s:
        store = EntityStore(s, Subject)
        with pytest.raises(ValidationFailed) as exc:
            store.create({"name": "Maths", "colour": "red"})
        assert exc.value.errors == {"colour": "Unknown field."}

        subject = store.create({"name": "Maths"})
        with pytest.raises(ValidationFailed):
            store.update({"id": 77}, subject.id)


def test_paginate_orders_by_primary_key(app):
    with session_scope(app) as s:
        store = EntityStore(s, Subject)
        for i in range(12):
            store.create({"name": f"Subject {i:02d}"})

    with session_scope(app) as s:
        store = EntityStore(s, Subject)
        first = store.paginate(10)
        assert [x.name for x in first.items] == [f"Subject {i:02d}" for i in range(10)]
        assert (first.total, first.page, first.pages) == (12, 1, 2)
        assert first.has_next and not first.has_prev

        second = store.paginate(10, page=2)
        assert [x.id for x in second.items] == [11, 12]
        assert second.has_prev and not second.has_next

        assert store.paginate(10, page=0).page == 1
        assert store.paginate(10, page=5).items == []


def test_exists_honours_exclusion(app):
    with session_scope(app) as s:
        store = EntityStore(s, User)
        user = store.create(ANN)
        assert store.exists("email", "ann@x.test")
        assert not store.exists("email", "ann@x.test", exclude_id=user.id)
        assert not store.exists("email", "bob@x.test")


def _count(s, table_model, **where) -> int:
    q = select(func.count()).select_from(table_model)
    for key, value in where.items():
        q = q.where(getattr(table_model, key) == value)
    return s.scalar(q)


def test_delete_user_removes_every_association_row(app):
    with session_scope(app) as s:
        ann = EntityStore(s, User).create(ANN)
        bob = EntityStore(s, User).create({**ANN, "email": "bob@x.test", "fname": "Bob"})
        kid = EntityStore(s, User).create({**ANN, "email": "kid@x.test", "fname": "Kid"})
        role = Role(key="Teacher", name="Teacher")
        group = Group(name="1A")
        subject = Subject(name="Maths")
        s.add_all([role, group, subject])
        s.flush()
        ann.roles.append(role)
        ann.groups.append(group)
        ann.subjects.append(subject)
        ann.parents.append(bob)
        ann.children.append(kid)
        bob.groups.append(group)
        ann_id, bob_id = ann.id, bob.id

    with session_scope(app) as s:
        assert _count(s, ChildParent, child_id=ann_id) == 1
        assert _count(s, ChildParent, parent_id=ann_id) == 1
        with atomic(s):
            EntityStore(s, User).delete(ann_id)

    with session_scope(app) as s:
        assert _count(s, UserRole, user_id=ann_id) == 0
        assert _count(s, GroupUser, user_id=ann_id) == 0
        assert _count(s, SubjectUser, user_id=ann_id) == 0
        assert _count(s, ChildParent, child_id=ann_id) == 0
        assert _count(s, ChildParent, parent_id=ann_id) == 0
        # Other entities and their own links survive.
        assert _count(s, GroupUser, user_id=bob_id) == 1
        assert s.get(Role, 1) is not None
        assert s.get(Group, 1) is not None


def test_delete_group_clears_both_sides(app):
    with session_scope(app) as s:
        user = EntityStore(s, User).create(ANN)
        group = Group(name="2B")
        subject = Subject(name="History")
        group.users.append(user)
        group.subjects.append(subject)
        s.add(group)

    with session_scope(app) as s:
        with atomic(s):
            EntityStore(s, Group).delete(1)

    with session_scope(app) as s:
        assert _count(s, GroupUser) == 0
        assert _count(s, GroupSubject) == 0
        assert s.get(Subject, 1).groups == []
        assert s.get(User, 1).groups == []


def test_atomic_rolls_back_on_error(app):
    with session_scope(app) as s:
        with pytest.raises(RuntimeError):
            with atomic(s):
                EntityStore(s, Subject).create({"name": "Chemistry"})
                raise RuntimeError("boom")

    with session_scope(app) as s:
        assert _count(s, Subject) == 0
