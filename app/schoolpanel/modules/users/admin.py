from __future__ import annotations

from app.schoolpanel.assignments import Relation, register_assignment_routes
from app.schoolpanel.models import Role, User
from app.schoolpanel.modules.groups.models import Group
from app.schoolpanel.modules.subjects.models import Subject
from app.schoolpanel.modules.users.forms import UserForm
from app.schoolpanel.resources import Resource, ResourceController

resource = Resource(
    name="users",
    singular="user",
    model=User,
    form=UserForm,
    label=lambda u: u.full_name,
    unique=("email",),
)

# Roles are picked by key ("Admin", "Teacher", ...), everything else by id.
relations = {
    "roles": Relation("roles", User, Role, permission="roles_update", selector="key"),
    "groups": Relation("groups", User, Group, permission="users_groups_update"),
    "subjects": Relation("subjects", User, Subject, permission="users_subjects_update"),
    "parents": Relation("parents", User, User, permission="users_parents_update"),
    "children": Relation("children", User, User, permission="users_children_update"),
}

bp = ResourceController(resource).blueprint(__name__)
register_assignment_routes(bp, resource, relations)
