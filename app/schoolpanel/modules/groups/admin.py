from __future__ import annotations

from app.schoolpanel.assignments import Relation, register_assignment_routes
from app.schoolpanel.models import User
from app.schoolpanel.modules.groups.forms import GroupForm
from app.schoolpanel.modules.groups.models import Group
from app.schoolpanel.modules.subjects.models import Subject
from app.schoolpanel.resources import Resource, ResourceController

resource = Resource(
    name="groups",
    singular="group",
    model=Group,
    form=GroupForm,
    label=lambda group: group.name,
)

relations = {
    "users": Relation("users", Group, User, permission="groups_users_update"),
    "subjects": Relation("subjects", Group, Subject, permission="groups_subjects_update"),
}

bp = ResourceController(resource).blueprint(__name__)
register_assignment_routes(bp, resource, relations)
