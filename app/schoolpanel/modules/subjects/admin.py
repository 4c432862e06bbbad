from __future__ import annotations

from app.schoolpanel.assignments import Relation, register_assignment_routes
from app.schoolpanel.models import User
from app.schoolpanel.modules.groups.models import Group
from app.schoolpanel.modules.subjects.forms import SubjectForm
from app.schoolpanel.modules.subjects.models import Subject
from app.schoolpanel.resources import Resource, ResourceController

resource = Resource(
    name="subjects",
    singular="subject",
    model=Subject,
    form=SubjectForm,
    label=lambda subject: subject.name,
)

relations = {
    "users": Relation("users", Subject, User, permission="subjects_users_update"),
    "groups": Relation("groups", Subject, Group, permission="subjects_groups_update"),
}

bp = ResourceController(resource).blueprint(__name__)
register_assignment_routes(bp, resource, relations)
