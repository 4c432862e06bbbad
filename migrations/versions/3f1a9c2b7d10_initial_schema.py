"""initial schema: users, roles, permissions, subjects, groups, associations, audit

Revision ID: 3f1a9c2b7d10
Revises:
Create Date: 2026-10-19 09:12:40.118203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _pair_table(name: str, left: tuple[str, str], right: tuple[str, str]) -> None:
    """Association table holding only an (id, id) pair."""
    op.create_table(
        name,
        sa.Column(left[0], sa.Integer(), sa.ForeignKey(f"{left[1]}.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(right[0], sa.Integer(), sa.ForeignKey(f"{right[1]}.id", ondelete="CASCADE"), primary_key=True),
    )


def upgrade() -> None:
    """Create every table the panel uses."""
    # Check if tables already exist (idempotent)
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("fname", sa.String(255), nullable=False),
            sa.Column("lname", sa.String(255), nullable=False),
            sa.Column("birthdate", sa.Date(), nullable=False),
            sa.Column("address", sa.String(255), nullable=False),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("gender", sa.String(255), nullable=False),
            sa.Column("phonenum", sa.String(255), nullable=False),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(64), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "permissions" not in existing_tables:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(128), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    for name in ("subjects", "groups"):
        if name not in existing_tables:
            op.create_table(
                name,
                sa.Column("id", sa.Integer(), primary_key=True),
                sa.Column("name", sa.String(255), nullable=False),
                sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
                sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            )
            op.create_index(f"idx_{name}_name", name, ["name"])

    pairs = {
        "user_roles": (("user_id", "users"), ("role_id", "roles")),
        "role_permissions": (("role_id", "roles"), ("permission_id", "permissions")),
        "child_parent": (("child_id", "users"), ("parent_id", "users")),
        "group_user": (("group_id", "groups"), ("user_id", "users")),
        "subject_user": (("subject_id", "subjects"), ("user_id", "users")),
        "group_subject": (("group_id", "groups"), ("subject_id", "subjects")),
    }
    for name, (left, right) in pairs.items():
        if name not in existing_tables:
            _pair_table(name, left, right)

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
        )


def downgrade() -> None:
    """Drop everything created by upgrade()."""
    op.drop_table("audit_events")
    for name in ("group_subject", "subject_user", "group_user", "child_parent", "role_permissions", "user_roles"):
        op.drop_table(name)
    op.drop_index("idx_groups_name", table_name="groups")
    op.drop_table("groups")
    op.drop_index("idx_subjects_name", table_name="subjects")
    op.drop_table("subjects")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("users")
