"""
Create compliance tables: course master, course groups, cleanup decisions,
positions and requirements, employees, completions and the external ledger.

Revision ID: 5d2a9c41e7b0
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5d2a9c41e7b0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("course_id", sa.String(length=64), primary_key=True),
        sa.Column("course_name", sa.String(length=500), nullable=False),
        sa.Column("duration_months", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_courses_active", "courses", ["is_active"])

    op.create_table(
        "course_groups",
        sa.Column("group_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("group_code", sa.String(length=32), nullable=False),
        sa.Column("group_name", sa.String(length=255), nullable=True),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_course_groups_group_code", "course_groups", ["group_code"])
    op.create_index("idx_course_groups_enabled", "course_groups", ["is_enabled"])

    op.create_table(
        "course_group_members",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("course_groups.group_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.course_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.UniqueConstraint("group_id", "course_id", name="uq_course_group_members_group_course"),
    )
    op.create_index("idx_course_group_members_course", "course_group_members", ["course_id"])

    op.create_table(
        "course_cleanup",
        sa.Column("course_id", sa.String(length=64), primary_key=True),
        sa.Column(
            "action",
            sa.Enum("pending", "keep", "merge", "delete", name="course_cleanup_action_enum"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("merge_into", sa.String(length=64), nullable=True),
        sa.Column("rename_to", sa.String(length=500), nullable=True),
        sa.Column("is_one_time", sa.Boolean(), nullable=True),
        sa.Column("recert_months", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "positions",
        sa.Column("position_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("position_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_positions_position_name", "positions", ["position_name"])

    op.create_table(
        "position_courses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "position_id",
            sa.Integer(),
            sa.ForeignKey("positions.position_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.course_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.UniqueConstraint("position_id", "course_id", name="uq_position_courses_position_course"),
    )
    op.create_index("idx_position_courses_course", "position_courses", ["course_id"])

    op.create_table(
        "employees",
        sa.Column("employee_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("badge_id", sa.String(length=64), nullable=True, unique=True),
        sa.Column("employee_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_employees_employee_name", "employees", ["employee_name"])
    op.create_index("idx_employees_active", "employees", ["is_active"])

    op.create_table(
        "employee_positions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "employee_id",
            sa.Integer(),
            sa.ForeignKey("employees.employee_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "position_id",
            sa.Integer(),
            sa.ForeignKey("positions.position_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("job_code", sa.String(length=64), nullable=True),
        sa.UniqueConstraint("employee_id", "position_id", name="uq_employee_positions_employee_position"),
    )

    op.create_table(
        "employee_training",
        sa.Column("training_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "employee_id",
            sa.Integer(),
            sa.ForeignKey("employees.employee_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.course_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("completion_date", sa.Date(), nullable=True),
        sa.Column("expiration_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "idx_employee_training_employee_course",
        "employee_training",
        ["employee_id", "course_id"],
    )
    op.create_index("idx_employee_training_expiration", "employee_training", ["expiration_date"])

    op.create_table(
        "external_training",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("associate_name", sa.String(length=255), nullable=False),
        sa.Column("requirement", sa.String(length=500), nullable=False),
        sa.Column("status", sa.String(length=64), nullable=True),
        sa.Column("expire_date", sa.String(length=32), nullable=True),
        sa.Column("imported_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_external_training_associate", "external_training", ["associate_name"])


def downgrade() -> None:
    op.drop_index("idx_external_training_associate", table_name="external_training")
    op.drop_table("external_training")

    op.drop_index("idx_employee_training_expiration", table_name="employee_training")
    op.drop_index("idx_employee_training_employee_course", table_name="employee_training")
    op.drop_table("employee_training")

    op.drop_table("employee_positions")

    op.drop_index("idx_employees_active", table_name="employees")
    op.drop_index("ix_employees_employee_name", table_name="employees")
    op.drop_table("employees")

    op.drop_index("idx_position_courses_course", table_name="position_courses")
    op.drop_table("position_courses")

    op.drop_index("ix_positions_position_name", table_name="positions")
    op.drop_table("positions")

    op.drop_table("course_cleanup")
    sa.Enum(name="course_cleanup_action_enum").drop(op.get_bind(), checkfirst=True)

    op.drop_index("idx_course_group_members_course", table_name="course_group_members")
    op.drop_table("course_group_members")

    op.drop_index("idx_course_groups_enabled", table_name="course_groups")
    op.drop_index("ix_course_groups_group_code", table_name="course_groups")
    op.drop_table("course_groups")

    op.drop_index("idx_courses_active", table_name="courses")
    op.drop_table("courses")
