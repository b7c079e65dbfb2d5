# backend/certtrack/apps/compliance/models.py

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ...database import Base
from .enums import CleanupAction


# ---------------------------------------------------------------------------
# COURSE MASTER
# ---------------------------------------------------------------------------


class Course(Base):
    """
    Master list of courses.

    - course_id = the LMS identifier (numeric text such as '13458')
    - course_name = the full label, usually carrying a T-code and variant tags
    - duration_months = recertification interval; NULL never expires
    """

    __tablename__ = "courses"
    __table_args__ = (Index("idx_courses_active", "is_active"),)

    course_id = Column(String(64), primary_key=True)
    course_name = Column(String(500), nullable=False)
    duration_months = Column(
        Integer,
        nullable=True,
        doc="Recertification interval in months; NULL for one-time courses.",
    )
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    def __repr__(self) -> str:
        return f"<Course {self.course_id} {self.course_name!r}>"


# ---------------------------------------------------------------------------
# COURSE GROUPS (T-CODE EQUIVALENCE CLASSES)
# ---------------------------------------------------------------------------


class CourseGroup(Base):
    """
    Human-curated set of course ids believed to be the same real training.
    Only enabled groups take part in matching.
    """

    __tablename__ = "course_groups"
    __table_args__ = (Index("idx_course_groups_enabled", "is_enabled"),)

    group_id = Column(Integer, primary_key=True, autoincrement=True)
    group_code = Column(String(32), nullable=False, index=True, doc="Canonical taxonomy code, e.g. 'T717'.")
    group_name = Column(String(255), nullable=True)
    is_enabled = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    members = relationship(
        "CourseGroupMember",
        back_populates="group",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<CourseGroup {self.group_id} {self.group_code} enabled={self.is_enabled}>"


class CourseGroupMember(Base):
    __tablename__ = "course_group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "course_id", name="uq_course_group_members_group_course"),
        Index("idx_course_group_members_course", "course_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(
        Integer,
        ForeignKey("course_groups.group_id", ondelete="CASCADE"),
        nullable=False,
    )
    course_id = Column(
        String(64),
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    )

    group = relationship("CourseGroup", back_populates="members")

    def __repr__(self) -> str:
        return f"<CourseGroupMember group={self.group_id} course={self.course_id}>"


# ---------------------------------------------------------------------------
# CLEANUP DECISIONS (DUPLICATE REVIEW)
# ---------------------------------------------------------------------------


class CourseCleanup(Base):
    """
    Review outcome for a duplicate / variant course.

    action=merge turns course_id into a redirect to merge_into for matching;
    the original id stays in history.
    """

    __tablename__ = "course_cleanup"

    course_id = Column(String(64), primary_key=True)
    action = Column(
        Enum(
            CleanupAction,
            name="course_cleanup_action_enum",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=CleanupAction.PENDING,
    )
    merge_into = Column(String(64), nullable=True)
    rename_to = Column(String(500), nullable=True)
    is_one_time = Column(Boolean, nullable=True)
    recert_months = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    def __repr__(self) -> str:
        return f"<CourseCleanup {self.course_id} action={self.action}>"


# ---------------------------------------------------------------------------
# POSITIONS AND REQUIREMENTS (WHO MUST HAVE WHAT)
# ---------------------------------------------------------------------------


class Position(Base):
    __tablename__ = "positions"

    position_id = Column(Integer, primary_key=True, autoincrement=True)
    position_name = Column(String(255), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Position {self.position_id} {self.position_name!r}>"


class PositionCourse(Base):
    __tablename__ = "position_courses"
    __table_args__ = (
        UniqueConstraint("position_id", "course_id", name="uq_position_courses_position_course"),
        Index("idx_position_courses_course", "course_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    position_id = Column(
        Integer,
        ForeignKey("positions.position_id", ondelete="CASCADE"),
        nullable=False,
    )
    course_id = Column(
        String(64),
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PositionCourse position={self.position_id} course={self.course_id}>"


# ---------------------------------------------------------------------------
# EMPLOYEES
# ---------------------------------------------------------------------------


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (Index("idx_employees_active", "is_active"),)

    employee_id = Column(Integer, primary_key=True, autoincrement=True)
    badge_id = Column(String(64), nullable=True, unique=True)
    employee_name = Column(String(255), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Employee {self.employee_id} {self.employee_name!r}>"


class EmployeePosition(Base):
    __tablename__ = "employee_positions"
    __table_args__ = (
        UniqueConstraint("employee_id", "position_id", name="uq_employee_positions_employee_position"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(
        Integer,
        ForeignKey("employees.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position_id = Column(
        Integer,
        ForeignKey("positions.position_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    job_code = Column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<EmployeePosition employee={self.employee_id} position={self.position_id}>"


# ---------------------------------------------------------------------------
# COMPLETIONS
# ---------------------------------------------------------------------------


class EmployeeTraining(Base):
    """
    One completion of a course by an employee. Rows accumulate over time;
    the only in-place update is filling a NULL expiration_date.
    """

    __tablename__ = "employee_training"
    __table_args__ = (
        Index("idx_employee_training_employee_course", "employee_id", "course_id"),
        Index("idx_employee_training_expiration", "expiration_date"),
    )

    training_id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(
        Integer,
        ForeignKey("employees.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    course_id = Column(
        String(64),
        ForeignKey("courses.course_id", ondelete="CASCADE"),
        nullable=False,
    )
    completion_date = Column(Date, nullable=True)
    expiration_date = Column(
        Date,
        nullable=True,
        doc="NULL means the completion does not expire, whatever the course duration says.",
    )
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return (
            f"<EmployeeTraining {self.training_id} employee={self.employee_id} "
            f"course={self.course_id} expires={self.expiration_date}>"
        )


# ---------------------------------------------------------------------------
# EXTERNAL LEDGER (READ-ONLY IMPORT)
# ---------------------------------------------------------------------------


class ExternalTraining(Base):
    """
    One row of the periodically imported external training ledger.
    No foreign keys: the external system does not share our identities.
    """

    __tablename__ = "external_training"
    __table_args__ = (Index("idx_external_training_associate", "associate_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    associate_name = Column(String(255), nullable=False)
    requirement = Column(String(500), nullable=False, doc="Raw label, e.g. 'SPPIVT T717 ... (13458)'.")
    status = Column(String(64), nullable=True)
    expire_date = Column(String(32), nullable=True, doc="Free-text date as exported, e.g. '3/15/2026' or 'n/a'.")

    imported_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<ExternalTraining {self.id} {self.associate_name!r}>"
