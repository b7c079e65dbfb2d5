from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"

from certtrack.database import Base  # noqa: E402
from certtrack.apps.compliance import models as compliance_models  # noqa: E402


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(
        bind=engine,
        tables=[
            compliance_models.Course.__table__,
            compliance_models.CourseGroup.__table__,
            compliance_models.CourseGroupMember.__table__,
            compliance_models.CourseCleanup.__table__,
            compliance_models.Position.__table__,
            compliance_models.PositionCourse.__table__,
            compliance_models.Employee.__table__,
            compliance_models.EmployeePosition.__table__,
            compliance_models.EmployeeTraining.__table__,
            compliance_models.ExternalTraining.__table__,
        ],
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
