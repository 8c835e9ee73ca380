"""Shared test fixtures.

Every test gets a fresh SQLite in-memory database. Service tests use the
``db_session`` fixture directly; API tests go through ``client`` with the
database and the signed-in user overridden.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from courseflow.courses import create_course
from courseflow.database import Base, enable_sqlite_savepoints, get_db
from courseflow.dependencies import get_current_user
from courseflow.main import app
from courseflow.models import User, UserRole

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def engine():
    test_engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(test_engine)
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    """Create a fresh database session for each test."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


class SignedIn:
    """Holds the user the test client acts as."""

    def __init__(self):
        self.user = None

    def __call__(self, user):
        self.user = user
        return user


@pytest.fixture
def login():
    return SignedIn()


@pytest.fixture(scope="function")
def client(db_session, login):
    """Create a test client with database and session user overridden."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: login.user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ==================== User Fixtures ====================


def _user(db_session, email, name, role):
    user = User(email=email, name=name, role=role)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    return _user(db_session, "admin@example.com", "Test Admin", UserRole.admin)


@pytest.fixture
def editor_user(db_session):
    return _user(db_session, "editor@example.com", "Test Editor", UserRole.editor)


@pytest.fixture
def teacher_user(db_session):
    return _user(db_session, "teacher@example.com", "Test Teacher", UserRole.teacher)


@pytest.fixture
def student_user(db_session):
    return _user(db_session, "student@example.com", "Test Student", UserRole.student)


# ==================== Course Fixtures ====================


@pytest.fixture
def empty_course(db_session, admin_user):
    """A course with its default branch but no versions."""
    course = create_course(db_session, "Distributed Systems", admin_user.id, summary="Consensus and more")
    db_session.commit()
    return course


@pytest.fixture
def live_course(db_session, admin_user):
    """A course whose initial version ``v1`` is live on the default branch."""
    course = create_course(
        db_session,
        "Agentic AI Systems",
        admin_user.id,
        summary="Build agents end to end",
        initial_version_label="v1",
        initial_version_summary="First run",
    )
    db_session.commit()
    return course
