"""Pytest configuration for the API tests.

Each test gets its own SQLite database file and upload directory under
``tmp_path``. Clients talk to ``https://testserver`` so the ``Secure`` auth
cookie is stored and sent back like a browser would.
"""

import pytest
from fastapi.testclient import TestClient

import utils.user_manager as user_manager_module
from app import create_app
from config import Settings
from core.database import create_db_engine, create_session_factory, init_db
from models.role_grant import ClassroomRole
from utils.assignment_manager import AssignmentManager
from utils.class_manager import ClassManager
from utils.user_manager import UserManager

TEST_SECRET = "test-signing-secret"
BASE_URL = "https://testserver"
PASSWORD = "correct horse battery"


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    # Minimum cost keeps registration cheap in tests
    monkeypatch.setattr(user_manager_module, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        jwt_secret=TEST_SECRET,
        upload_dir=tmp_path / "uploads",
        cors_allowed_origins=[],
        log_level="DEBUG",
    )


@pytest.fixture
def app(settings):
    application = create_app(settings)
    yield application
    application.state.engine.dispose()


@pytest.fixture
def client_factory(app):
    clients = []

    def make_client() -> TestClient:
        client = TestClient(app, base_url=BASE_URL)
        clients.append(client)
        return client

    yield make_client
    for client in clients:
        client.close()


@pytest.fixture
def client(client_factory):
    return client_factory()


@pytest.fixture
def register(client_factory):
    """Register a user on a fresh client and return ``(client, user_id)``."""

    def _register(name: str, email: str, password: str = PASSWORD):
        client = client_factory()
        resp = client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert resp.status_code == 200, resp.text
        return client, resp.json()["user_id"]

    return _register


@pytest.fixture
def classroom(register):
    """A classroom with a teacher, one enrolled student, one outsider and an assignment."""
    teacher, teacher_id = register("Teacher Tess", "tess@example.com")
    student, student_id = register("Student Sam", "sam@example.com")
    outsider, outsider_id = register("Outsider Olu", "olu@example.com")

    resp = teacher.post(
        "/api/class/create",
        json={"title": "Algebra", "description": "Linear equations"},
    )
    assert resp.status_code == 200, resp.text
    class_info = resp.json()

    resp = student.post("/api/class/join", json={"join_code": class_info["join_code"]})
    assert resp.status_code == 200, resp.text

    resp = teacher.post(
        f"/api/class/{class_info['id']}/create-assignment",
        json={
            "title": "Homework 1",
            "description": "Solve for x",
            "due_date": "2099-06-07T14:30",
            "points": 10,
        },
    )
    assert resp.status_code == 200, resp.text

    return {
        "teacher": teacher,
        "teacher_id": teacher_id,
        "student": student,
        "student_id": student_id,
        "outsider": outsider,
        "outsider_id": outsider_id,
        "class_id": class_info["id"],
        "join_code": class_info["join_code"],
        "assignment_id": resp.json()["id"],
    }


@pytest.fixture
def db_session(settings):
    engine = create_db_engine(settings)
    init_db(engine)
    session = create_session_factory(engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def seeded(db_session):
    """Teacher, student and an assignment created directly through the managers."""
    users = UserManager(db_session)
    teacher = users.create_user("Teacher Tess", "tess@example.com", PASSWORD)
    student = users.create_user("Student Sam", "sam@example.com", PASSWORD)

    classes = ClassManager(db_session)
    classroom = classes.create_class("Algebra", "", teacher.id)
    classes.add_member(classroom.id, student.id, ClassroomRole.STUDENT)

    assignment = AssignmentManager(db_session).create_assignment(
        class_id=classroom.id,
        creator_id=teacher.id,
        title="Homework 1",
        description="",
        due_date=None,
        points=10,
    )
    return {
        "teacher": teacher,
        "student": student,
        "classroom": classroom,
        "assignment": assignment,
    }
