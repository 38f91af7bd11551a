import pytest
from fastapi.testclient import TestClient

import main
from database import MemoryStorage, StorageService
from session import SessionHolder, teacher_user
from schemas import User


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def db(storage):
    return StorageService(storage)


@pytest.fixture
def teacher():
    return teacher_user()


@pytest.fixture
def student(db):
    return next(s for s in db.get_students() if s.id == "s1")


@pytest.fixture
def other_student(db) -> User:
    return next(s for s in db.get_students() if s.id == "s2")


@pytest.fixture
def session(storage):
    return SessionHolder(storage)


@pytest.fixture
def client(db, session):
    main.app.dependency_overrides[main.get_db] = lambda: db
    main.app.dependency_overrides[main.get_session] = lambda: session
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def login_as(client):
    def _login(role, identifier, password):
        res = client.post("/auth/login", json={"role": role, "identifier": identifier, "password": password})
        assert res.status_code == 200, res.text
        return {"Authorization": f"Bearer {res.json()['access_token']}"}
    return _login


@pytest.fixture
def teacher_headers(login_as):
    return login_as("TEACHER", "Raghubir", "SIDHARTH")


@pytest.fixture
def student_headers(login_as):
    return login_as("STUDENT", "8409313191", "Sidharth")
