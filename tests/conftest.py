# tests/conftest.py

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient

import auth
import crud
import database
import models
from main import app


@pytest.fixture
def engine(tmp_path):
    engine = database.build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    models.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return database.make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def owner(db):
    user = crud.create_user(db, "Owner", "owner@example.com", auth.hash_password("secret123"))
    return user.id


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[database.get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Register an account and return bearer headers for it."""
    def register_and_login(email="user@example.com", password="secret123", name="User"):
        response = client.post("/register", json={"name": name, "email": email, "password": password})
        assert response.status_code == 201
        response = client.post("/login", data={"username": email, "password": password})
        assert response.status_code == 200
        # Authenticate by header only
        client.cookies.clear()
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return register_and_login


@pytest.fixture
def auth_headers(login):
    return login()
