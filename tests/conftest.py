import pytest

from app import create_app
from config import TestConfig
from models import db
from services import approve_milkman, register_profile

PASSWORD = "secret123"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def ctx(app):
    # for service-level tests; route tests must not hold a context across requests
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(username, role, approved=False, **extra):
        with app.app_context():
            profile = register_profile(username, f"{username}@example.com", PASSWORD, role, **extra)
            if role == "milkman" and approved:
                approve_milkman(profile.milkman)
            return profile.id
    return _make


@pytest.fixture
def login(client):
    def _login(username, password=PASSWORD):
        return client.post("/auth/login", data={"username": username, "password": password})
    return _login


@pytest.fixture
def profiles(ctx):
    admin = register_profile("admin", "admin@example.com", PASSWORD, "admin")
    buyer = register_profile("asha", "asha@example.com", PASSWORD, "buyer")
    milkman = register_profile("ravi", "ravi@example.com", PASSWORD, "milkman", location="Pune")
    return {"admin": admin, "buyer": buyer, "milkman": milkman}


