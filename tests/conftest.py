import os
import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Must be set before the app modules read their config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from db import build_engine, get_session
from lifecycle import Actor
from main import create_app
from models import Role, User
from routers.auth import create_access_token, hash_password


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'helpline.db'}", echo=False)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    app = create_app()

    def _session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    return TestClient(app)


@pytest.fixture
def make_user(engine):
    def _make(name: str, role: Role, password: str = "secret123") -> User:
        with Session(engine, expire_on_commit=False) as s:
            user = User(
                name=name,
                email=f"{name.lower()}@helpline.org",
                password_hash=hash_password(password),
                role=role,
            )
            s.add(user)
            s.commit()
            s.refresh(user)
            return user

    return _make


@pytest.fixture
def seeker(make_user):
    return make_user("Alice", Role.HELP_SEEKER)


@pytest.fixture
def other_seeker(make_user):
    return make_user("Erin", Role.HELP_SEEKER)


@pytest.fixture
def volunteer(make_user):
    return make_user("Bob", Role.VOLUNTEER)


@pytest.fixture
def other_volunteer(make_user):
    return make_user("Carol", Role.VOLUNTEER)


@pytest.fixture
def admin(make_user):
    return make_user("Dana", Role.ADMIN)


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=Role(user.role), name=user.name)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def as_actor():
    return actor_for


@pytest.fixture
def headers():
    return auth_headers
