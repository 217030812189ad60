import os

# Must be set before `models` is imported: selects the in-memory SQLite storage
os.environ["APP_ENV"] = "test"
os.environ.pop("DATABASE_URL", None)

from datetime import datetime, timedelta, timezone

import pytest

from api import create_app
from models import storage
from models.user import User
from services.exceptions import InvalidCredentialsError
from services.identity import Identity, UserDirectory
from services.session_manager import SessionManager
from services.token_store import InMemoryRefreshTokenStore, SqlRefreshTokenStore
from utils.security import TokenCodec, TokenSettings, hash_password

TEST_SECRET = "test-secret-key-for-jwt-session-core-unit-tests"
START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=START):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


class FakeDirectory:
    """Identity directory over a dict: username -> (identity, password)."""

    def __init__(self):
        self.users = {}

    def add(self, username, password, roles=("ROLE_USER",)):
        identity = Identity(
            id=f"id-{username}",
            username=username,
            email=f"{username}@example.com",
            role_names=list(roles),
        )
        self.users[username] = (identity, password)
        return identity

    def find_by_id(self, user_id):
        for identity, _ in self.users.values():
            if identity.id == user_id:
                return identity
        return None

    def find_by_username(self, username):
        entry = self.users.get(username)
        return entry[0] if entry else None

    def verify_credentials(self, username, password):
        entry = self.users.get(username)
        if not entry or entry[1] != password:
            raise InvalidCredentialsError()
        return entry[0]


@pytest.fixture(autouse=True)
def db():
    storage.drop_all()
    storage.reload()
    yield storage
    storage.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return TokenSettings(
        secret=TEST_SECRET,
        access_ttl=timedelta(minutes=30),
        refresh_ttl=timedelta(days=7),
    )


@pytest.fixture
def codec(settings, clock):
    return TokenCodec(settings, clock=clock)


@pytest.fixture
def directory():
    d = FakeDirectory()
    d.add("alice", "correctpw", roles=("ROLE_USER", "ROLE_ADMIN"))
    d.add("bob", "bobsecret")
    return d


@pytest.fixture
def memory_store():
    return InMemoryRefreshTokenStore()


@pytest.fixture
def manager(codec, memory_store, directory):
    return SessionManager(codec, memory_store, directory)


@pytest.fixture
def make_user(db):
    def _make_user(username="alice", password="correctpw", email=None, roles=None):
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=hash_password(password),
            roles=roles or ["ROLE_USER"],
        )
        db.new(user)
        db.save()
        return user

    return _make_user


@pytest.fixture
def sql_store(db):
    return SqlRefreshTokenStore(db)


@pytest.fixture
def sql_manager(codec, sql_store, db):
    return SessionManager(codec, sql_store, UserDirectory(db))


@pytest.fixture
def app(clock):
    app = create_app("testing", clock=clock)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
