"""
Test configuration for the EHR identity backend.
"""
import os

# Settings are read at import time, so the environment must be prepared first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-session-secret"
os.environ["REFRESH_SECRET_KEY"] = "test-refresh-secret"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["NOTIFICATION_RETRY_DELAY"] = "0"
os.environ["AUTH_RATE_LIMIT"] = "100000"
os.environ["FRONTEND_URL"] = "http://frontend.clinic.org"
for name in ("MAIL_USERNAME", "MAIL_PASSWORD", "MAIL_FROM", "MAIL_SERVER",
             "BOOTSTRAP_ADMIN_EMAIL", "BOOTSTRAP_ADMIN_PASSWORD"):
    os.environ.pop(name, None)

import pytest
from fastapi.testclient import TestClient

from ehr_identity.auth.models import User, UserRole
from ehr_identity.auth.store import CredentialStore
from ehr_identity.core.security import get_token_issuer, hash_password
from ehr_identity.database import Base, SessionLocal, engine, get_db
from ehr_identity.main import app
from ehr_identity.notifications import Notifier, get_notifier

ADMIN_EMAIL = "admin@clinic.org"
ADMIN_PASSWORD = "AdminPass123!"


class RecordingNotifier(Notifier):
    """Captures every notification so tests can read codes and completion links."""

    def __init__(self):
        self.sent = []

    async def send_verification_code(self, email, first_name, code, expires_at):
        self.sent.append(("verification", email, {"code": code, "expires_at": expires_at}))

    async def send_registration_approved(self, email, first_name, admin_name, completion_url, expires_at):
        self.sent.append(("approved", email, {"url": completion_url, "admin_name": admin_name}))

    async def send_registration_rejected(self, email, first_name, admin_name, reason):
        self.sent.append(("rejected", email, {"reason": reason, "admin_name": admin_name}))

    def of_kind(self, kind, email=None):
        return [payload for sent_kind, to, payload in self.sent if sent_kind == kind and (email is None or to == email)]

    def last_code(self, email):
        return self.of_kind("verification", email)[-1]["code"]

    def last_completion_token(self, email):
        url = self.of_kind("approved", email)[-1]["url"]
        return url.split("token=")[1]


class FailingNotifier(Notifier):
    """Every send raises, as an unreachable SMTP server would."""

    def __init__(self):
        self.attempts = 0

    async def _fail(self, *args, **kwargs):
        self.attempts += 1
        raise ConnectionError("SMTP server unreachable")

    send_verification_code = _fail
    send_registration_approved = _fail
    send_registration_rejected = _fail


@pytest.fixture(scope="function")
def db():
    """
    Create a fresh database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(db):
    return CredentialStore(db)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def issuer():
    return get_token_issuer()


@pytest.fixture(scope="function")
def client(db, notifier):
    """
    Create a test client with a test database session and a recording notifier.
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as client:
        yield client

    app.dependency_overrides = {}


def _create_user(db, email, role=UserRole.CLINICIAN, password="Password123!", is_active=True,
                 first_name="Test", last_name="User") -> User:
    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _bearer(user: User) -> dict:
    token, _ = get_token_issuer().issue_session(user.id, user.email, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db):
    """Factory fixture: make_user(email, role=..., password=..., is_active=...)."""
    def factory(email, **kwargs):
        return _create_user(db, email, **kwargs)
    return factory


@pytest.fixture
def auth_headers():
    """Factory fixture: auth_headers(user) returns a bearer Authorization header."""
    return _bearer


@pytest.fixture
def failing_notifier():
    return FailingNotifier()


@pytest.fixture
def admin(db):
    return _create_user(db, ADMIN_EMAIL, role=UserRole.ADMIN, password=ADMIN_PASSWORD,
                        first_name="Ada", last_name="Admin")


@pytest.fixture
def admin_headers(admin):
    return _bearer(admin)
