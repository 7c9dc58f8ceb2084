"""
Tests for login, session refresh, the authentication gate and admin account creation.
"""
from datetime import timedelta

from ehr_identity.auth.models import User, UserRole
from ehr_identity.config import settings
from ehr_identity.core.audit_service import list_audit_events
from ehr_identity.core.security import TokenIssuer

LOGIN_URL = "/api/v1/auth/login"


def test_login_success(client, make_user, db):
    user = make_user("clinician@clinic.org", password="Password123!")

    response = client.post(LOGIN_URL, json={"email": "Clinician@Clinic.org", "password": "Password123!"})

    assert response.status_code == 200
    data = response.json()
    assert data["sessionToken"]
    assert data["refreshToken"]
    assert data["tokenType"] == "bearer"
    assert data["expiresAt"]
    assert data["user"]["id"] == user.id
    assert data["user"]["role"] == "CLINICIAN"
    assert "passwordHash" not in data["user"]

    db.refresh(user)
    assert user.last_login is not None
    assert list_audit_events(db, action="USER_LOGIN_SUCCESS")


def test_login_wrong_password(client, make_user, db):
    make_user("clinician@clinic.org", password="Password123!")

    response = client.post(LOGIN_URL, json={"email": "clinician@clinic.org", "password": "Wrong123!"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert list_audit_events(db, action="USER_LOGIN_FAILED")


def test_login_unknown_email(client):
    response = client.post(LOGIN_URL, json={"email": "ghost@clinic.org", "password": "Password123!"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"


def test_login_deactivated_account(client, make_user):
    make_user("former@clinic.org", password="Password123!", is_active=False)

    response = client.post(LOGIN_URL, json={"email": "former@clinic.org", "password": "Password123!"})
    assert response.status_code == 401
    assert response.json()["code"] == "ACCOUNT_DEACTIVATED"

    # A wrong password never reveals the account state
    response = client.post(LOGIN_URL, json={"email": "former@clinic.org", "password": "Wrong123!"})
    assert response.json()["code"] == "INVALID_CREDENTIALS"


def test_refresh_issues_new_session(client, make_user):
    make_user("biller@clinic.org", role=UserRole.BILLER, password="Password123!")
    login = client.post(LOGIN_URL, json={"email": "biller@clinic.org", "password": "Password123!"}).json()

    response = client.post("/api/v1/auth/refresh", json={"refreshToken": login["refreshToken"]})

    assert response.status_code == 200
    session_token = response.json()["sessionToken"]
    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {session_token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "biller@clinic.org"


def test_refresh_rejects_session_token_and_garbage(client, make_user):
    make_user("biller@clinic.org", role=UserRole.BILLER, password="Password123!")
    login = client.post(LOGIN_URL, json={"email": "biller@clinic.org", "password": "Password123!"}).json()

    response = client.post("/api/v1/auth/refresh", json={"refreshToken": login["sessionToken"]})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_REFRESH_TOKEN"

    response = client.post("/api/v1/auth/refresh", json={"refreshToken": "garbage"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_REFRESH_TOKEN"


def test_refresh_rejected_after_deactivation(client, make_user, db):
    user = make_user("biller@clinic.org", role=UserRole.BILLER, password="Password123!")
    login = client.post(LOGIN_URL, json={"email": "biller@clinic.org", "password": "Password123!"}).json()

    user.is_active = False
    db.commit()

    response = client.post("/api/v1/auth/refresh", json={"refreshToken": login["refreshToken"]})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_REFRESH_TOKEN"


# ============================================================================
# AUTHENTICATION GATE
# ============================================================================

def test_gate_missing_token(client):
    response = client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["code"] == "MISSING_TOKEN"


def test_gate_invalid_token(client):
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not.a.token"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_gate_expired_token(client, make_user):
    user = make_user("clinician@clinic.org")
    expired_issuer = TokenIssuer(
        settings.secret_key, settings.refresh_secret_key, session_ttl=timedelta(seconds=-5)
    )
    token, _ = expired_issuer.issue_session(user.id, user.email, user.role)

    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"


def test_gate_rejects_deactivated_user_with_valid_token(client, make_user, auth_headers, db):
    user = make_user("clinician@clinic.org")
    headers = auth_headers(user)
    assert client.get("/api/v1/auth/me", headers=headers).status_code == 200

    user.is_active = False
    db.commit()

    response = client.get("/api/v1/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_USER"


def test_gate_rejects_token_for_missing_user(client, auth_headers):
    ghost = User(id=999, email="ghost@clinic.org", role=UserRole.CLINICIAN)
    response = client.get("/api/v1/auth/me", headers=auth_headers(ghost))
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_USER"


def test_logout_is_audited(client, make_user, auth_headers, db):
    user = make_user("clinician@clinic.org")
    response = client.post("/api/v1/auth/logout", headers=auth_headers(user))
    assert response.status_code == 200
    events = list_audit_events(db, action="USER_LOGOUT")
    assert events[0].user_id == user.id


# ============================================================================
# ADMIN ACCOUNT CREATION
# ============================================================================

def test_admin_creates_admin_account(client, admin_headers):
    payload = {
        "email": "second.admin@clinic.org",
        "password": "Password123!",
        "firstName": "Grace",
        "lastName": "Hopper",
        "role": "ADMIN",
    }
    response = client.post("/api/v1/auth/register", json=payload, headers=admin_headers)

    assert response.status_code == 201
    assert response.json()["user"]["role"] == "ADMIN"

    login = client.post(LOGIN_URL, json={"email": "second.admin@clinic.org", "password": "Password123!"})
    assert login.status_code == 200


def test_admin_create_duplicate_email(client, admin_headers, make_user):
    make_user("taken@clinic.org")
    payload = {
        "email": "taken@clinic.org",
        "password": "Password123!",
        "firstName": "Grace",
        "lastName": "Hopper",
        "role": "BILLER",
    }
    response = client.post("/api/v1/auth/register", json=payload, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "USER_EXISTS"


def test_non_admin_cannot_create_accounts(client, make_user, auth_headers):
    clinician = make_user("clinician@clinic.org")
    payload = {
        "email": "new@clinic.org",
        "password": "Password123!",
        "firstName": "Grace",
        "lastName": "Hopper",
        "role": "ADMIN",
    }
    response = client.post("/api/v1/auth/register", json=payload, headers=auth_headers(clinician))
    assert response.status_code == 403
    data = response.json()
    assert data["code"] == "INSUFFICIENT_PERMISSIONS"
    assert data["required"] == ["ADMIN"]
    assert data["current"] == "CLINICIAN"
