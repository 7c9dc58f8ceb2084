"""
Tests for the authorization gate.
"""
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from ehr_identity.auth.exceptions import AuthRequiredException, RoleDeniedException
from ehr_identity.auth.models import User, UserRole
from ehr_identity.core.permissions import (
    ROLE_PERMISSIONS,
    Permission,
    allowed,
    authorize,
    has_permission,
    require_permission,
    require_roles,
)
from ehr_identity.database import get_db
from ehr_identity.exceptions import register_exception_handlers


def test_allowed_is_membership():
    assert allowed(UserRole.ADMIN, [UserRole.ADMIN])
    assert allowed(UserRole.BILLER, [UserRole.CLINICIAN, UserRole.BILLER])
    assert not allowed(UserRole.CLINICIAN, [UserRole.ADMIN])
    assert not allowed(UserRole.CLINICIAN, [])


def test_authorize_without_principal():
    with pytest.raises(AuthRequiredException) as exc_info:
        authorize(None, [UserRole.ADMIN])
    assert exc_info.value.status_code == 401
    assert exc_info.value.code == "AUTH_REQUIRED"


def test_authorize_role_mismatch_reports_required_and_current():
    user = User(id=3, email="qa@clinic.org", role=UserRole.QA_REVIEWER)
    with pytest.raises(RoleDeniedException) as exc_info:
        authorize(user, [UserRole.CLINICIAN, UserRole.ADMIN])
    assert exc_info.value.status_code == 403
    assert exc_info.value.extra == {"required": ["ADMIN", "CLINICIAN"], "current": "QA_REVIEWER"}


def test_authorize_returns_user():
    user = User(id=3, email="qa@clinic.org", role=UserRole.QA_REVIEWER)
    assert authorize(user, [UserRole.QA_REVIEWER]) is user


def test_admin_holds_every_permission():
    assert set(ROLE_PERMISSIONS[UserRole.ADMIN]) == set(Permission)


def test_role_permissions():
    assert has_permission(UserRole.BILLER, Permission.MANAGE_BILLING)
    assert not has_permission(UserRole.BILLER, Permission.DOCUMENT_VISITS)
    assert has_permission(UserRole.QA_REVIEWER, Permission.REVIEW_QA)
    assert not has_permission(UserRole.CLINICIAN, Permission.REVIEW_REGISTRATIONS)
    assert not has_permission(UserRole.INTAKE_STAFF, Permission.MANAGE_USERS)


@pytest.fixture
def gated_client(db):
    """A small app whose routes are guarded by the dependency factories."""
    gated = FastAPI()
    register_exception_handlers(gated)

    @gated.get("/billing")
    def billing(user: User = Depends(require_permission(Permission.MANAGE_BILLING))):
        return {"user": user.email}

    @gated.get("/clinical")
    def clinical(user: User = Depends(require_roles(UserRole.CLINICIAN, UserRole.ADMIN))):
        return {"user": user.email}

    def override_get_db():
        yield db

    gated.dependency_overrides[get_db] = override_get_db
    with TestClient(gated) as client:
        yield client


def test_require_permission(gated_client, make_user, auth_headers):
    biller = make_user("biller@clinic.org", role=UserRole.BILLER)
    clinician = make_user("clinician@clinic.org", role=UserRole.CLINICIAN)

    assert gated_client.get("/billing", headers=auth_headers(biller)).status_code == 200

    response = gated_client.get("/billing", headers=auth_headers(clinician))
    assert response.status_code == 403
    assert response.json()["current"] == "CLINICIAN"
    assert "BILLER" in response.json()["required"]


def test_require_roles(gated_client, make_user, auth_headers):
    clinician = make_user("clinician@clinic.org", role=UserRole.CLINICIAN)
    intake = make_user("intake@clinic.org", role=UserRole.INTAKE_STAFF)

    assert gated_client.get("/clinical", headers=auth_headers(clinician)).json() == {"user": "clinician@clinic.org"}
    assert gated_client.get("/clinical", headers=auth_headers(intake)).status_code == 403
    assert gated_client.get("/clinical").json()["code"] == "MISSING_TOKEN"
