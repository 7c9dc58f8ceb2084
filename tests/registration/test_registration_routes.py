"""
HTTP tests for the registration endpoints.
"""
from ehr_identity.auth.models import UserRole

BASE = "/api/v1/registration"
EMAIL = "new.clinician@clinic.org"


def _request(client, email=EMAIL, role="CLINICIAN"):
    return client.post(
        f"{BASE}/request",
        json={"email": email, "firstName": "Casey", "lastName": "Jones", "role": role},
    )


def test_full_registration_scenario(client, notifier, admin_headers):
    # Step 1: request
    response = _request(client)
    assert response.status_code == 202
    request_id = response.json()["requestId"]
    assert response.json()["stage"] == "AWAITING_VERIFICATION"

    # Step 2: verify
    code = notifier.last_code(EMAIL)
    response = client.post(f"{BASE}/verify", json={"email": EMAIL, "verificationCode": code})
    assert response.status_code == 200
    assert response.json()["status"] == "PENDING"
    assert response.json()["stage"] == "AWAITING_APPROVAL"

    status = client.get(f"{BASE}/status/{EMAIL}").json()
    assert status["stage"] == "AWAITING_APPROVAL"

    # Step 3: admin approves
    response = client.post(f"{BASE}/admin/approve/{request_id}", json={"notes": "Verified license"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"
    assert response.json()["approverName"] == "Ada Admin"

    status = client.get(f"{BASE}/status/{EMAIL}").json()
    assert status["status"] == "APPROVED"
    assert status["notes"] == "Verified license"
    assert status["approvedAt"]

    # Step 4: complete
    token = notifier.last_completion_token(EMAIL)
    response = client.post(f"{BASE}/complete", json={"email": EMAIL, "password": "StrongPass1!", "token": token})
    assert response.status_code == 200
    data = response.json()
    assert data["user"]["email"] == EMAIL
    assert data["user"]["role"] == "CLINICIAN"
    assert data["user"]["firstName"] == "Casey"

    # The returned session works immediately
    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['sessionToken']}"})
    assert me.status_code == 200
    assert me.json()["email"] == EMAIL

    # And the new password logs in
    login = client.post("/api/v1/auth/login", json={"email": EMAIL, "password": "StrongPass1!"})
    assert login.status_code == 200

    # Replaying the token fails
    response = client.post(f"{BASE}/complete", json={"email": EMAIL, "password": "StrongPass1!", "token": token})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_COMPLETION_TOKEN"

    assert client.get(f"{BASE}/status/{EMAIL}").json()["status"] == "COMPLETED"


def test_request_admin_role_is_refused(client, notifier):
    response = _request(client, role="ADMIN")
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ROLE"
    assert notifier.sent == []


def test_request_unknown_role_is_refused(client):
    response = _request(client, role="SURGEON")
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ROLE"


def test_request_invalid_payload(client):
    response = client.post(f"{BASE}/request", json={"email": "nope", "firstName": "C", "role": "CLINICIAN"})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_duplicate_request_returns_pending_conflict(client, notifier):
    first = _request(client).json()

    response = _request(client)

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "REQUEST_PENDING"
    assert data["requestId"] == first["requestId"]
    assert data["status"] == "PENDING"
    assert data["stage"] == "AWAITING_VERIFICATION"
    assert len(notifier.of_kind("verification")) == 1


def test_request_for_existing_user(client, make_user):
    make_user(EMAIL)
    response = _request(client)
    assert response.status_code == 409
    assert response.json()["code"] == "USER_EXISTS"


def test_verify_wrong_code(client, notifier):
    _request(client)
    code = notifier.last_code(EMAIL)
    wrong = "000000" if code != "000000" else "999999"

    response = client.post(f"{BASE}/verify", json={"email": EMAIL, "verificationCode": wrong})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_CODE"


def test_verify_unknown_email(client):
    response = client.post(f"{BASE}/verify", json={"email": "ghost@clinic.org", "verificationCode": "123456"})
    assert response.status_code == 404
    assert response.json()["code"] == "REQUEST_NOT_FOUND"


def test_resend_verification(client, notifier):
    _request(client)
    response = client.post(f"{BASE}/resend-verification", json={"email": EMAIL})
    assert response.status_code == 200
    assert len(notifier.of_kind("verification", EMAIL)) == 2

    code = notifier.last_code(EMAIL)
    assert client.post(f"{BASE}/verify", json={"email": EMAIL, "verificationCode": code}).status_code == 200


def test_status_unknown_email(client):
    response = client.get(f"{BASE}/status/ghost@clinic.org")
    assert response.status_code == 404


def test_reject_flow(client, notifier, admin_headers):
    request_id = _request(client).json()["requestId"]

    response = client.post(
        f"{BASE}/admin/reject/{request_id}", json={"reason": "Not on staff roster"}, headers=admin_headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "REJECTED"
    assert data["rejectionReason"] == "Not on staff roster"
    assert notifier.of_kind("rejected", EMAIL)[0]["reason"] == "Not on staff roster"

    # Second decision on the same request fails
    response = client.post(f"{BASE}/admin/approve/{request_id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "REQUEST_NOT_PENDING"

    # Completion is impossible
    response = client.post(f"{BASE}/complete", json={"email": EMAIL, "password": "StrongPass1!", "token": "a" * 48})
    assert response.status_code == 400
    assert response.json()["code"] == "REQUEST_NOT_APPROVED"


def test_reject_requires_reason(client, admin_headers):
    request_id = _request(client).json()["requestId"]
    response = client.post(f"{BASE}/admin/reject/{request_id}", json={}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_admin_routes_require_admin(client, make_user, auth_headers):
    request_id = _request(client).json()["requestId"]
    intake = make_user("intake@clinic.org", role=UserRole.INTAKE_STAFF)

    response = client.post(f"{BASE}/admin/approve/{request_id}", headers=auth_headers(intake))
    assert response.status_code == 403
    assert response.json()["code"] == "INSUFFICIENT_PERMISSIONS"

    response = client.get(f"{BASE}/admin/requests")
    assert response.status_code == 401
    assert response.json()["code"] == "MISSING_TOKEN"


def test_list_requests_paginates_and_filters(client, admin_headers):
    ids = [_request(client, email=f"applicant{i}@clinic.org").json()["requestId"] for i in range(3)]
    client.post(f"{BASE}/admin/reject/{ids[0]}", json={"reason": "Duplicate"}, headers=admin_headers)

    response = client.get(f"{BASE}/admin/requests", params={"page": 1, "limit": 2}, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["pages"] == 2
    assert data["hasNext"] is True
    assert [item["id"] for item in data["items"]] == [ids[2], ids[1]]

    response = client.get(f"{BASE}/admin/requests", params={"status": "REJECTED"}, headers=admin_headers)
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == ids[0]
    assert data["items"][0]["stage"] == "REJECTED"
