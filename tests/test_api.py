from dataclasses import replace
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from coursehub.core.config import Settings
from coursehub.dependencies import build_services
from coursehub.exceptions import ConfigurationError
from coursehub.infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserDirectory
from coursehub.main import create_app

from conftest import TEST_SECRET, FakeGateway

PREFIX = "/api/v1/user"
PASSWORD = "Abc@1234"


def make_settings(**overrides) -> Settings:
    values = dict(JWT_SECRET=TEST_SECRET, DATABASE_URL="sqlite://", BCRYPT_ROUNDS=4, LOG_LEVEL="WARNING")
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def services(gateway):
    return replace(build_services(make_settings()), gateway=gateway)


@pytest.fixture
def client(services):
    with TestClient(create_app(services.settings, services=services)) as client:
        yield client


def register(client, phone="9876543210", **extra):
    body = {"name": "Asha", "phone_number": phone, "password": PASSWORD}
    body.update(extra)
    return client.post(f"{PREFIX}/register", json=body)


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def make_admin(services, account_id):
    with Session(services.engine) as session:
        users = SqlUserDirectory(session)
        users.save(replace(users.find_by_id(account_id), role="ADMIN"))


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["auth"]["standard_session_days"] == 7
    assert body["auth"]["verified_session_days"] == 30


def test_register_returns_session_and_unverified_user(client, gateway):
    response = register(client)
    assert response.status_code == 201

    body = response.json()
    assert body["success"] is True
    user = body["data"]["user"]
    assert user["phone_number"] == "+919876543210"
    assert user["isVerified"] is False
    assert user["role"] == "USER"
    assert "password_hash" not in user
    assert "otp_code" not in user
    assert body["data"]["token"]
    assert body["data"]["otp_sent"] is True
    assert body["data"]["otp_expires_in"] == 600

    cookie = response.headers["set-cookie"]
    assert cookie.startswith("token=")
    assert "HttpOnly" in cookie
    assert "Max-Age=604800" in cookie
    assert gateway.sent[0][0] == "+919876543210"


def test_register_accepts_camel_case_fields(client):
    response = client.post(
        f"{PREFIX}/register",
        json={"name": "Asha", "phoneNumber": 9876543210, "password": PASSWORD},
    )
    assert response.status_code == 201


def test_register_then_verify_then_login(client, gateway):
    registered = register(client).json()["data"]
    user_id = registered["user"]["id"]

    verified = client.post(f"{PREFIX}/verify-otp", json={"user_id": user_id, "otp": gateway.last_code})
    assert verified.status_code == 200
    assert verified.json()["data"]["user"]["isVerified"] is True
    assert "Max-Age=2592000" in verified.headers["set-cookie"]

    again = client.post(f"{PREFIX}/verify-otp", json={"user_id": user_id, "otp": gateway.last_code})
    assert again.status_code == 400
    assert again.json()["error"] == "ALREADY_VERIFIED"

    login = client.post(f"{PREFIX}/login", json={"phone_number": "+91 98765 43210", "password": PASSWORD})
    assert login.status_code == 200
    data = login.json()["data"]
    assert data["user"]["last_login"] is not None

    profile = client.get(f"{PREFIX}/profile", headers=auth(data["token"]))
    assert profile.status_code == 200
    assert profile.json()["data"]["user"]["id"] == user_id


def test_verify_phone_alias(client, gateway):
    user_id = register(client).json()["data"]["user"]["id"]
    response = client.post(f"{PREFIX}/verify-phone", json={"userId": user_id, "otp": int(gateway.last_code)})
    assert response.status_code == 200


def test_error_envelope_for_duplicates(client):
    register(client)
    response = register(client, phone="+919876543210")
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "DUPLICATE_ACCOUNT",
        "message": "A user with this phone number already exists.",
        "status_code": 400,
        "field": "phone_number",
    }


@pytest.mark.parametrize("body,kind,field", [
    ({"phone_number": "9876543210", "password": PASSWORD}, "MISSING_FIELD", "name"),
    ({"name": "Asha", "phone_number": "9876543210", "password": "weakpass"}, "WEAK_PASSWORD", "password"),
    ({"name": "Asha", "phone_number": "12345", "password": PASSWORD}, "INVALID_PHONE_FORMAT", "phone_number"),
    ({"name": "Asha", "phone_number": "9876543210", "password": PASSWORD, "email": "nope"}, "INVALID_EMAIL", "email"),
])
def test_register_validation_errors(client, body, kind, field):
    response = client.post(f"{PREFIX}/register", json=body)
    assert response.status_code == 400
    assert response.json()["error"] == kind
    assert response.json()["field"] == field


def test_malformed_body_is_reported_as_missing_field(client):
    response = client.post(f"{PREFIX}/register", content="not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"] == "MISSING_FIELD"


def test_login_errors(client):
    register(client)
    unknown = client.post(f"{PREFIX}/login", json={"phone_number": "9123456789", "password": PASSWORD})
    assert unknown.status_code == 404
    assert unknown.json()["error"] == "NOT_FOUND"

    wrong = client.post(f"{PREFIX}/login", json={"phone_number": "9876543210", "password": "Wrong@123"})
    assert wrong.status_code == 401
    assert wrong.json()["error"] == "INVALID_CREDENTIAL"

    missing = client.post(f"{PREFIX}/login", json={"password": PASSWORD})
    assert missing.status_code == 400
    assert missing.json()["error"] == "MISSING_FIELD"


def test_resend_replaces_the_code(client, gateway, services, monkeypatch):
    codes = iter(["482913", "735160"])
    monkeypatch.setattr(services.otp_issuer, "generate_code", lambda: next(codes))
    user_id = register(client).json()["data"]["user"]["id"]
    old_code = gateway.last_code

    response = client.post(f"{PREFIX}/resend-otp", json={"user_id": user_id})
    assert response.status_code == 200
    assert response.json()["data"]["otp_expires_in"] == 600
    assert len(gateway.sent) == 2

    stale = client.post(f"{PREFIX}/verify-otp", json={"user_id": user_id, "otp": old_code})
    assert stale.json()["error"] == "INVALID_OTP"
    fresh = client.post(f"{PREFIX}/verify-otp", json={"user_id": user_id, "otp": gateway.last_code})
    assert fresh.status_code == 200


def test_resend_delivery_failure_is_500(client, gateway):
    user_id = register(client).json()["data"]["user"]["id"]
    gateway.succeed = False
    response = client.post(f"{PREFIX}/resend-otp", json={"user_id": user_id})
    assert response.status_code == 500
    assert response.json()["error"] == "DELIVERY_FAILED"


def test_resend_unknown_user(client):
    response = client.post(f"{PREFIX}/resend-otp", json={"user_id": "does-not-exist"})
    assert response.status_code == 404


def test_logout_clears_cookie(client):
    token = register(client).json()["data"]["token"]
    for method in (client.post, client.get):
        response = method(f"{PREFIX}/logout", headers=auth(token))
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert "Max-Age=0" in response.headers["set-cookie"]


def test_profile_requires_a_valid_session(client):
    missing = client.get(f"{PREFIX}/profile")
    assert missing.status_code == 401
    assert missing.json()["error"] == "UNAUTHORIZED"

    bogus = client.get(f"{PREFIX}/profile", headers=auth("not-a-token"))
    assert bogus.status_code == 401


def test_update_profile(client):
    token = register(client).json()["data"]["token"]
    response = client.put(f"{PREFIX}/profile/update", json={"name": "Asha K"}, headers=auth(token))
    assert response.status_code == 200
    assert response.json()["data"]["user"]["name"] == "Asha K"

    empty = client.put(f"{PREFIX}/profile/update", json={}, headers=auth(token))
    assert empty.status_code == 400
    assert empty.json()["error"] == "NO_CHANGES"


def test_admin_routes_are_forbidden_for_users(client):
    token = register(client).json()["data"]["token"]
    for path in ("/users", "/database-stats"):
        response = client.get(f"{PREFIX}{path}", headers=auth(token))
        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"


def test_admin_can_list_count_and_change_roles(client, services):
    admin = register(client).json()["data"]
    make_admin(services, admin["user"]["id"])
    other_id = register(client, phone="9123456789").json()["data"]["user"]["id"]
    headers = auth(admin["token"])

    listing = client.get(f"{PREFIX}/users", headers=headers).json()["data"]
    assert listing["count"] == 2

    role = client.put(f"{PREFIX}/user/role", json={"userId": other_id, "role": "INSTRUCTOR"}, headers=headers)
    assert role.status_code == 200
    assert role.json()["data"]["user"]["role"] == "INSTRUCTOR"

    bad_role = client.put(f"{PREFIX}/user/role", json={"userId": other_id, "role": "ROOT"}, headers=headers)
    assert bad_role.status_code == 400
    assert bad_role.json()["error"] == "INVALID_ROLE"

    stats = client.get(f"{PREFIX}/database-stats", headers=headers).json()["data"]
    assert stats["totalUsers"] == 2
    assert stats["usersByRole"] == {"ADMIN": 1, "INSTRUCTOR": 1}
    assert stats["verificationStats"] == {"verified": 0, "unverified": 2}


def test_unknown_route_uses_error_envelope(client):
    response = client.get(f"{PREFIX}/nope")
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


def test_security_headers(client):
    response = client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_startup_fails_without_jwt_secret():
    app = create_app(make_settings(JWT_SECRET=None))
    with pytest.raises(ConfigurationError):
        with TestClient(app):
            pass


def test_registration_writes_utc_timestamps(client, services):
    user = register(client).json()["data"]["user"]
    created_at = datetime.fromisoformat(user["created_at"].replace("Z", "+00:00"))
    assert created_at.utcoffset() == timedelta(0)

    with Session(services.engine) as session:
        stored = SqlUserDirectory(session).find_by_id(user["id"])
    assert stored.otp_expires_at.tzinfo is not None
    assert stored.otp_expires_at > created_at


def test_blank_emails_do_not_collide(client):
    assert register(client, email="   ").status_code == 201
    assert register(client, phone="9123456789", email="").status_code == 201
