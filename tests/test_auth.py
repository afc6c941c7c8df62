from datetime import timedelta

import jwt
import pytest
from sqlmodel import select

from portal.core.config import settings
from portal.core.security import ALGORITHM, create_access_token, decode_token, hash_password, verify_password
from portal.models.user import User
from portal.services.auth_service import dashboard_path_for

PASSWORD = "Secret123!"


def test_password_hashing_handles_long_passwords():
    long_pw = "x" * 100
    hashed = hash_password(long_pw)
    assert verify_password(long_pw, hashed)
    assert not verify_password("x" * 99, hashed)


def test_token_round_trip_and_expiry():
    token = create_access_token(subject=7, data={"user_type": "STAFF"})
    payload = decode_token(token)
    assert payload["sub"] == "7"
    assert payload["user_type"] == "STAFF"

    expired = create_access_token(subject=7, expires_delta=timedelta(seconds=-5))
    with pytest.raises(jwt.ExpiredSignatureError):
        decode_token(expired)


@pytest.mark.parametrize("user_type, path", [
    ("ADMIN", "/AdminDashboard"),
    ("HEAD", "/headdashboard"),
    ("STAFF", "/staffdashboard"),
    ("GUEST", "/dashboard"),
])
def test_dashboard_redirects(user_type, path):
    assert dashboard_path_for(user_type) == path


@pytest.mark.asyncio
async def test_login_success(client, staff_user):
    res = await client.post("/auth/login", json={"email": "STAFF@psu.edu", "password": PASSWORD})
    assert res.status_code == 200, res.text
    data = res.json()
    assert data["user"]["email"] == "staff@psu.edu"
    assert data["user"]["department"]["code"] == "CS"
    assert data["redirect"] == "/staffdashboard"
    assert data["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


@pytest.mark.asyncio
async def test_remember_me_issues_long_lived_token(client, staff_user):
    res = await client.post(
        "/auth/login",
        json={"email": "staff@psu.edu", "password": PASSWORD, "rememberMe": True},
    )
    assert res.status_code == 200
    data = res.json()
    assert data["expires_in"] == settings.REMEMBER_ME_EXPIRE_DAYS * 86400

    payload = jwt.decode(data["token"], settings.SECRET_KEY, algorithms=[ALGORITHM])
    assert payload["exp"] - payload["iat"] == settings.REMEMBER_ME_EXPIRE_DAYS * 86400


@pytest.mark.asyncio
async def test_login_wrong_password(client, staff_user):
    res = await client.post("/auth/login", json={"email": "staff@psu.edu", "password": "nope-nope"})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_signup_verify_then_login(client, session, cs_dept):
    payload = {
        "username": "newstaff",
        "firstName": "New",
        "lastName": "Staff",
        "email": "new@psu.edu",
        "password": "LongEnough1",
        "confirmPassword": "LongEnough1",
        "department": cs_dept.id,
        "userType": "STAFF",
    }
    res = await client.post("/auth/signup", json=payload)
    assert res.status_code == 201, res.text
    assert res.json()["user"]["is_verified"] is False

    # Unverified accounts cannot log in yet
    blocked = await client.post("/auth/login", json={"email": "new@psu.edu", "password": "LongEnough1"})
    assert blocked.status_code == 403

    token = (await session.execute(select(User.verification_token).where(User.email == "new@psu.edu"))).scalar_one()
    verified = await client.post("/auth/verify", json={"token": token})
    assert verified.status_code == 200
    assert verified.json()["user"]["is_verified"] is True

    again = await client.post("/auth/verify", json={"token": token})
    assert again.status_code == 400

    ok = await client.post("/auth/login", json={"email": "new@psu.edu", "password": "LongEnough1"})
    assert ok.status_code == 200


@pytest.mark.asyncio
async def test_signup_duplicate_email(client, cs_dept, staff_user):
    payload = {
        "username": "someoneelse",
        "email": "staff@psu.edu",
        "password": "LongEnough1",
        "confirmPassword": "LongEnough1",
        "department": cs_dept.id,
        "userType": "STAFF",
    }
    res = await client.post("/auth/signup", json=payload)
    assert res.status_code == 409


@pytest.mark.asyncio
@pytest.mark.parametrize("override, message", [
    ({"confirmPassword": "Different1"}, "Passwords do not match"),
    ({"password": "short", "confirmPassword": "short"}, "at least 8 characters"),
    ({"userType": "ADMIN"}, "cannot be self-registered"),
    ({"department": None}, "Department is required"),
])
async def test_signup_validation(client, cs_dept, override, message):
    payload = {
        "username": "newstaff",
        "email": "new@psu.edu",
        "password": "LongEnough1",
        "confirmPassword": "LongEnough1",
        "department": cs_dept.id,
        "userType": "STAFF",
    }
    payload.update(override)
    res = await client.post("/auth/signup", json=payload)
    assert res.status_code == 422
    assert message in res.text


@pytest.mark.asyncio
async def test_verify_token_and_me(client, staff_headers):
    res = await client.get("/auth/verify-token", headers=staff_headers)
    assert res.status_code == 200
    assert res.json()["valid"] is True
    assert res.json()["user"]["username"] == "staff"

    me = await client.get("/auth/me", headers=staff_headers)
    assert me.json()["user"]["user_type"] == "STAFF"


@pytest.mark.asyncio
async def test_missing_or_bad_token_is_401(client, staff_user):
    assert (await client.get("/auth/me")).status_code == 401
    assert (await client.get("/auth/me", headers={"Authorization": "Bearer garbage"})).status_code == 401

    expired = create_access_token(subject=staff_user.id, expires_delta=timedelta(seconds=-5))
    res = await client.get("/auth/me", headers={"Authorization": f"Bearer {expired}"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Token has expired"

    ghost = create_access_token(subject=9999)
    assert (await client.get("/auth/me", headers={"Authorization": f"Bearer {ghost}"})).status_code == 401


@pytest.mark.asyncio
async def test_heads_list(client, head_user, staff_user):
    res = await client.get("/auth/heads")
    assert res.status_code == 200
    assert [u["username"] for u in res.json()] == ["head"]
