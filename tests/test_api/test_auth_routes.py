"""Authentication middleware and OTP endpoint tests."""

import pytest


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method, path",
    [
        ("GET", "/api/dashboard"),
        ("GET", "/api/offers"),
        ("POST", "/api/offers"),
        ("GET", "/api/schemes"),
    ],
)
async def test_auth_blocks_dashboard_api_without_session(client, remote_api, method, path):
    response = await client.request(method, path, json={})

    assert response.status_code == 401
    assert response.json().get("detail") == "Authentication required"
    assert remote_api.requests == []


@pytest.mark.asyncio
async def test_public_paths_do_not_need_a_session(client):
    assert (await client.get("/health")).status_code == 200
    session = await client.get("/api/auth/session")
    assert session.status_code == 200
    assert session.json()["authenticated"] is False


@pytest.mark.asyncio
async def test_otp_sign_in_creates_session(signed_in_client, remote_api):
    response = await signed_in_client.get("/api/auth/session")

    body = response.json()
    assert body["authenticated"] is True
    assert body["user_id"] == 42
    assert body["business_profile"]["name"] == "Corner Cafe"
    assert "token" not in response.text

    validate = remote_api.calls("auth/validate-otp")[0]
    assert remote_api.body(validate) == {"userID": "42", "otp": "1234"}


@pytest.mark.asyncio
async def test_signed_in_requests_carry_the_token(signed_in_client, remote_api):
    remote_api.add("GET", "loyalty/load-loyalty-scheme", json={"data": []})

    response = await signed_in_client.get("/api/schemes")

    assert response.status_code == 200
    [sent] = remote_api.calls("loyalty/load-loyalty-scheme")
    assert sent.headers["authorization"] == "Bearer signed-token"


@pytest.mark.asyncio
async def test_logout_ends_the_session(signed_in_client):
    response = await signed_in_client.post("/api/auth/logout")
    assert response.status_code == 200

    blocked = await signed_in_client.get("/api/dashboard")
    assert blocked.status_code == 401


@pytest.mark.asyncio
async def test_bad_otp_format_is_a_400_with_field(client, remote_api):
    remote_api.add("POST", "auth/generate-otp", json={"response": "Success", "userID": 42})
    await client.post("/api/auth/generate-otp", json={"mobile_number": "7700900123"})

    response = await client.post("/api/auth/validate-otp", json={"otp": "12"})

    assert response.status_code == 400
    assert response.json()["field"] == "otp"
    assert remote_api.calls("auth/validate-otp") == []
