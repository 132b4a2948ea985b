"""
Tests for authentication endpoints: registration, login and /me.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_register_vendor(client: AsyncClient):
    """Successful registration returns user data with the requested role."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "dj@example.com",
        "username": "dj_sparkle",
        "password": "securepassword123",
        "full_name": "DJ Sparkle",
        "role": "VENDOR",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "dj@example.com"
    assert data["role"] == "VENDOR"
    assert "hashed_password" not in data  # Never expose password hash


@pytest.mark.asyncio
async def test_register_defaults_to_client(client: AsyncClient):
    response = await client.post("/api/v1/auth/register", json={
        "email": "party@example.com",
        "username": "party_planner",
        "password": "securepassword123",
    })
    assert response.status_code == 201
    assert response.json()["role"] == "CLIENT"


@pytest.mark.asyncio
async def test_register_as_admin_rejected(client: AsyncClient):
    """Admins cannot self-register."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "sneaky@example.com",
        "username": "sneaky",
        "password": "securepassword123",
        "role": "ADMIN",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, client_user):
    """Duplicate email returns 409."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "test_client@example.com",
        "username": "different",
        "password": "securepassword123",
    })
    assert response.status_code == 409
    assert response.json()["detail"] == "Email already registered"


@pytest.mark.asyncio
async def test_register_duplicate_username(client: AsyncClient, client_user):
    """Duplicate username returns 409."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "different@example.com",
        "username": "test_client",
        "password": "securepassword123",
    })
    assert response.status_code == 409
    assert response.json()["detail"] == "Username already taken"


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient):
    """Password under 8 chars returns 422."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "weak@example.com",
        "username": "weakuser",
        "password": "short",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, vendor_user):
    """Valid credentials return a JWT usable on /me."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "test_vendor@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"

    me = await client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {data['access_token']}"},
    )
    assert me.status_code == 200
    assert me.json()["id"] == vendor_user.id
    assert me.json()["role"] == "VENDOR"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, client_user):
    """Wrong password returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "test_client@example.com",
        "password": "wrongpassword",
    })
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_login_nonexistent_email(client: AsyncClient):
    """Non-existent email returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "anypassword123",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_rejects_garbage_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
