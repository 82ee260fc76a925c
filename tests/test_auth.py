import pytest

import config


def test_signup_creates_single_user_with_hashed_password(client, db):
    res = client.post("/auth/signup", json={"email": "seller@reseller.io", "password": "plain-text"})
    assert res.status_code == 201
    assert res.json() == {"message": "User created"}

    users = list(db["user"].find({"email": "seller@reseller.io"}))
    assert len(users) == 1
    assert users[0]["password_hash"] != "plain-text"
    assert "password" not in users[0]


def test_signup_duplicate_email_rejected(client, db):
    creds = {"email": "seller@reseller.io", "password": "first"}
    assert client.post("/auth/signup", json=creds).status_code == 201

    res = client.post("/auth/signup", json={"email": "Seller@reseller.io", "password": "second"})
    assert res.status_code == 400
    assert res.json()["detail"] == "User already exists"
    assert db["user"].count_documents({}) == 1


def test_signup_requires_valid_email(client):
    res = client.post("/auth/signup", json={"email": "not-an-email", "password": "x"})
    assert res.status_code == 400


def test_login_wrong_password(client):
    client.post("/auth/signup", json={"email": "seller@reseller.io", "password": "right"})
    res = client.post("/auth/login", json={"email": "seller@reseller.io", "password": "wrong"})
    assert res.status_code == 400


def test_login_sets_session_cookie(client):
    creds = {"email": "seller@reseller.io", "password": "right"}
    client.post("/auth/signup", json=creds)
    res = client.post("/auth/login", json=creds)
    assert res.status_code == 200
    assert config.SESSION_COOKIE_NAME in res.cookies

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == "seller@reseller.io"

    client.post("/auth/logout")
    client.cookies.clear()
    assert client.get("/auth/me").status_code == 401


def test_bearer_token(client, auth_headers):
    res = client.get("/auth/me", headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["email"] == "owner@reseller.io"


def test_garbage_token_rejected(client):
    res = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


@pytest.mark.parametrize("method,path", [
    ("get", "/sources"),
    ("get", "/products"),
    ("get", "/orders"),
    ("get", "/stats"),
    ("delete", "/sources?id=0123456789abcdef01234567"),
])
def test_protected_routes_require_session(client, method, path):
    res = getattr(client, method)(path)
    assert res.status_code == 401


def test_unauthenticated_create_does_not_write(client, db):
    res = client.post("/sources", json={"name": "Ghost"})
    assert res.status_code == 401
    assert db["source"].count_documents({}) == 0


def test_missing_database_url_is_fatal(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(config.ConfigurationError):
        config.database_url()
