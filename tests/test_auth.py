from .conftest import PASSWORD, auth_headers


def test_login_with_email(client, admin):
    resp = client.post("/api/auth/login", json={"identifier": "ADMIN@bole.test", "password": PASSWORD})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["access_token"]
    assert body["user"]["id"] == admin.id
    assert body["user"]["last_login_at"] is not None


def test_login_with_phone(client, admin):
    resp = client.post("/api/auth/login", json={"identifier": admin.phone, "password": PASSWORD})
    assert resp.status_code == 200


def test_login_wrong_password(client, admin):
    resp = client.post("/api/auth/login", json={"identifier": admin.email, "password": "nope"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "invalid_credentials"


def test_login_disabled_account(client, make_user, org):
    user = make_user(["ORG_ADMIN"], org, status="inactive", email="gone@bole.test")
    resp = client.post("/api/auth/login", json={"identifier": user.email, "password": PASSWORD})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "account_disabled"


def test_token_from_login_reaches_protected_route(client, admin):
    token = client.post(
        "/api/auth/login", json={"identifier": admin.email, "password": PASSWORD}
    ).get_json()["access_token"]
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.get_json()["user"]["email"] == admin.email


def test_change_password(client, admin):
    headers = auth_headers(admin)
    resp = client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "short"},
        headers=headers,
    )
    assert resp.status_code == 400

    resp = client.post(
        "/api/auth/change-password",
        json={"current_password": "wrong-one", "new_password": "a-much-longer-one"},
        headers=headers,
    )
    assert resp.status_code == 401

    resp = client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "a-much-longer-one"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert admin.check_password("a-much-longer-one")
