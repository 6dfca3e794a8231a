from tests.conftest import auth_headers, make_user


def test_register_and_login(client):
    response = client.post("/api/users/register", json={
        "name": "Dana",
        "email": "Dana@Example.com",
        "password": "pw",
        "address": "3 Elm St",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "dana@example.com"
    assert body["is_admin"] is False
    assert body["token"]
    assert "password_hash" not in body

    response = client.post("/api/users/login", json={"email": "DANA@example.com", "password": "pw"})
    assert response.status_code == 200
    assert response.json()["id"] == body["id"]


def test_register_duplicate(client, user):
    response = client.post("/api/users/register", json={
        "name": "Alice",
        "email": "ALICE@example.com",
        "password": "pw",
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists, please login!"


def test_login_wrong_password(client, user):
    response = client.post("/api/users/login", json={"email": user["email"], "password": "nope"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Username or password is invalid"


def test_login_blocked(client, db):
    make_user("carol@example.com", is_blocked=True)
    response = client.post("/api/users/login", json={"email": "carol@example.com", "password": "secret"})
    assert response.status_code == 400


def test_update_profile(client, user):
    response = client.put("/api/users/updateProfile", json={"name": "Alicia", "address": "9 Oak"},
                          headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["name"] == "Alicia"
    assert response.json()["address"] == "9 Oak"


def test_change_password(client, user):
    headers = auth_headers(user)
    response = client.put("/api/users/changePassword",
                          json={"currentPassword": "wrong", "newPassword": "new"}, headers=headers)
    assert response.status_code == 400

    response = client.put("/api/users/changePassword",
                          json={"currentPassword": "secret", "newPassword": "new"}, headers=headers)
    assert response.status_code == 200
    assert response.json() == "success"

    response = client.post("/api/users/login", json={"email": user["email"], "password": "new"})
    assert response.status_code == 200


def test_getall_requires_admin(client, user):
    response = client.get("/api/users/getall", headers=auth_headers(user))
    assert response.status_code == 401


def test_getall_hides_password(client, admin, user, other_user):
    response = client.get("/api/users/getall", headers=auth_headers(admin))
    assert response.status_code == 200
    users = response.json()
    assert len(users) == 3
    assert all("password_hash" not in u for u in users)

    response = client.get("/api/users/getall/ALI", headers=auth_headers(admin))
    assert [u["email"] for u in response.json()] == ["alice@example.com"]


def test_toggle_block(client, admin, user):
    path = f"/api/users/toggleBlock/{user['_id']}"
    assert client.put(path, headers=auth_headers(admin)).json() is True
    assert client.get("/api/orders", headers=auth_headers(user)).status_code == 401
    assert client.put(path, headers=auth_headers(admin)).json() is False
    assert client.get("/api/orders", headers=auth_headers(user)).status_code == 200


def test_toggle_block_self(client, admin):
    response = client.put(f"/api/users/toggleBlock/{admin['_id']}", headers=auth_headers(admin))
    assert response.status_code == 400


def test_toggle_block_unknown(client, admin):
    response = client.put("/api/users/toggleBlock/5f1d7f0b9d1e8a0001000000", headers=auth_headers(admin))
    assert response.status_code == 404


def test_role_is_read_from_user_record(client, user, other_user, db):
    # promoting after the token was issued takes effect immediately
    headers = auth_headers(user)
    db["user"].update_one({"email": user["email"]}, {"$set": {"is_admin": True}})
    response = client.get("/api/users/getall", headers=headers)
    assert response.status_code == 200
