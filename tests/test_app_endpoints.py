import re

from fastapi.testclient import TestClient

from userperm.app import create_app
from userperm.auth.session import encode
from userperm.config import AuthConfig

from conftest import GOOD_PASSWORD, SECRET


def _register(client, username="alice", password=GOOD_PASSWORD, email="alice@example.com"):
    return client.post("/register", data={"username": username, "password": password, "email": email})


def _login(client, username="alice", password=GOOD_PASSWORD):
    return client.post("/login", data={"username": username, "password": password})


def test_root_is_public(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "Logged in on server: False" in r.text


def test_unlisted_path_is_denied(client):
    r = client.get("/unlisted")
    assert r.status_code == 403
    assert r.text == "Permission denied."


def test_user_and_admin_pages_need_login(client):
    assert client.get("/data").status_code == 403
    assert client.get("/admin").status_code == 403


def test_register_rejects_weak_password(client):
    r = _register(client, password="Sh0rt!")
    assert r.status_code == 400
    assert r.text.startswith("password:")


def test_register_confirm_login_logout(client):
    r = _register(client)
    assert r.status_code == 200
    code = re.search(r"confirmation code: (\w+)", r.text).group(1)

    assert client.get("/confirm", params={"code": code}).status_code == 200
    assert client.get("/confirm", params={"code": code}).status_code == 400

    assert _login(client, password="wrong").status_code == 401
    r = _login(client)
    assert r.status_code == 200
    assert "user" in r.cookies

    assert client.get("/data").status_code == 200
    # logged in, but not an administrator
    assert client.get("/admin").status_code == 403

    r = client.post("/logout")
    assert r.status_code == 200
    assert client.get("/data").status_code == 403


def test_admin_can_list_users(client):
    _register(client)
    _register(client, username="bob", email="bob@example.com")
    client.app.state.users.set_admin("alice")

    _login(client)
    r = client.get("/admin")
    assert r.status_code == 200
    assert r.text == "list of all users: alice, bob"

    r = client.post("/admin/makeadmin", data={"username": "bob"})
    assert r.status_code == 200
    assert client.app.state.users.is_admin("bob")


def test_forged_cookie_is_unauthenticated(client):
    _register(client)
    _login(client)
    client.cookies.clear()
    client.cookies.set("user", encode("alice", "not-the-server-secret"))
    assert client.get("/data").status_code == 403


def test_valid_cookie_without_server_login_is_denied(client):
    _register(client)
    # signed correctly, but the store says alice never logged in
    client.cookies.set("user", encode("alice", SECRET))
    assert client.get("/data").status_code == 403


def test_yaml_backed_app(tmp_path):
    config = AuthConfig(secret=SECRET, bcrypt_rounds=4, users_path=tmp_path / "users.yml")
    client = TestClient(create_app(config))
    assert _register(client).status_code == 200
    assert "alice" in (tmp_path / "users.yml").read_text(encoding="utf-8")
    assert _login(client).status_code == 200
    assert client.get("/data").status_code == 200


def test_admin_can_deactivate_a_user(client):
    _register(client)
    _register(client, username="bob", email="bob@example.com")
    client.app.state.users.set_admin("alice")

    # only administrators may deactivate
    assert client.post("/admin/remove", data={"username": "bob"}).status_code == 403

    _login(client)
    r = client.post("/admin/remove", data={"username": "bob"})
    assert r.status_code == 200
    assert r.text == "User bob is active: False"
    assert not client.app.state.users.is_active("bob")
    assert client.app.state.users.has_user("bob")

    assert client.post("/admin/remove", data={"username": "ghost"}).status_code == 404

    client.post("/logout")
    assert _login(client, username="bob").status_code == 401
