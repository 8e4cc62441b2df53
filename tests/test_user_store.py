import pytest

from userperm.core.models import User
from userperm.errors import ConflictError, NotFoundError
from userperm.infra.user_store import MemoryUserStore, ProjectionQuerier, UserStore, YamlUserStore


@pytest.fixture(params=["memory", "yaml"])
def any_store(request, tmp_path):
    if request.param == "memory":
        s = MemoryUserStore()
    else:
        s = YamlUserStore(tmp_path / "data" / "users.yml")
    s.open()
    yield s
    s.close()


def test_implements_interfaces(any_store):
    assert isinstance(any_store, UserStore)
    assert isinstance(any_store, ProjectionQuerier)


def test_put_get_delete(any_store):
    any_store.put("alice", User(username="alice", email="a@example.com"))
    u = any_store.get("alice")
    assert u.email == "a@example.com"
    assert u.version == 1

    any_store.delete("alice")
    with pytest.raises(NotFoundError):
        any_store.get("alice")
    with pytest.raises(NotFoundError):
        any_store.delete("alice")


def test_get_returns_a_copy(any_store):
    any_store.put("alice", User(username="alice"))
    u = any_store.get("alice")
    u.admin = True
    assert any_store.get("alice").admin is False


def test_conditional_put(any_store):
    user = User(username="alice")
    any_store.put("alice", user, expected_version=0)
    assert user.version == 1

    first = any_store.get("alice")
    second = any_store.get("alice")
    first.admin = True
    any_store.put("alice", first, expected_version=1)

    second.email = "late@example.com"
    with pytest.raises(ConflictError) as ei:
        any_store.put("alice", second, expected_version=1)
    assert ei.value.actual == 2

    stored = any_store.get("alice")
    assert stored.admin is True
    assert stored.email == ""


def test_create_only_put_fails_when_present(any_store):
    any_store.put("alice", User(username="alice"))
    with pytest.raises(ConflictError):
        any_store.put("alice", User(username="alice"), expected_version=0)


def test_projections(any_store):
    any_store.put("alice", User(username="alice", confirmation_code="c1"))
    any_store.put("bob", User(username="bob", confirmed=True))
    any_store.put("carol", User(username="carol", confirmation_code="c3"))

    assert sorted(any_store.get_all("username")) == ["alice", "bob", "carol"]
    assert sorted(any_store.get_all_filtered("username", "confirmed =", False)) == ["alice", "carol"]
    assert any_store.get_all_filtered("username", "confirmed", "true") == ["bob"]
    assert sorted(any_store.get_all_filtered("confirmation_code", "confirmed =", "false")) == ["c1", "c3"]


def test_projection_field_checks(any_store):
    with pytest.raises(ValueError):
        any_store.get_all("admin")
    with pytest.raises(ValueError):
        any_store.get_all_filtered("username", "nope =", 1)


def test_yaml_store_persists_between_instances(tmp_path):
    path = tmp_path / "users.yml"
    s1 = YamlUserStore(path)
    s1.put("alice", User(username="alice", email="a@example.com", admin=True))

    s2 = YamlUserStore(path)
    u = s2.get("alice")
    assert u.username == "alice"
    assert u.admin is True
    assert u.version == 1
    assert "password" in path.read_text(encoding="utf-8")


def test_yaml_store_tolerates_sparse_records(tmp_path):
    path = tmp_path / "users.yml"
    path.write_text("users:\n  bob:\n    email: b@example.com\n  broken: 3\n", encoding="utf-8")
    s = YamlUserStore(path)
    u = s.get("bob")
    assert u.email == "b@example.com"
    assert u.active is True
    assert u.version == 0
    with pytest.raises(NotFoundError):
        s.get("broken")
