import logging
from pathlib import Path

import pytest

from userperm.auth.session import decode, encode
from userperm.config import SECRET_LENGTH, AuthConfig
from userperm.errors import SignatureMismatch
from userperm.permissions import DEFAULT_PERMISSIONS

ENV_VARS = [
    "USERPERM_SECRET_KEY",
    "USERPERM_PASSWORD_ALGO",
    "USERPERM_BCRYPT_ROUNDS",
    "USERPERM_COOKIE_TTL",
    "USERPERM_COOKIE_SECURE",
    "USERPERM_CONFIRMATION_CODE_LENGTH",
    "USERPERM_MIN_PASSWORD_LENGTH",
    "USERPERM_ADMIN_PATHS",
    "USERPERM_USER_PATHS",
    "USERPERM_PUBLIC_PATHS",
    "USERPERM_ROOT_IS_PUBLIC",
    "USERPERM_USERS_PATH",
]


@pytest.fixture()
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_generate_a_secret(clean_env, caplog):
    with caplog.at_level(logging.WARNING, logger="userperm.config"):
        cfg = AuthConfig.from_env()
    assert len(cfg.secret) == SECRET_LENGTH
    assert cfg.secret.isalnum()
    assert cfg.password_algorithm == "bcrypt+"
    assert cfg.cookie_ttl_seconds == 86400
    assert cfg.min_confirmation_code_length == 20
    assert cfg.permissions == DEFAULT_PERMISSIONS
    assert cfg.users_path is None
    assert "USERPERM_SECRET_KEY" in caplog.text
    assert cfg.secret not in caplog.text


def test_from_env(clean_env, tmp_path):
    clean_env.setenv("USERPERM_SECRET_KEY", "fixed-secret")
    clean_env.setenv("USERPERM_PASSWORD_ALGO", "sha256")
    clean_env.setenv("USERPERM_COOKIE_TTL", "0")
    clean_env.setenv("USERPERM_CONFIRMATION_CODE_LENGTH", "32")
    clean_env.setenv("USERPERM_ADMIN_PATHS", "/admin, /ops")
    clean_env.setenv("USERPERM_PUBLIC_PATHS", "")
    clean_env.setenv("USERPERM_ROOT_IS_PUBLIC", "false")
    clean_env.setenv("USERPERM_USERS_PATH", str(tmp_path / "users.yml"))

    cfg = AuthConfig.from_env()
    assert cfg.secret == "fixed-secret"
    assert cfg.password_algorithm == "sha256"
    assert cfg.cookie_ttl_seconds == 0
    assert cfg.min_confirmation_code_length == 32
    assert cfg.permissions.admin == ("/admin", "/ops")
    assert cfg.permissions.user == DEFAULT_PERMISSIONS.user
    assert cfg.permissions.public == ()
    assert cfg.permissions.root_is_public is False
    assert cfg.users_path == Path(tmp_path / "users.yml").resolve()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"password_algorithm": "md5"},
        {"secret": ""},
        {"cookie_ttl_seconds": -1},
        {"min_confirmation_code_length": 0},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        AuthConfig(**kwargs)


def test_config_is_immutable():
    cfg = AuthConfig(secret="one")
    with pytest.raises(AttributeError):
        cfg.secret = "two"


def test_rotating_the_secret_invalidates_tokens():
    old = AuthConfig(secret="one")
    new = old.with_secret("two")
    assert old.secret == "one"
    token = encode("alice", old.secret)
    assert decode(token, old.secret) == "alice"
    with pytest.raises(SignatureMismatch):
        decode(token, new.secret)
