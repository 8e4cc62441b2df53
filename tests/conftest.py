import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

import pytest
from fastapi.testclient import TestClient

from userperm.app import create_app
from userperm.auth.users import UserManager
from userperm.config import AuthConfig
from userperm.infra.user_store import MemoryUserStore

SECRET = "k3Yx9bQe2LmT7vRw4NpZ8sHd1GfJcA"
GOOD_PASSWORD = "Longenough1!"


@pytest.fixture()
def config() -> AuthConfig:
    # bcrypt's minimum cost keeps the suite fast
    return AuthConfig(secret=SECRET, bcrypt_rounds=4)


@pytest.fixture()
def store() -> MemoryUserStore:
    return MemoryUserStore()


@pytest.fixture()
def users(store, config) -> UserManager:
    return UserManager(store, config)


@pytest.fixture()
def client(store, config) -> TestClient:
    return TestClient(create_app(config, store))
