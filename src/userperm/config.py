# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Runtime configuration.

Built once at startup (usually with ``AuthConfig.from_env()``) and treated as
immutable afterwards. Rotating the secret means building a new config with
``with_secret`` and swapping it in; that invalidates every issued session token.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple

from userperm.auth.codes import DEFAULT_MIN_CODE_LENGTH, random_readable
from userperm.auth.passwords import ALGORITHMS, DEFAULT_ALGORITHM, DEFAULT_BCRYPT_ROUNDS
from userperm.auth.policy import DEFAULT_MIN_PASSWORD_LENGTH
from userperm.permissions import DEFAULT_PERMISSIONS, PermissionTable

logger = logging.getLogger(__name__)

SECRET_LENGTH = 30
DEFAULT_COOKIE_TTL = 3600 * 24  # login cookies last 24 hours


def generate_secret() -> str:
    return random_readable(SECRET_LENGTH)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y"}


def _env_paths(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(p.strip() for p in raw.split(",") if p.strip())


@dataclass(frozen=True)
class AuthConfig:
    secret: str = field(default_factory=generate_secret, repr=False)
    password_algorithm: str = DEFAULT_ALGORITHM
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS
    cookie_ttl_seconds: int = DEFAULT_COOKIE_TTL
    cookie_secure: bool = False
    min_confirmation_code_length: int = DEFAULT_MIN_CODE_LENGTH
    min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH
    permissions: PermissionTable = DEFAULT_PERMISSIONS
    users_path: Optional[Path] = None

    def __post_init__(self) -> None:
        if not self.secret:
            raise ValueError("The server secret can not be empty")
        if self.password_algorithm not in ALGORITHMS:
            raise ValueError(f"{self.password_algorithm} is an unsupported password hashing algorithm")
        if self.cookie_ttl_seconds < 0:
            raise ValueError("Cookie TTL must be 0 (forever) or a positive number of seconds")
        if self.min_confirmation_code_length < 1:
            raise ValueError("Minimum confirmation code length must be at least 1")

    def with_secret(self, secret: str) -> "AuthConfig":
        return replace(self, secret=secret)

    @classmethod
    def from_env(cls) -> "AuthConfig":
        secret = os.getenv("USERPERM_SECRET_KEY", "")
        if not secret:
            secret = generate_secret()
            logger.warning(
                "USERPERM_SECRET_KEY is not set; generated a process-local secret. "
                "Sessions will not survive a restart."
            )

        d = DEFAULT_PERMISSIONS
        permissions = PermissionTable(
            admin=_env_paths("USERPERM_ADMIN_PATHS", d.admin),
            user=_env_paths("USERPERM_USER_PATHS", d.user),
            public=_env_paths("USERPERM_PUBLIC_PATHS", d.public),
            root_is_public=_env_bool("USERPERM_ROOT_IS_PUBLIC", d.root_is_public),
        )

        users_path = os.getenv("USERPERM_USERS_PATH", "").strip()
        return cls(
            secret=secret,
            password_algorithm=os.getenv("USERPERM_PASSWORD_ALGO", DEFAULT_ALGORITHM).strip(),
            bcrypt_rounds=int(os.getenv("USERPERM_BCRYPT_ROUNDS", str(DEFAULT_BCRYPT_ROUNDS))),
            cookie_ttl_seconds=int(os.getenv("USERPERM_COOKIE_TTL", str(DEFAULT_COOKIE_TTL))),
            cookie_secure=_env_bool("USERPERM_COOKIE_SECURE", False),
            min_confirmation_code_length=int(
                os.getenv("USERPERM_CONFIRMATION_CODE_LENGTH", str(DEFAULT_MIN_CODE_LENGTH))
            ),
            min_password_length=int(
                os.getenv("USERPERM_MIN_PASSWORD_LENGTH", str(DEFAULT_MIN_PASSWORD_LENGTH))
            ),
            permissions=permissions,
            users_path=Path(users_path).resolve() if users_path else None,
        )
