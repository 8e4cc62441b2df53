# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Path-prefix permissions: admin / user / public tiers.

Matching is plain string-prefix, not path-segment aware: ``/admin2`` and
``/administrator`` both match the ``/admin`` prefix. Configure prefixes with
a trailing slash where that matters.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable, Optional, Tuple

from fastapi import HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from userperm.auth.session import read_session_cookie
from userperm.errors import NotFoundError

if TYPE_CHECKING:
    from userperm.auth.users import UserManager


class PathTier(str, Enum):
    ADMIN = "admin"
    USER = "user"
    PUBLIC = "public"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class PermissionTable:
    admin: Tuple[str, ...] = ()
    user: Tuple[str, ...] = ()
    public: Tuple[str, ...] = ()
    root_is_public: bool = True

    def prefixes(self, tier: PathTier) -> Tuple[str, ...]:
        return getattr(self, PathTier(tier).value)

    def add_path(self, tier: PathTier, prefix: str) -> "PermissionTable":
        return self.set_paths(tier, self.prefixes(tier) + (prefix,))

    def set_paths(self, tier: PathTier, prefixes: Iterable[str]) -> "PermissionTable":
        return replace(self, **{PathTier(tier).value: tuple(prefixes)})

    def reset(self) -> "PermissionTable":
        """Drop every admin and user prefix; public prefixes are kept."""
        return replace(self, admin=(), user=())


DEFAULT_PERMISSIONS = PermissionTable(
    admin=("/admin",),
    user=("/profiles", "/data"),
    public=(
        "/login",
        "/register",
        "/confirm",
        "/logout",
        "/clear",
        "/favicon.ico",
        "/style",
        "/img",
        "/js",
        "/robots.txt",
        "/sitemap_index.xml",
    ),
    root_is_public=True,
)


def _matches(path: str, prefixes: Tuple[str, ...]) -> bool:
    return any(path.startswith(p) for p in prefixes)


class PermissionClassifier:
    def __init__(self, table: PermissionTable = DEFAULT_PERMISSIONS) -> None:
        self.table = table

    def decide(self, path: str, is_logged_in: bool, is_admin: bool) -> Decision:
        t = self.table
        if t.root_is_public and path == "/":
            return Decision.ALLOW
        # Admin prefixes win even when a user or public prefix also matches
        if _matches(path, t.admin):
            return Decision.ALLOW if (is_logged_in and is_admin) else Decision.DENY
        if _matches(path, t.user):
            return Decision.ALLOW if is_logged_in else Decision.DENY
        if _matches(path, t.public):
            return Decision.ALLOW
        return Decision.DENY

    def rejected(self, path: str, is_logged_in: bool, is_admin: bool) -> bool:
        return self.decide(path, is_logged_in, is_admin) is Decision.DENY


# --- FastAPI integration ---


@dataclass(frozen=True)
class CurrentUser:
    username: str
    logged_in: bool
    admin: bool


DenyHandler = Callable[[Request], Response]


def default_denied(request: Request) -> Response:
    return PlainTextResponse("Permission denied.", status_code=403)


def _manager(request: Request) -> "UserManager":
    return request.app.state.users


def load_user_from_request(request: Request) -> Optional[CurrentUser]:
    manager = _manager(request)
    username = read_session_cookie(request, manager.config.secret)
    if not username:
        return None
    try:
        u = manager.get_user(username)
    except NotFoundError:
        return None
    if not u.active:
        return None
    return CurrentUser(username=u.username, logged_in=u.loggedin, admin=u.admin)


def current_user_optional(request: Request) -> Optional[CurrentUser]:
    u = getattr(request.state, "user", None)
    if u is not None:
        return u
    return load_user_from_request(request)


def require_user(request: Request) -> CurrentUser:
    u = current_user_optional(request)
    if u and u.logged_in:
        return u
    raise HTTPException(status_code=401, detail="Not logged in")


def require_admin(request: Request) -> CurrentUser:
    u = require_user(request)
    if not u.admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return u


def permission_middleware(
    classifier: PermissionClassifier,
    denied: DenyHandler = default_denied,
) -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    """Build an ``@app.middleware("http")`` function enforcing ``classifier``."""

    async def _middleware(request: Request, call_next):
        # the store lookup may hit the disk
        u = await run_in_threadpool(load_user_from_request, request)
        request.state.user = u
        logged_in = bool(u and u.logged_in)
        if classifier.rejected(request.url.path, logged_in, bool(u and u.admin)):
            return denied(request)
        return await call_next(request)

    return _middleware


def cookie_settings(secure: bool = False) -> dict:
    return {"httponly": True, "samesite": "lax", "secure": secure}
