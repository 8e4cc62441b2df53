# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Demo application wiring the permission middleware to a few plain-text routes.

Try: /register, /confirm, /login, /logout, /admin/makeadmin, /clear, /data and /admin
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import PlainTextResponse

from userperm.auth.users import UserManager
from userperm.config import AuthConfig
from userperm.errors import (
    ConflictError,
    ExhaustedAttempts,
    HashingFailure,
    NotFoundError,
    ValidationFailure,
)
from userperm.infra.user_store import MemoryUserStore, UserStore, YamlUserStore
from userperm.permissions import (
    CurrentUser,
    PermissionClassifier,
    current_user_optional,
    permission_middleware,
    require_admin,
    require_user,
)

logger = logging.getLogger(__name__)


def _validation_failure_handler(_request: Request, exc: ValidationFailure) -> PlainTextResponse:
    return PlainTextResponse(f"{exc.field}: {exc.message}", status_code=400)


def _not_found_handler(_request: Request, exc: NotFoundError) -> PlainTextResponse:
    return PlainTextResponse("No such user", status_code=404)


def _conflict_handler(_request: Request, exc: ConflictError) -> PlainTextResponse:
    logger.warning("Concurrent update rejected: %s", exc)
    return PlainTextResponse("The user was changed concurrently, try again", status_code=409)


def _server_error_handler(_request: Request, exc: Exception) -> PlainTextResponse:
    logger.error("Auth failure: %s", type(exc).__name__)
    return PlainTextResponse("Internal server error", status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationFailure, _validation_failure_handler)  # type: ignore[arg-type]
    app.add_exception_handler(NotFoundError, _not_found_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ConflictError, _conflict_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ExhaustedAttempts, _server_error_handler)
    app.add_exception_handler(HashingFailure, _server_error_handler)


def _default_store(config: AuthConfig) -> UserStore:
    if config.users_path:
        return YamlUserStore(config.users_path)
    return MemoryUserStore()


def create_app(config: Optional[AuthConfig] = None, store: Optional[UserStore] = None) -> FastAPI:
    config = config or AuthConfig.from_env()
    store = store or _default_store(config)
    store.open()

    users = UserManager(store, config)
    classifier = PermissionClassifier(config.permissions)

    app = FastAPI()
    app.state.users = users
    app.middleware("http")(permission_middleware(classifier))
    register_exception_handlers(app)

    @app.get("/", response_class=PlainTextResponse)
    def index(request: Request):
        u: Optional[CurrentUser] = current_user_optional(request)
        lines = [
            f"Username stored in cookies (or blank): {u.username if u else ''}",
            f"Logged in on server: {bool(u and u.logged_in)}",
            f"Current user is logged in, has a valid cookie and *admin rights*: {bool(u and u.logged_in and u.admin)}",
            "",
            "Try: /register, /confirm, /admin/remove, /login, /logout, /admin/makeadmin, /clear, /data and /admin",
        ]
        return "\n".join(lines)

    @app.post("/register", response_class=PlainTextResponse)
    def register(username: str = Form(...), password: str = Form(...), email: str = Form(...)):
        user = users.add_user(username, password, email)
        # A real deployment e-mails the code instead of returning it
        return f"User {user.username} was created, confirmation code: {user.confirmation_code}"

    @app.get("/confirm", response_class=PlainTextResponse)
    def confirm(code: str = ""):
        username = users.confirm_user_by_confirmation_code(code)
        return f"User {username} was confirmed"

    @app.post("/login", response_class=PlainTextResponse)
    def login(username: str = Form(...), password: str = Form(...)):
        u = users.authenticate(username, password)
        if not u:
            return PlainTextResponse("Invalid credentials", status_code=401)
        resp = PlainTextResponse(f"{u.username} is now logged in")
        users.login(resp, u.username)
        return resp

    @app.post("/logout", response_class=PlainTextResponse)
    def logout(request: Request):
        resp = PlainTextResponse("Logged out")
        username = users.username(request)
        if username and users.has_user(username):
            users.logout(username)
        users.clear_cookie(resp)
        return resp

    @app.post("/admin/makeadmin", response_class=PlainTextResponse)
    def makeadmin(username: str = Form(...), _admin: CurrentUser = Depends(require_admin)):
        users.set_admin(username, True)
        return f"{username} is now administrator"

    @app.post("/admin/remove", response_class=PlainTextResponse)
    def remove(username: str = Form(...), _admin: CurrentUser = Depends(require_admin)):
        # deactivate rather than delete, so the account can be restored
        users.set_active(username, False)
        return f"User {username} is active: {users.is_active(username)}"

    @app.post("/clear", response_class=PlainTextResponse)
    def clear():
        resp = PlainTextResponse("Cleared cookie")
        users.clear_cookie(resp)
        return resp

    @app.get("/data", response_class=PlainTextResponse)
    def data(u: CurrentUser = Depends(require_user)):
        return "user page that only logged in users must see!"

    @app.get("/admin", response_class=PlainTextResponse)
    def admin(_admin: CurrentUser = Depends(require_admin)):
        return "list of all users: " + ", ".join(sorted(users.all_usernames()))

    return app
