# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from fastapi import Request, Response

from userperm.auth.codes import ConfirmationCodeGenerator
from userperm.auth.passwords import CredentialHasher
from userperm.auth.policy import PasswordPolicy
from userperm.auth.session import clear_session_cookie, read_session_cookie, set_session_cookie
from userperm.config import AuthConfig
from userperm.core.models import User
from userperm.errors import NotFoundError, PolicyViolation, ValidationFailure
from userperm.infra.user_store import ProjectionQuerier, UserStore
from userperm.permissions import cookie_settings

logger = logging.getLogger(__name__)


class UserManager:
    """User lifecycle over an injected ``UserStore``, keyed by username.

    Every status setter re-reads the record, changes one field and writes it
    back with a conditional put. A concurrent writer makes the put fail with
    ``ConflictError``; nothing is retried here.
    """

    def __init__(
        self,
        store: UserStore,
        config: AuthConfig,
        *,
        hasher: Optional[CredentialHasher] = None,
        policy: Optional[PasswordPolicy] = None,
        codes: Optional[ConfirmationCodeGenerator] = None,
    ) -> None:
        self.store = store
        self.config = config
        self.hasher = hasher or CredentialHasher(
            config.password_algorithm, config.secret, rounds=config.bcrypt_rounds
        )
        self.policy = policy or PasswordPolicy(config.min_password_length)
        self.codes = codes or ConfirmationCodeGenerator(config.min_confirmation_code_length)

    def close(self) -> None:
        self.store.close()

    def _projections(self) -> ProjectionQuerier:
        if not isinstance(self.store, ProjectionQuerier):
            raise TypeError(f"{type(self.store).__name__} does not support projection queries")
        return self.store

    def _update(self, username: str, mutate: Callable[[User], None]) -> User:
        user = self.store.get(username)
        expected = user.version
        mutate(user)
        self.store.put(username, user, expected_version=expected)
        return user

    # --- lookups ---

    def has_user(self, username: str) -> bool:
        try:
            self.store.get(username)
        except NotFoundError:
            return False
        return True

    def get_user(self, username: str) -> User:
        return self.store.get(username)

    def all_usernames(self) -> List[str]:
        return self._projections().get_all("username")

    def all_unconfirmed_usernames(self) -> List[str]:
        return self._projections().get_all_filtered("username", "confirmed =", False)

    # Boolean status reads answer "no" for unknown users
    def is_confirmed(self, username: str) -> bool:
        return self._flag(username, "confirmed")

    def is_logged_in(self, username: str) -> bool:
        return self._flag(username, "loggedin")

    def is_admin(self, username: str) -> bool:
        return self._flag(username, "admin")

    def is_active(self, username: str) -> bool:
        return self._flag(username, "active")

    def _flag(self, username: str, name: str) -> bool:
        try:
            return bool(getattr(self.store.get(username), name))
        except NotFoundError:
            return False

    def email(self, username: str) -> str:
        return self.store.get(username).email

    def password_hash(self, username: str) -> str:
        return self.store.get(username).password

    def confirmation_code(self, username: str) -> str:
        return self.store.get(username).confirmation_code

    # --- lifecycle ---

    def add_user(self, username: str, password: str, email: str, *, name: str = "", photo_url: str = "") -> User:
        """Validate, hash and store a new, unconfirmed user with a fresh confirmation code."""
        for field_name, value in (("username", username), ("password", password), ("email", email)):
            if not value:
                raise ValidationFailure(
                    PolicyViolation.MISSING_FIELD,
                    f"{field_name.capitalize()} field is required",
                    field=field_name,
                )
        self.policy.validate_username(username)
        self.policy.validate(username, password)
        if self.has_user(username):
            raise ValidationFailure(
                PolicyViolation.USERNAME_TAKEN,
                "That username is already taken.",
                field="username",
            )

        user = User(
            username=username,
            email=email,
            name=name,
            photo_url=photo_url,
            password=self.hasher.hash(username, password),
            confirmation_code=self.generate_unique_confirmation_code(),
        )
        self.store.put(username, user, expected_version=0)
        logger.info("Added user %s", username)
        return user

    def remove_user(self, username: str) -> None:
        self.store.delete(username)
        logger.info("Removed user %s", username)

    def set_password(self, username: str, password: str) -> None:
        self.policy.validate(username, password)
        hashed = self.hasher.hash(username, password)
        self._update(username, lambda u: setattr(u, "password", hashed))

    def set_email(self, username: str, email: str) -> None:
        self._update(username, lambda u: setattr(u, "email", email))

    def set_confirmed(self, username: str, confirmed: bool = True) -> None:
        self._update(username, lambda u: setattr(u, "confirmed", confirmed))

    def set_admin(self, username: str, admin: bool = True) -> None:
        self._update(username, lambda u: setattr(u, "admin", admin))

    def set_logged_in(self, username: str, loggedin: bool = True) -> None:
        self._update(username, lambda u: setattr(u, "loggedin", loggedin))

    def set_active(self, username: str, active: bool = True) -> None:
        def _mutate(u: User) -> None:
            u.active = active
            if not active:
                u.loggedin = False

        self._update(username, _mutate)

    def set_confirmation_code(self, username: str, code: str) -> None:
        self._update(username, lambda u: setattr(u, "confirmation_code", code))

    # --- passwords ---

    def correct_password(self, username: str, password: str) -> bool:
        try:
            user = self.store.get(username)
        except NotFoundError:
            return False
        return self.hasher.verify(user.password, password, username)

    def authenticate(self, username: str, password: str) -> Optional[User]:
        try:
            user = self.store.get(username)
        except NotFoundError:
            return None
        if not user.active:
            return None
        if not self.hasher.verify(user.password, password, username):
            return None
        return user

    # --- confirmation ---

    def already_has_confirmation_code(self, code: str) -> bool:
        codes = self._projections().get_all_filtered("confirmation_code", "confirmed =", False)
        return code in codes

    def generate_unique_confirmation_code(self) -> str:
        return self.codes.generate(self.already_has_confirmation_code)

    def find_user_by_confirmation_code(self, code: str) -> str:
        if code:
            for username in self.all_unconfirmed_usernames():
                try:
                    if self.confirmation_code(username) == code:
                        return username
                except NotFoundError:
                    continue
        logger.warning("Confirmation attempted with an unknown code")
        raise ValidationFailure(
            PolicyViolation.INVALID_CONFIRMATION_CODE,
            "The confirmation code is no longer valid.",
            field="code",
        )

    def confirm(self, username: str) -> None:
        def _mutate(u: User) -> None:
            u.confirmed = True
            u.confirmation_code = ""

        self._update(username, _mutate)
        logger.info("Confirmed user %s", username)

    def confirm_user_by_confirmation_code(self, code: str) -> str:
        username = self.find_user_by_confirmation_code(code)
        self.confirm(username)
        return username

    # --- sessions ---

    def set_username_cookie(self, response: Response, username: str) -> str:
        if not username:
            raise ValueError("Can't set cookie for empty username")
        if not self.has_user(username):
            raise NotFoundError(username)
        return set_session_cookie(
            response,
            username,
            self.config.secret,
            self.config.cookie_ttl_seconds,
            **cookie_settings(self.config.cookie_secure),
        )

    def login(self, response: Response, username: str) -> None:
        self.set_logged_in(username, True)
        self.set_username_cookie(response, username)
        logger.info("User %s logged in", username)

    def logout(self, username: str) -> None:
        self.set_logged_in(username, False)
        logger.info("User %s logged out", username)

    def clear_cookie(self, response: Response) -> None:
        clear_session_cookie(response)

    def username(self, request: Request) -> str:
        return read_session_cookie(request, self.config.secret) or ""

    def user_rights(self, request: Request) -> bool:
        username = self.username(request)
        return bool(username) and self.is_logged_in(username)

    def admin_rights(self, request: Request) -> bool:
        username = self.username(request)
        return bool(username) and self.is_logged_in(username) and self.is_admin(username)
