# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Password strength rules applied before a password is hashed and stored.

Never applied on login: a stored password that predates a stricter policy must
keep working.
"""

from __future__ import annotations

import re

from userperm.errors import PolicyViolation, ValidationFailure

DEFAULT_MIN_PASSWORD_LENGTH = 9
SPECIAL_CHARACTERS = "!#$%&*+-?@^_~"

# ASCII letters, digits, underscore and the Norwegian æøå
_USERNAME_RE = re.compile(r"[A-Za-z0-9_æøåÆØÅ]+")
_ALNUM_RE = re.compile(r"[^\W_]")


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


class PasswordPolicy:
    def __init__(self, min_length: int = DEFAULT_MIN_PASSWORD_LENGTH) -> None:
        self.min_length = min_length

    def validate(self, username: str, password: str) -> None:
        """Raise ``ValidationFailure`` for the first rule ``password`` breaks."""
        u = (username or "").lower()
        p = (password or "").lower()

        if u == p:
            raise ValidationFailure(
                PolicyViolation.SAME_AS_USERNAME,
                "Username and password must be different, try another password.",
            )

        # Fuzzy anti-reuse: near-variants of the username are rejected too
        if levenshtein(u, p) < len(p) - len(p) // 4:
            raise ValidationFailure(
                PolicyViolation.TOO_SIMILAR,
                "Password is too similar to the username.",
            )

        if len(password) < self.min_length:
            raise ValidationFailure(
                PolicyViolation.TOO_SHORT,
                f"Password is too short, use at least {self.min_length} characters.",
            )

        if not _ALNUM_RE.search(password):
            raise ValidationFailure(
                PolicyViolation.NO_ALPHANUMERIC,
                "Password must contain letters or numbers.",
            )

        if not any(c in SPECIAL_CHARACTERS for c in password):
            raise ValidationFailure(
                PolicyViolation.NO_SPECIAL_CHARACTER,
                f"Password must contain one of these characters: {' '.join(SPECIAL_CHARACTERS)}",
            )

    def validate_username(self, username: str) -> None:
        if not username or not _USERNAME_RE.fullmatch(username):
            raise ValidationFailure(
                PolicyViolation.INVALID_USERNAME,
                "Only letters, numbers and underscore are allowed in usernames.",
                field="username",
            )
