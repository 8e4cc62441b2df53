# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error kinds raised by the auth core.

Token errors extend the itsdangerous hierarchy so callers can treat every
decoding problem as ``BadData`` ("unauthenticated") without distinguishing
the cause to the end user.
"""

from __future__ import annotations

from enum import Enum

from itsdangerous import BadPayload, BadSignature, SignatureExpired


class UserpermError(Exception):
    """Base class for non-token errors of this package."""


class PolicyViolation(str, Enum):
    SAME_AS_USERNAME = "same_as_username"
    TOO_SIMILAR = "too_similar"
    TOO_SHORT = "too_short"
    NO_ALPHANUMERIC = "no_alphanumeric"
    NO_SPECIAL_CHARACTER = "no_special_character"
    INVALID_USERNAME = "invalid_username"
    MISSING_FIELD = "missing_field"
    USERNAME_TAKEN = "username_taken"
    INVALID_CONFIRMATION_CODE = "invalid_confirmation_code"


class ValidationFailure(UserpermError, ValueError):
    def __init__(self, kind: PolicyViolation, message: str, *, field: str = "password") -> None:
        super().__init__(message)
        self.kind = kind
        self.field = field
        self.message = message


class HashingFailure(UserpermError):
    """The password hashing primitive failed; the plaintext is never attached."""


class NotFoundError(UserpermError, LookupError):
    def __init__(self, key: str) -> None:
        super().__init__(f"No such user: {key}")
        self.key = key


class ConflictError(UserpermError):
    """A conditional put found a different record version than expected."""

    def __init__(self, key: str, expected: int, actual: int) -> None:
        super().__init__(f"Version conflict for {key}: expected {expected}, found {actual}")
        self.key = key
        self.expected = expected
        self.actual = actual


class ExhaustedAttempts(UserpermError):
    pass


# --- Session token errors ---


class InvalidTokenFormat(BadSignature):
    pass


class SignatureMismatch(BadSignature):
    pass


class TokenExpired(SignatureExpired):
    pass


class PayloadDecodeError(BadPayload):
    pass
