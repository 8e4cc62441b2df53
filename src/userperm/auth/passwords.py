# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import hashlib
import hmac
import string

import bcrypt

from userperm.errors import HashingFailure

ALGORITHMS = ("bcrypt", "sha256", "bcrypt+")
DEFAULT_ALGORITHM = "bcrypt+"
DEFAULT_BCRYPT_ROUNDS = 12

_SHA256_HEX_LEN = 64
# bcrypt only looks at the first 72 bytes; older releases truncate silently
BCRYPT_MAX_BYTES = 72


def hash_bcrypt(password: str, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise HashingFailure(f"bcrypt cannot hash passwords longer than {BCRYPT_MAX_BYTES} bytes")
    try:
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("ascii")
    except (ValueError, TypeError) as exc:
        # the message never contains the input
        raise HashingFailure(f"bcrypt could not hash the password: {exc}") from None


def correct_bcrypt(hash_value: str, password: str) -> bool:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hash_value.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def hash_sha256(secret: str, username: str, password: str) -> str:
    """Hex digest of password + secret + username (secret and username act as salt)."""
    return hashlib.sha256((password + secret + username).encode("utf-8")).hexdigest()


def correct_sha256(hash_value: str, secret: str, username: str, password: str) -> bool:
    expected = hash_sha256(secret, username, password)
    return hmac.compare_digest(expected.encode("ascii"), hash_value.encode("utf-8"))


def is_sha256(hash_value: str) -> bool:
    """Shape check only: sha256 hashes are 64 hex chars, bcrypt ones start with ``$2``."""
    return len(hash_value) == _SHA256_HEX_LEN and all(c in string.hexdigits for c in hash_value)


class CredentialHasher:
    """Hashes and verifies passwords with one of ``ALGORITHMS``.

    ``bcrypt+`` writes bcrypt but still accepts legacy sha256 hashes, so a
    deployment can migrate without invalidating stored credentials.
    """

    def __init__(
        self,
        algorithm: str = DEFAULT_ALGORITHM,
        secret: str = "",
        *,
        rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ) -> None:
        if algorithm not in ALGORITHMS:
            raise ValueError(f"{algorithm} is an unsupported password hashing algorithm")
        if algorithm == "sha256" and not secret:
            raise ValueError("sha256 password hashing needs a server secret")
        self.algorithm = algorithm
        self._secret = secret
        self._rounds = rounds

    def hash(self, username: str, password: str) -> str:
        if self.algorithm == "sha256":
            return hash_sha256(self._secret, username, password)
        return hash_bcrypt(password, rounds=self._rounds)

    def verify(self, stored_hash: str, password: str, username: str = "") -> bool:
        if not stored_hash or not isinstance(stored_hash, str) or password is None:
            return False

        if self.algorithm == "sha256":
            return correct_sha256(stored_hash, self._secret, username, password)
        if self.algorithm == "bcrypt":
            return correct_bcrypt(stored_hash, password)

        # bcrypt+
        if is_sha256(stored_hash):
            return bool(self._secret) and correct_sha256(stored_hash, self._secret, username, password)
        return correct_bcrypt(stored_hash, password)
