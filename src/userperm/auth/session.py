# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request, Response
from itsdangerous import BadData
from itsdangerous.signer import HMACAlgorithm

from userperm.errors import InvalidTokenFormat, PayloadDecodeError, SignatureMismatch, TokenExpired

logger = logging.getLogger(__name__)

COOKIE_NAME = "user"
DELIMITER = "|"
FRESHNESS_WINDOW_SECONDS = 31 * 86400
FAR_FUTURE_TIMESTAMP = 2**31 - 1  # ttl 0 means "forever" (2038)
CLEARED_VALUE = "deleted"

_HMAC = HMACAlgorithm(hashlib.sha1)


def _signature(secret: str, encoded_payload: str, timestamp: str) -> str:
    msg = (encoded_payload + timestamp).encode("ascii")
    return _HMAC.get_signature(secret.encode("utf-8"), msg).hex()


@dataclass(frozen=True)
class SessionToken:
    """Signed identity claim: ``base64(payload)|unix timestamp|hex(hmac)``."""

    encoded_payload: str
    timestamp: str
    signature: str

    @classmethod
    def issue(cls, payload: str, secret: str, *, now: Optional[float] = None) -> "SessionToken":
        if not secret:
            raise ValueError("Session secret not valid")
        encoded = base64.b64encode(payload.encode("utf-8")).decode("ascii")
        ts = str(int(time.time() if now is None else now))
        return cls(encoded, ts, _signature(secret, encoded, ts))

    @classmethod
    def parse(cls, token: str) -> "SessionToken":
        parts = (token or "").split(DELIMITER)
        if len(parts) != 3:
            raise InvalidTokenFormat("Session token must have exactly 3 parts")
        return cls(*parts)

    def __str__(self) -> str:
        return DELIMITER.join((self.encoded_payload, self.timestamp, self.signature))

    def verify(self, secret: str, *, now: Optional[float] = None) -> str:
        """Check signature and freshness, then return the decoded payload."""
        try:
            expected = _signature(secret, self.encoded_payload, self.timestamp)
        except UnicodeEncodeError:
            raise SignatureMismatch("Session token signature does not match") from None
        if not hmac.compare_digest(expected.encode("ascii"), self.signature.encode("utf-8")):
            raise SignatureMismatch("Session token signature does not match")

        try:
            issued = int(self.timestamp)
        except ValueError:
            raise InvalidTokenFormat("Session token timestamp is not an integer") from None

        current = time.time() if now is None else now
        if current - issued > FRESHNESS_WINDOW_SECONDS:
            raise TokenExpired(
                "Session token is older than the freshness window",
                date_signed=datetime.fromtimestamp(issued, tz=timezone.utc),
            )

        try:
            return base64.b64decode(self.encoded_payload, validate=True).decode("utf-8")
        except ValueError as exc:
            raise PayloadDecodeError("Session token payload is not valid base64", original_error=exc) from None


def encode(payload: str, secret: str, *, now: Optional[float] = None) -> str:
    return str(SessionToken.issue(payload, secret, now=now))


def decode(token: str, secret: str, *, now: Optional[float] = None) -> str:
    return SessionToken.parse(token).verify(secret, now=now)


def cookie_expires(ttl_seconds: int, *, now: Optional[float] = None) -> datetime:
    if ttl_seconds == 0:
        return datetime.fromtimestamp(FAR_FUTURE_TIMESTAMP, tz=timezone.utc)
    current = int(time.time() if now is None else now)
    return datetime.fromtimestamp(current + ttl_seconds, tz=timezone.utc)


def set_session_cookie(
    response: Response,
    payload: str,
    secret: str,
    ttl_seconds: int,
    *,
    path: str = "/",
    **cookie_kwargs,
) -> str:
    token = encode(payload, secret)
    response.set_cookie(
        COOKIE_NAME,
        token,
        expires=cookie_expires(ttl_seconds),
        path=path,
        **cookie_kwargs,
    )
    return token


def clear_session_cookie(response: Response, *, path: str = "/") -> None:
    # Browsers *may* be configured to keep the cookie anyway
    response.set_cookie(
        COOKIE_NAME,
        CLEARED_VALUE,
        expires=datetime(1970, 1, 1, tzinfo=timezone.utc),
        path=path,
    )


def read_session_cookie(request: Request, secret: str) -> Optional[str]:
    token = request.cookies.get(COOKIE_NAME, "")
    if not token:
        return None
    try:
        payload = decode(token, secret)
    except BadData as exc:
        logger.debug("Rejected session cookie: %s", type(exc).__name__)
        return None
    return payload or None
