# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""User storage: the interface the auth core calls plus two adapters.

Stores bump ``User.version`` on every write. ``put(..., expected_version=n)``
is a conditional write that fails with ``ConflictError`` when somebody else
wrote the record in between, so get/mutate/put sequences cannot silently lose
updates.
"""

from __future__ import annotations

import os
import tempfile
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

import yaml

from userperm.core.models import BOOL_FIELDS, STRING_FIELDS, User
from userperm.errors import ConflictError, NotFoundError


@runtime_checkable
class UserStore(Protocol):
    def open(self) -> None: ...

    def get(self, key: str) -> User: ...

    def put(self, key: str, user: User, expected_version: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def close(self) -> None: ...


@runtime_checkable
class ProjectionQuerier(Protocol):
    """Optional store capability used for listings and code uniqueness scans."""

    def get_all(self, field: str) -> List[str]: ...

    def get_all_filtered(self, field: str, filter_expr: str, filter_value: Any) -> List[str]: ...


def _filter_field(filter_expr: str) -> str:
    """Accept ``"confirmed"`` as well as datastore-style ``"confirmed ="``."""
    name = str(filter_expr or "").strip()
    if name.endswith("="):
        name = name[:-1].strip()
    return name.lower()


def _matches(value: Any, wanted: Any) -> bool:
    if isinstance(value, bool) and isinstance(wanted, str):
        return value == (wanted.strip().lower() in {"1", "true", "yes", "y"})
    return value == wanted


def _project(users: List[User], field: str, filter_expr: str = "", filter_value: Any = None) -> List[str]:
    if field not in STRING_FIELDS:
        raise ValueError(f"Only string fields can be projected, got '{field}'")
    fname = _filter_field(filter_expr) if filter_expr else ""
    if fname and fname not in STRING_FIELDS + BOOL_FIELDS:
        raise ValueError(f"Unknown filter field '{fname}'")

    out: List[str] = []
    for u in users:
        if fname and not _matches(getattr(u, fname), filter_value):
            continue
        out.append(getattr(u, field))
    return out


def _check_version(key: str, current: Optional[User], expected_version: Optional[int]) -> int:
    actual = current.version if current else 0
    if expected_version is not None and expected_version != actual:
        raise ConflictError(key, expected_version, actual)
    return actual


class MemoryUserStore:
    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._lock = threading.Lock()

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def get(self, key: str) -> User:
        with self._lock:
            user = self._users.get(key)
            if user is None:
                raise NotFoundError(key)
            return replace(user)

    def put(self, key: str, user: User, expected_version: Optional[int] = None) -> None:
        with self._lock:
            actual = _check_version(key, self._users.get(key), expected_version)
            stored = replace(user, version=actual + 1)
            self._users[key] = stored
            user.version = stored.version

    def delete(self, key: str) -> None:
        with self._lock:
            if self._users.pop(key, None) is None:
                raise NotFoundError(key)

    def get_all(self, field: str) -> List[str]:
        with self._lock:
            return _project(list(self._users.values()), field)

    def get_all_filtered(self, field: str, filter_expr: str, filter_value: Any) -> List[str]:
        with self._lock:
            return _project(list(self._users.values()), field, filter_expr, filter_value)


def _user_from_yaml(username: str, udata: Dict[str, Any]) -> User:
    values: Dict[str, Any] = {"username": username}
    for f in STRING_FIELDS:
        if f != "username" and f in udata:
            values[f] = str(udata.get(f) or "").strip()
    for f in BOOL_FIELDS:
        if f in udata:
            values[f] = bool(udata.get(f))
    values["version"] = int(udata.get("version") or 0)
    return User(**values)


class YamlUserStore:
    """Users kept in a YAML document (``users: {username: {...}}``).

    The file is rewritten atomically on every put/delete and re-read whenever
    its mtime changes, so several processes can share it (last writer wins at
    the file level; conditional puts still detect stale records).
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._cache: Tuple[float, Dict[str, User]] = (0.0, {})

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def close(self) -> None:
        self._cache = (0.0, {})

    def _load(self) -> Dict[str, User]:
        if not self.path.exists():
            return {}
        mtime = self.path.stat().st_mtime
        cached_mtime, cached_users = self._cache
        if mtime == cached_mtime and cached_users:
            return dict(cached_users)

        raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        users = (raw.get("users") or {}) if isinstance(raw, dict) else {}
        out: Dict[str, User] = {}
        for uname, udata in users.items():
            if not isinstance(udata, dict):
                continue
            username = str(uname).strip()
            if not username:
                continue
            out[username] = _user_from_yaml(username, udata)
        self._cache = (mtime, out)
        return dict(out)

    def _save(self, users: Dict[str, User]) -> None:
        doc = {"version": 1, "users": {}}
        for key, u in users.items():
            data = u.to_dict()
            data.pop("username")
            doc["users"][key] = data

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=".users-", suffix=".yml")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                yaml.safe_dump(doc, fh, sort_keys=False, allow_unicode=True)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        self._cache = (self.path.stat().st_mtime, dict(users))

    def get(self, key: str) -> User:
        with self._lock:
            user = self._load().get(key)
        if user is None:
            raise NotFoundError(key)
        return replace(user)

    def put(self, key: str, user: User, expected_version: Optional[int] = None) -> None:
        with self._lock:
            users = self._load()
            actual = _check_version(key, users.get(key), expected_version)
            users[key] = replace(user, username=key, version=actual + 1)
            self._save(users)
            user.version = actual + 1

    def delete(self, key: str) -> None:
        with self._lock:
            users = self._load()
            if users.pop(key, None) is None:
                raise NotFoundError(key)
            self._save(users)

    def get_all(self, field: str) -> List[str]:
        with self._lock:
            return _project(list(self._load().values()), field)

    def get_all_filtered(self, field: str, filter_expr: str, filter_value: Any) -> List[str]:
        with self._lock:
            return _project(list(self._load().values()), field, filter_expr, filter_value)
