# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass
class User:
    """A user record as kept by a ``UserStore``.

    ``password`` always holds a hash once the record has been stored.
    ``version`` is bumped by the store on every write and is what conditional
    puts compare against.
    """

    username: str
    email: str = ""
    name: str = ""
    password: str = ""
    photo_url: str = ""
    confirmation_code: str = ""
    confirmed: bool = False
    admin: bool = False
    loggedin: bool = False
    active: bool = True
    version: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


STRING_FIELDS = ("username", "email", "name", "password", "photo_url", "confirmation_code")
BOOL_FIELDS = ("confirmed", "admin", "loggedin", "active")
