# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import secrets
import string
from typing import Callable

from userperm.errors import ExhaustedAttempts

READABLE_ALPHABET = string.ascii_letters + string.digits

DEFAULT_MIN_CODE_LENGTH = 20
MAX_CODE_LENGTH = 100


def random_readable(length: int) -> str:
    """Random cookie/URL friendly string of ``length`` letters and digits."""
    return "".join(secrets.choice(READABLE_ALPHABET) for _ in range(length))


class ConfirmationCodeGenerator:
    """Mints confirmation codes that are unique among unconfirmed users.

    Each collision reported by ``is_in_use`` grows the code by one character.
    Past ``MAX_CODE_LENGTH`` the oracle is assumed broken and generation stops.
    """

    def __init__(self, min_length: int = DEFAULT_MIN_CODE_LENGTH) -> None:
        if min_length < 1:
            raise ValueError("min_length must be at least 1")
        self.min_length = min_length

    def generate(self, is_in_use: Callable[[str], bool]) -> str:
        length = self.min_length
        code = random_readable(length)
        while is_in_use(code):
            length += 1
            if length > MAX_CODE_LENGTH:
                raise ExhaustedAttempts(
                    f"No unused confirmation code found up to length {MAX_CODE_LENGTH}"
                )
            code = random_readable(length)
        return code
