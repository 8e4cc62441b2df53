# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication helpers.

This package provides:
- Password hashing/verification (bcrypt, legacy sha256, bcrypt+ migration)
- Password strength policy
- Signed, expiring session tokens carried in the ``user`` cookie
- Confirmation code generation
- The UserManager tying them to a user store
"""
