#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from userperm.auth.users import UserManager
from userperm.config import AuthConfig
from userperm.errors import ValidationFailure
from userperm.infra.user_store import YamlUserStore


def main() -> None:
    config = AuthConfig.from_env()
    if not config.users_path:
        raise SystemExit("Set USERPERM_USERS_PATH to the users.yml to write")

    store = YamlUserStore(config.users_path)
    store.open()
    users = UserManager(store, config)

    username = input("Username: ").strip()
    email = input("Email: ").strip()
    admin = input("Admin? [y/N]: ").strip().lower() == "y"

    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    try:
        users.add_user(username, pw1, email)
    except ValidationFailure as exc:
        raise SystemExit(f"{exc.field}: {exc.message}")

    # Accounts created by an operator skip the e-mail confirmation step
    users.confirm(username)
    if admin:
        users.set_admin(username, True)

    users.close()
    print(f"OK -> {config.users_path}")


if __name__ == "__main__":
    main()
