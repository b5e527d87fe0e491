#!/usr/bin/env python3
"""
AccessDesk admin CLI -- account bootstrap tasks that must not go through HTTP.

Self-registration always creates role=user accounts, so the first admin has
to be created here.

Usage:
  python main.py create-admin --name "Ada Admin" --email ada@example.com
  python main.py create-admin --name "Ada Admin" --email ada@example.com --password-stdin < pw.txt
  python main.py set-role ada@example.com admin
  python main.py set-role bob@example.com user

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the account database (default sqlite:///accessdesk.db)
  BCRYPT_ROUNDS  bcrypt cost factor used for the new password hash
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from auth.models import Account, Role
from auth.passwords import PasswordHasher
from auth.store import AccountStore
from core.config import get_settings

_MIN_PASSWORD_LENGTH = 6


def _read_password(from_stdin: bool) -> str:
    """Read the new password without echoing it.

    --password-stdin reads a single line so the CLI can be scripted; otherwise
    prompt twice and require both entries to match.
    """
    if from_stdin:
        return sys.stdin.readline().rstrip("\n")
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return first


def create_admin(store: AccountStore, hasher: PasswordHasher, name: str, email: str, password: str) -> int:
    """Insert an admin account. Returns the new account id.

    Raises ValueError if the email is already used by a live account or the
    password is too short.
    """
    if len(password) < _MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters long.")
    if store.get_by_email(email) is not None:
        raise ValueError(f"An account with email {email!r} already exists. Use set-role instead.")
    try:
        return store.create_account(
            Account(name=name, email=email, password_hash=hasher.hash(password), role=Role.ADMIN)
        )
    except IntegrityError as exc:
        raise ValueError(f"An account with email {email!r} already exists.") from exc


def set_role(store: AccountStore, email: str, role: Role) -> None:
    """Change the role of a live account. Raises ValueError if not found.

    The change reaches the account's tokens at its next login or refresh;
    access tokens already issued keep the old role until they expire.
    """
    account = store.get_by_email(email)
    if account is None:
        raise ValueError(f"No account with email {email!r}.")
    store.update_account(account.id, role=role)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="accessdesk",
        description="AccessDesk account administration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_admin = sub.add_parser("create-admin", help="Create an account with role=admin")
    p_admin.add_argument("--name", required=True, help="Display name")
    p_admin.add_argument("--email", required=True, help="Login email")
    p_admin.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin instead of prompting",
    )

    p_role = sub.add_parser("set-role", help="Change an existing account's role")
    p_role.add_argument("email", help="Login email of the account")
    p_role.add_argument("role", choices=[r.value for r in Role], help="New role")

    args = parser.parse_args()

    settings = get_settings()
    store = AccountStore(settings.database_url)
    try:
        if args.command == "create-admin":
            password = _read_password(args.password_stdin)
            account_id = create_admin(
                store,
                PasswordHasher(rounds=settings.bcrypt_rounds),
                args.name.strip(),
                args.email.strip(),
                password,
            )
            print(f"  Created admin account {args.email} (id={account_id}).")
        elif args.command == "set-role":
            set_role(store, args.email.strip(), Role(args.role))
            print(f"  {args.email} is now {args.role}.")
    except ValueError as e:
        print(f"  [!] {e}")
        sys.exit(1)
    finally:
        store.close()


if __name__ == "__main__":
    main()
