#!/usr/bin/env python3
"""
Folio -- operator commands for the portfolio admin API.

Usage:
  python main.py setup-admin --username alice --email alice@example.com
  python main.py setup-admin --username alice --email alice@example.com --password 's3cret!'
  python main.py sweep-uploads

setup-admin creates the account, or resets the password (and reactivates
the account) when the email already exists. Without --password the
password is prompted for twice.

sweep-uploads deletes stored images that no project references, e.g. after
a crash between an upload and its database write.

Environment variables are read through core.config (SECRET_KEY, DATABASE_URL,
UPLOAD_DIR, ...). Set DEBUG=true to run without a SECRET_KEY locally.
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.credentials import CredentialStore, hash_password
from auth.models import Admin
from auth.store import AdminStore
from core.config import get_settings
from core.errors import AppError
from projects.assets import AssetStore
from projects.lifecycle import ProjectLifecycle
from projects.store import ProjectStore


def _prompt_password() -> Optional[str]:
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Confirm password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def setup_admin(username: str, email: str, password: Optional[str]) -> int:
    settings = get_settings()
    admins = AdminStore(db_url=settings.database_url)
    credentials = CredentialStore(admins, min_length=settings.min_password_length)
    try:
        if password is None:
            password = _prompt_password()
            if password is None:
                return 1
        credentials.check_policy(password)

        existing = admins.get_by_email(email)
        if existing is not None:
            credentials.set_credential(email, password)
            admins.update_admin(existing.id, is_active=True)
            print(f"  Password reset for {existing.email} (id={existing.id}).")
            return 0

        admin_id = admins.create_admin(Admin(username=username, email=email, hashed_password=hash_password(password)))
        print(f"  Admin {username} <{email.lower()}> created (id={admin_id}).")
        return 0
    except IntegrityError:
        print(f"  [!] Username '{username}' is already taken.")
        return 1
    except AppError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        admins.close()


def sweep_uploads() -> int:
    settings = get_settings()
    projects = ProjectStore(db_url=settings.database_url)
    assets = AssetStore(settings.upload_dir, url_prefix=settings.upload_url_prefix, max_bytes=settings.max_upload_bytes)
    try:
        removed = ProjectLifecycle(projects, assets).sweep_orphans()
    except AppError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        projects.close()
    for reference in removed:
        print(f"  removed {reference}")
    print(f"  {len(removed)} orphaned upload(s) removed.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="folio",
        description="Operator commands for the Folio portfolio API.",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    setup = sub.add_parser("setup-admin", help="Create an admin account or reset its password")
    setup.add_argument("--username", required=True, help="Display name (unique)")
    setup.add_argument("--email", required=True, help="Login email (unique, case-insensitive)")
    setup.add_argument("--password", default=None, help="Password; prompted for when omitted")

    sub.add_parser("sweep-uploads", help="Delete uploaded images no project references")

    args = parser.parse_args(argv)

    if args.command == "setup-admin":
        return setup_admin(args.username, args.email, args.password)
    if args.command == "sweep-uploads":
        return sweep_uploads()
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
