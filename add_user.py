#!/usr/bin/env python
"""Create a user account from the command line.

    python add_user.py alice s3cret --admin --email alice@example.com
"""
import argparse
import sys

from taskmanager.database import create_tables, get_session
from taskmanager.models import UserRole
from taskmanager.routers.auth import get_password_hash
from taskmanager.storage import Storage


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create a Task Manager user")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("--email", default=None)
    parser.add_argument("--admin", action="store_true", help="grant the admin role")
    args = parser.parse_args(argv)

    # Create tables if not exist
    create_tables()

    with get_session() as db:
        storage = Storage(db)
        if storage.get_user_by_username(args.username):
            print(f"User {args.username} already exists")
            return 1

        role = UserRole.ADMIN if args.admin else UserRole.USER
        storage.create_user(args.username, get_password_hash(args.password), role=role, email=args.email)
        print(f"User created: {args.username} ({role.value})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
