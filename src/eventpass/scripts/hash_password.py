# src/eventpass/scripts/hash_password.py
"""Produce a bcrypt hash for ``ADMIN_PASSWORD_HASH``.

Typical usage:
  eventpass-hash-password --password 's3cret'
  echo 's3cret' | eventpass-hash-password
"""

from __future__ import annotations

import argparse
import getpass
import sys

from eventpass.core.security import hash_password

MIN_PASSWORD_LENGTH = 8


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Hash an admin password with bcrypt")
    parser.add_argument("--password", default=None, help="Password to hash (prompted if omitted)")
    parser.add_argument("--rounds", type=int, default=12, help="bcrypt cost factor")
    args = parser.parse_args(argv)

    password = args.password
    if password is None:
        if sys.stdin.isatty():
            password = getpass.getpass("Admin password: ")
        else:
            password = sys.stdin.readline().rstrip("\n")

    if len(password) < MIN_PASSWORD_LENGTH:
        print(
            f"[hash_password] ERROR: password must be at least {MIN_PASSWORD_LENGTH} characters",
            file=sys.stderr,
        )
        return 1

    print(hash_password(password, rounds=args.rounds))
    return 0


if __name__ == "__main__":
    sys.exit(main())
