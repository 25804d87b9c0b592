#!/usr/bin/env python3
"""Grant or revoke the admin role for a user.

Usage:
  python scripts/attach_admin_role.py --email someone@example.org
  python scripts/attach_admin_role.py --email someone@example.org --revoke

Revoking goes through the same last-admin guard as the admin API.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.quietmap.accounts import set_admin_role
from app.quietmap.errors import QuietmapError
from app.quietmap.models import User
from scripts._db_utils import database_url_from_env, script_session


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--revoke", action="store_true", help="Remove the admin role instead of granting it")
    args = parser.parse_args()

    try:
        with script_session(database_url_from_env()) as s:
            user = s.query(User).filter(User.email.ilike(args.email.strip())).one_or_none()
            if not user:
                print(f"User not found: {args.email}")
                sys.exit(1)
            set_admin_role(s, user.id, make_admin=not args.revoke, actor=None)
    except QuietmapError as e:
        print(f"Refused: {e.message}")
        sys.exit(1)
    print(f"Admin role {'revoked from' if args.revoke else 'attached to'} {args.email}")


if __name__ == "__main__":
    main()
