"""Grant or revoke admin access: ``python scripts/set_user_role.py <username> admin``."""

import argparse
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sqlalchemy import func, select  # noqa: E402

from parcelgis.auth.models import USER_ROLES, User  # noqa: E402
from parcelgis.db.session import SessionLocal  # noqa: E402


def set_user_role(db, username: str, role: str) -> User | None:
    user = db.execute(select(User).where(func.lower(User.username) == username.strip().lower())).scalar_one_or_none()
    if user is None:
        return None
    user.user_role = role
    db.commit()
    return user


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("username")
    parser.add_argument("role", choices=USER_ROLES)
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        user = set_user_role(db, args.username, args.role)
        if user is None:
            print(f"[FAIL] No user named {args.username!r}", file=sys.stderr)
            return 1
        print(f"[OK] {user.username} is now {user.role}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
