"""Bootstrap the first admin account and print its API key.

Admin endpoints need an admin key to exist already; run this once per
environment::

    python -m scripts.create_admin_api_key --username ops --email ops@example.com
"""
import argparse

from sqlalchemy import select

from app.db import get_sessionmaker, init_engine
from app.models.api_key import ApiKey
from app.models.user import User, UserRole
from app.utils.apikey import gen_key


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--username", default="admin")
    parser.add_argument("--email", default="admin@rekberpay.com")
    parser.add_argument("--key-name", default="bootstrap-admin")
    args = parser.parse_args()

    init_engine()
    db = get_sessionmaker()()
    try:
        user = db.scalars(select(User).where(User.username == args.username)).first()
        if user is None:
            user = User(username=args.username, email=args.email, role=UserRole.admin)
            db.add(user)
            db.flush()
        elif user.role != UserRole.admin:
            raise SystemExit(f"User {args.username!r} exists but is not an admin.")

        raw, prefix, key_hash = gen_key()
        api_key = ApiKey(name=args.key_name, prefix=prefix, key_hash=key_hash, user_id=user.id, is_active=True)
        db.add(api_key)
        db.commit()

        print("Admin API key created. Use it in your Authorization header:")
        print(f"    Authorization: Bearer {raw}")
        print(f"(user id: {user.id}, key id: {api_key.id})")
    finally:
        db.close()


if __name__ == "__main__":
    main()
