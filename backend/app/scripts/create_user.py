"""
Create a user (e.g. the first admin). Run from backend/:
  python -m app.scripts.create_user USERNAME EMAIL PASSWORD [role]
Example:
  python -m app.scripts.create_user admin admin@example.com your-secure-password admin
"""
import argparse
import asyncio
import sys

from pydantic import ValidationError

from app.config import get_settings
from app.core.exceptions import DuplicateIdentityException, format_validation_errors
from app.database import build_engine, build_session_factory
from app.models.user import USER_ROLES
from app.schemas.user import UserCreate
from app.services import user_service


async def _create(payload: UserCreate) -> int:
    settings = get_settings()
    engine = build_engine(settings.DATABASE_URL)
    try:
        async with build_session_factory(engine)() as db:
            try:
                user = await user_service.create_user(db, payload, rounds=settings.BCRYPT_ROUNDS)
            except DuplicateIdentityException as exc:
                print(exc.detail, file=sys.stderr)
                return 1
        print(f"Created user '{user.username}' ({user.id}) with role '{user.role}'.")
        return 0
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a UserHub user.")
    parser.add_argument("username", help="Username (3-30 chars)")
    parser.add_argument("email", help="Email address")
    parser.add_argument("password", help="Password (6-128 chars)")
    parser.add_argument("role", nargs="?", default="user", choices=USER_ROLES)
    args = parser.parse_args()

    try:
        payload = UserCreate(
            username=args.username,
            email=args.email,
            password=args.password,
            role=args.role,
        )
    except ValidationError as exc:
        print("; ".join(format_validation_errors(exc.errors())), file=sys.stderr)
        return 1

    return asyncio.run(_create(payload))


if __name__ == "__main__":
    sys.exit(main())
