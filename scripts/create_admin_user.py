from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import NoReturn

from sqlalchemy import select

# Ensure the project root (parent of this file's directory) is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.logging import logger  # noqa: E402
from app.models.company import Company  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.auth_service import create_refresh_token  # noqa: E402
from db.session import AsyncSessionLocal  # noqa: E402


async def _ensure_admin(email: str, company_name: str) -> User:
    """Create or promote an admin user, creating the company when missing.

    Args:
        email: Email address of the admin user to upsert.
        company_name: Company the admin belongs to when it has to be created.

    Returns:
        The admin user. Commits changes to the database.
    """

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == email))
        user: User | None = result.scalar_one_or_none()

        if user is None:
            company = (
                await session.execute(select(Company).where(Company.name == company_name))
            ).scalar_one_or_none()
            if company is None:
                company = Company(name=company_name)
                session.add(company)
                await session.flush()
                logger.info("Created company %s (id=%s)", company_name, company.id)
            user = User(email=email, admin=True, company_id=company.id)
            session.add(user)
            await session.commit()
            logger.info("Created admin user: %s", email)
            return user

        if not user.admin:
            user.admin = True
            await session.commit()
            logger.info("Updated user to admin: %s", email)
        else:
            logger.info("User already admin: %s", email)
        return user


def main(argv: list[str] | None = None) -> NoReturn:
    """Upsert an admin and print a refresh token to bootstrap a session.

    Usage: ``python scripts/create_admin_user.py EMAIL [COMPANY]``
    """
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("usage: create_admin_user.py EMAIL [COMPANY]", file=sys.stderr)
        raise SystemExit(2)
    email = args[0]
    company_name = args[1] if len(args) > 1 else "Default company"

    user = asyncio.run(_ensure_admin(email, company_name))
    print(create_refresh_token(subject=user.email))
    raise SystemExit(0)


if __name__ == "__main__":
    main()
