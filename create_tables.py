"""
create_tables.py
----------------
One-shot script to create all database tables and, optionally, the first
admin account (self-registration only ever creates 'user' accounts).
Use this for quick setup. For production migrations, use Alembic instead.

Usage:
    python create_tables.py
    python create_tables.py --admin-email admin@example.com --admin-password s3cret!
"""

import argparse
import asyncio
from typing import Optional

from portal.core.errors import ConflictError
from portal.core.logging import configure_logging, get_logger
from portal.db.session import AsyncSessionLocal, engine
from portal.db.store import EntityStore
from portal.models import Base, UserRole  # Imports all models so metadata is populated
from portal.schemas.user import UserCreate
from portal.services.user_service import UserService

logger = get_logger(__name__)


async def create_all_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("All tables created", tables=sorted(Base.metadata.tables))


async def create_admin(email: str, password: str, name: Optional[str] = None) -> None:
    async with AsyncSessionLocal() as session:
        store = EntityStore(session)
        try:
            user = await UserService(store).create_user(
                UserCreate(email=email, password=password, name=name, role=UserRole.admin)
            )
        except ConflictError:
            logger.warning("Admin not created: email already registered", email=email)
            return
        await store.commit()
    logger.info("Admin user created", user_id=user.id, email=user.email)


async def main(args: argparse.Namespace) -> None:
    configure_logging()
    try:
        await create_all_tables()
        if args.admin_email:
            await create_admin(args.admin_email, args.admin_password, args.admin_name)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the portal database schema.")
    parser.add_argument("--admin-email")
    parser.add_argument("--admin-password")
    parser.add_argument("--admin-name", default="Administrator")
    args = parser.parse_args()
    if args.admin_email and not args.admin_password:
        parser.error("--admin-password is required with --admin-email")
    asyncio.run(main(args))
