#!/usr/bin/env python3
"""
Create the queue tables and optionally seed an operator.

Usage:
    python scripts/create_tables.py [--operator USERNAME --email EMAIL --level 1]

Environment Variables Required:
    DATABASE_URL - async SQLAlchemy URL (postgresql+asyncpg://...)
"""

import asyncio
import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from clinic_queue.db.session import async_session, engine
from clinic_queue.models import Base, Operator

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables ready: %s", ", ".join(sorted(Base.metadata.tables)))


async def seed_operator(username: str, email: str, level: int) -> None:
    async with async_session() as session:
        existing = (
            await session.execute(select(Operator).where(Operator.username == username))
        ).scalars().first()
        if existing:
            logger.info("Operator %s already exists (level=%s)", username, existing.access_level)
            return
        session.add(Operator(username=username, display_name=username, email=email, access_level=level))
        await session.commit()
        logger.info("Created operator %s with access level %s", username, level)


async def run(args) -> None:
    try:
        await create_tables()
        if args.operator:
            await seed_operator(args.operator, args.email, args.level)
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Create queue tables")
    parser.add_argument("--operator", help="Username of an operator to create")
    parser.add_argument("--email", help="Operator email (matches the Auth0 login)")
    parser.add_argument("--level", type=int, default=1, help="Access level (default: 1, every room)")
    args = parser.parse_args()

    if args.operator and not args.email:
        parser.error("--email is required with --operator")

    asyncio.run(run(args))


if __name__ == "__main__":
    main()
