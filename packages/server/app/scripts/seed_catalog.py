"""
Seed the permission catalog and system role templates.

Safe to run repeatedly; existing permissions and templates are kept.
"""

import argparse
import asyncio

from app.core.config import get_settings
from app.core.database import get_session_context, init_db
from app.core.logging_config import configure_logging
from app.services.catalog import seed_catalog

settings = get_settings()


async def run(create_tables: bool) -> None:
    if create_tables:
        await init_db()
    async with get_session_context() as session:
        perms, templates = await seed_catalog(session)
    print(f"Created {perms} permissions and {templates} role templates.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed permissions and role templates.")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables first (development databases only)",
    )
    args = parser.parse_args()

    configure_logging(settings.log_level, "text")
    asyncio.run(run(args.create_tables))
