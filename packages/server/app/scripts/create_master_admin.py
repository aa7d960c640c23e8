"""
Create a master (system) administrator.

The user id must be the subject id issued by the identity provider for
this account.
"""

import argparse
import asyncio
import sys
import uuid

from app.core.config import get_settings
from app.core.database import get_session_context
from app.core.errors import MembershipError
from app.core.logging_config import configure_logging
from app.services.memberships import create_master_admin

settings = get_settings()


async def run(user_id: uuid.UUID, email: str) -> None:
    async with get_session_context() as session:
        user = await create_master_admin(session, user_id, email)
    print(f"Created master admin {user.email} ({user.id}).")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a master admin user.")
    parser.add_argument("--user-id", required=True, type=uuid.UUID, help="Identity provider subject id")
    parser.add_argument("--email", required=True, help="Email address for the user")
    args = parser.parse_args()

    configure_logging(settings.log_level, "text")
    try:
        asyncio.run(run(args.user_id, args.email))
    except MembershipError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        sys.exit(1)
