"""Script to create the pgvector extension and knowledge tables."""

import asyncio
import sys

from helpdesk_rag.infrastructure.database.session import create_tables
from helpdesk_rag.infrastructure.logging import configure_logging, get_logger
from helpdesk_rag.modules.knowledge import models  # noqa: F401

logger = get_logger(__name__)


async def main() -> None:
    """Create database tables."""
    configure_logging()
    logger.info("Creating database tables...")

    try:
        await create_tables()
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
