"""Create the voting schema directly, bypassing Alembic (local development)."""

import logging

from agora_votes.core.logging import configure_logging
from agora_votes.core.settings import settings
from agora_votes.db.session import create_tables

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Initialize the database by creating all tables."""
    create_tables()
    logger.info("Database initialized at %s", settings.effective_database_url)


if __name__ == "__main__":
    configure_logging()
    init_db()
