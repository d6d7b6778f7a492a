#!/usr/bin/env python3
"""Script to initialize the subscription registry schema."""

import logging
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from commit_watcher.config import Settings
from commit_watcher.infrastructure.database import PostgresSubscriptionRegistry

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Initialize database schema."""
    try:
        settings = Settings.from_env()
        registry = PostgresSubscriptionRegistry(settings.postgres_dsn)
        registry.connect()
        registry.initialize_schema()
        registry.close()
        logger.info("Database schema setup completed successfully")
        return 0
    except Exception as e:
        logger.error(f"Failed to setup database schema: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
