#!/usr/bin/env python3
"""Script to run the commit watcher until interrupted."""

import logging
import signal
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from commit_watcher.application.watcher_service import WatcherService
from commit_watcher.config import Settings
from commit_watcher.infrastructure.database import PostgresSubscriptionRegistry
from commit_watcher.infrastructure.github_client import GitHubClient
from commit_watcher.infrastructure.telegram_channel import TelegramChannel

logger = logging.getLogger(__name__)


def main():
    """Watch registered repositories and notify subscribers of new commits."""
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    
    registry = None
    github_client = None
    try:
        if not settings.github_token:
            logger.warning("GITHUB_TOKEN not found. Using unauthenticated requests (limited rate).")
        if not settings.telegram_bot_token:
            logger.error("TELEGRAM_BOT_TOKEN is required")
            return 1
        
        registry = PostgresSubscriptionRegistry(
            settings.postgres_dsn, max_connections=settings.registry_pool_size
        )
        registry.connect()
        registry.initialize_schema()
        
        github_client = GitHubClient(
            token=settings.github_token,
            api_url=settings.github_api_url,
            timeout=settings.request_timeout_seconds,
        )
        channel = TelegramChannel(
            token=settings.telegram_bot_token,
            timeout=settings.request_timeout_seconds,
        )
        service = WatcherService(
            registry,
            github_client,
            channel,
            interval_seconds=settings.check_interval_seconds,
            detector_max_workers=settings.detector_max_workers,
            dispatcher_max_workers=settings.dispatcher_max_workers,
            notify_on_first_commit=settings.notify_on_first_commit,
        )
        
        def request_stop(signum, frame):
            logger.info(f"Received signal {signum}, shutting down")
            service.request_stop()
        
        with service:
            signal.signal(signal.SIGINT, request_stop)
            signal.signal(signal.SIGTERM, request_stop)
            logger.info(f"Watching {registry.get_repository_count()} repositories")
            service.wait()
        
        return 0
        
    except Exception as e:
        logger.error(f"Watcher failed: {e}", exc_info=True)
        return 1
    finally:
        if github_client is not None:
            github_client.close()
        if registry is not None:
            registry.close()


if __name__ == "__main__":
    sys.exit(main())
