#!/usr/bin/env python3
"""Script to add, remove and list watched repositories from the command line."""

import argparse
import logging
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from commit_watcher.application.subscription_manager import SubscriptionManager
from commit_watcher.application.watcher_service import WatcherService
from commit_watcher.config import Settings
from commit_watcher.infrastructure.database import PostgresSubscriptionRegistry
from commit_watcher.infrastructure.github_client import GitHubClient
from commit_watcher.infrastructure.telegram_channel import TelegramChannel

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage watched GitHub repositories.")
    commands = parser.add_subparsers(dest="command", required=True)
    
    add = commands.add_parser("add", help="Watch a repository")
    add.add_argument("subscriber", help="Subscriber identity (e.g. Telegram chat id)")
    add.add_argument("repository", nargs="+", help="owner/name, 'owner name' or GitHub URL")
    
    remove = commands.add_parser("remove", help="Stop watching a repository")
    remove.add_argument("subscriber")
    remove.add_argument("repository", nargs="+")
    
    listing = commands.add_parser("list", help="List a subscriber's repositories")
    listing.add_argument("subscriber")
    
    commands.add_parser("check", help="Run one detection cycle and exit")
    return parser


def run_check(settings: Settings, registry, github_client) -> int:
    channel = TelegramChannel(token=settings.telegram_bot_token, timeout=settings.request_timeout_seconds)
    service = WatcherService(
        registry,
        github_client,
        channel,
        detector_max_workers=settings.detector_max_workers,
        dispatcher_max_workers=settings.dispatcher_max_workers,
        notify_on_first_commit=settings.notify_on_first_commit,
    )
    try:
        report = service.run_once()
    finally:
        service.stop()
    if report is None:
        return 1
    print(
        f"checked={report.checked} notified={report.notified} baselined={report.baselined} "
        f"unchanged={report.unchanged} failed={report.failed} discarded={report.discarded}"
    )
    return 0


def main(argv=None):
    """Apply one command to the subscription registry."""
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    registry = PostgresSubscriptionRegistry(settings.postgres_dsn, max_connections=settings.registry_pool_size)
    github_client = GitHubClient(
        token=settings.github_token,
        api_url=settings.github_api_url,
        timeout=settings.request_timeout_seconds,
    )
    try:
        registry.connect()
        registry.initialize_schema()
        manager = SubscriptionManager(registry, github_client)
        
        if args.command == "check":
            return run_check(settings, registry, github_client)
        
        if args.command == "list":
            watches = manager.list_watches(args.subscriber)
            if not watches:
                print("No watched repositories.")
            for repo in watches:
                print(f"{repo.repository_id} - last commit: {repo.last_seen_commit or 'not checked yet'}")
            return 0
        
        reference = " ".join(args.repository)
        if args.command == "add":
            result = manager.add_watch(reference, args.subscriber)
        else:
            result = manager.remove_watch(reference, args.subscriber)
        
        print(f"{result.status.value}: {result.repository_id or reference} {result.detail}".rstrip())
        return 0 if result.ok else 2
        
    except Exception as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        return 1
    finally:
        github_client.close()
        registry.close()


if __name__ == "__main__":
    sys.exit(main())
