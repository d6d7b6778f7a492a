"""Application service handling watch/unwatch/list commands."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from commit_watcher.domain.errors import InvalidRepositoryId
from commit_watcher.domain.ports import SourceQuery, SubscriptionRegistry
from commit_watcher.domain.repository_id import parse_repository_id
from commit_watcher.domain.watched_repository import WatchedRepository

logger = logging.getLogger(__name__)


class AddStatus(Enum):
    WATCHING = "watching"
    ALREADY_WATCHING = "already_watching"
    INVALID_IDENTIFIER = "invalid_identifier"
    USER_NOT_FOUND = "user_not_found"
    REPOSITORY_NOT_FOUND = "repository_not_found"


class RemoveStatus(Enum):
    REMOVED = "removed"
    NOT_WATCHING = "not_watching"
    INVALID_IDENTIFIER = "invalid_identifier"


@dataclass(frozen=True)
class WatchResult:
    status: Enum
    repository_id: Optional[str] = None
    detail: str = ""
    
    @property
    def ok(self) -> bool:
        return self.status in (
            AddStatus.WATCHING,
            AddStatus.ALREADY_WATCHING,
            RemoveStatus.REMOVED,
            RemoveStatus.NOT_WATCHING,
        )


class SubscriptionManager:
    """Validates and applies subscription commands against the registry.
    
    Query and persistence errors are not caught here; they surface to the
    caller as a failed command.
    """
    
    def __init__(self, registry: SubscriptionRegistry, source: SourceQuery):
        self.registry = registry
        self.source = source
    
    def add_watch(self, reference: str, subscriber_id: str) -> WatchResult:
        """
        Start watching a repository for a subscriber.
        
        Args:
            reference: owner/name, "owner name" or a github.com URL
            subscriber_id: Opaque subscriber identity
            
        Returns:
            WATCHING or ALREADY_WATCHING on success, otherwise the rejection reason
        """
        try:
            repo_id = parse_repository_id(reference)
        except InvalidRepositoryId as e:
            return WatchResult(AddStatus.INVALID_IDENTIFIER, detail=str(e))
        
        if not self.source.user_exists(repo_id.owner):
            return WatchResult(AddStatus.USER_NOT_FOUND, repo_id.full_name, f"User {repo_id.owner} not found")
        if not self.source.repository_exists(repo_id.owner, repo_id.name):
            return WatchResult(
                AddStatus.REPOSITORY_NOT_FOUND, repo_id.full_name, f"Repository {repo_id.full_name} not found"
            )
        
        if self.registry.upsert_subscriber(repo_id.full_name, subscriber_id):
            return WatchResult(AddStatus.WATCHING, repo_id.full_name)
        return WatchResult(AddStatus.ALREADY_WATCHING, repo_id.full_name)
    
    def remove_watch(self, reference: str, subscriber_id: str) -> WatchResult:
        """Stop watching a repository; not watching it is not an error."""
        try:
            repo_id = parse_repository_id(reference)
        except InvalidRepositoryId as e:
            return WatchResult(RemoveStatus.INVALID_IDENTIFIER, detail=str(e))
        
        if self.registry.remove_subscriber(repo_id.full_name, subscriber_id):
            return WatchResult(RemoveStatus.REMOVED, repo_id.full_name)
        return WatchResult(RemoveStatus.NOT_WATCHING, repo_id.full_name)
    
    def list_watches(self, subscriber_id: str) -> List[WatchedRepository]:
        return sorted(
            self.registry.find_by_subscriber(subscriber_id),
            key=lambda repo: repo.repository_id,
        )
