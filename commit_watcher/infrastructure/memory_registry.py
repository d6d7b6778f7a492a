"""In-process subscription registry for local runs and tests."""

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from commit_watcher.domain.watched_repository import WatchedRepository

logger = logging.getLogger(__name__)


class InMemorySubscriptionRegistry:
    """Registry kept in a dict guarded by a lock.
    
    Records are immutable snapshots, so callers never observe a half-applied
    update; every mutation replaces a whole record under the lock.
    """
    
    def __init__(self):
        self._records: Dict[str, WatchedRepository] = {}
        self._lock = threading.Lock()
    
    def find_all(self) -> List[WatchedRepository]:
        with self._lock:
            return [self._records[key] for key in sorted(self._records)]
    
    def find_by_repository_id(self, repository_id: str) -> Optional[WatchedRepository]:
        with self._lock:
            return self._records.get(repository_id)
    
    def find_by_subscriber(self, subscriber_id: str) -> List[WatchedRepository]:
        return [repo for repo in self.find_all() if repo.has_subscriber(subscriber_id)]
    
    def upsert_subscriber(self, repository_id: str, subscriber_id: str) -> bool:
        now = datetime.now(timezone.utc)
        with self._lock:
            record = self._records.get(repository_id)
            if record is None:
                self._records[repository_id] = WatchedRepository(
                    repository_id=repository_id,
                    subscribers=frozenset([subscriber_id]),
                    created_at=now,
                    updated_at=now,
                )
            elif record.has_subscriber(subscriber_id):
                return False
            else:
                self._records[repository_id] = WatchedRepository(
                    repository_id=repository_id,
                    subscribers=record.subscribers | {subscriber_id},
                    last_seen_commit=record.last_seen_commit,
                    created_at=record.created_at,
                    updated_at=now,
                )
        logger.info(f"Subscriber {subscriber_id} now watches {repository_id}")
        return True
    
    def remove_subscriber(self, repository_id: str, subscriber_id: str) -> bool:
        with self._lock:
            record = self._records.get(repository_id)
            if record is None or not record.has_subscriber(subscriber_id):
                return False
            remaining = record.subscribers - {subscriber_id}
            if remaining:
                self._records[repository_id] = WatchedRepository(
                    repository_id=repository_id,
                    subscribers=remaining,
                    last_seen_commit=record.last_seen_commit,
                    created_at=record.created_at,
                    updated_at=datetime.now(timezone.utc),
                )
            else:
                del self._records[repository_id]
        logger.info(f"Subscriber {subscriber_id} stopped watching {repository_id}")
        return True
    
    def advance_commit_marker(self, repository_id: str, commit_id: str) -> bool:
        with self._lock:
            record = self._records.get(repository_id)
            if record is not None:
                self._records[repository_id] = WatchedRepository(
                    repository_id=repository_id,
                    subscribers=record.subscribers,
                    last_seen_commit=commit_id,
                    created_at=record.created_at,
                    updated_at=datetime.now(timezone.utc),
                )
        if record is None:
            logger.warning(f"Repository {repository_id} is no longer watched, marker {commit_id} discarded")
            return False
        return True
    
    def get_repository_count(self) -> int:
        with self._lock:
            return len(self._records)
