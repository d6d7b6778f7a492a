"""Domain entities for watched repositories and detected commits."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Optional


@dataclass(frozen=True)
class WatchedRepository:
    """Immutable snapshot of one registry record."""
    
    repository_id: str
    subscribers: FrozenSet[str]
    last_seen_commit: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    
    @property
    def owner(self) -> str:
        return self.repository_id.split("/", 1)[0]
    
    @property
    def name(self) -> str:
        return self.repository_id.split("/", 1)[1]
    
    @property
    def never_checked(self) -> bool:
        return self.last_seen_commit == ""
    
    def has_subscriber(self, subscriber_id: str) -> bool:
        return subscriber_id in self.subscribers


@dataclass(frozen=True)
class CommitInfo:
    """The most recent commit of a repository as reported by the hosting service."""
    
    sha: str
    author_name: str
    timestamp: Optional[datetime]
    message: str
    url: str


@dataclass(frozen=True)
class NotificationJob:
    """One detected change and the subscribers it should reach."""
    
    repository_id: str
    commit: CommitInfo
    recipients: FrozenSet[str] = field(default_factory=frozenset)
    
    @property
    def commit_id(self) -> str:
        return self.commit.sha
