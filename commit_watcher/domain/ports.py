"""Contracts for the collaborators the watcher core depends on.

The registry, the hosting service adapter and the delivery channel are
swappable; the services only rely on the operations below.
"""

from typing import List, Optional, Protocol

from commit_watcher.domain.watched_repository import CommitInfo, WatchedRepository


class SubscriptionRegistry(Protocol):
    """Durable mapping from repository id to subscribers and commit marker."""

    def find_all(self) -> List[WatchedRepository]:
        ...

    def find_by_repository_id(self, repository_id: str) -> Optional[WatchedRepository]:
        ...

    def find_by_subscriber(self, subscriber_id: str) -> List[WatchedRepository]:
        ...

    def upsert_subscriber(self, repository_id: str, subscriber_id: str) -> bool:
        ...

    def remove_subscriber(self, repository_id: str, subscriber_id: str) -> bool:
        ...

    def advance_commit_marker(self, repository_id: str, commit_id: str) -> bool:
        ...


class SourceQuery(Protocol):
    """Read-only queries against the source hosting service."""

    def user_exists(self, username: str) -> bool:
        ...

    def repository_exists(self, owner: str, name: str) -> bool:
        ...

    def latest_commit(self, owner: str, name: str) -> Optional[CommitInfo]:
        ...


class DeliveryChannel(Protocol):
    """One-way message sink addressed by subscriber identity."""

    def send_message(self, recipient: str, text: str) -> None:
        ...

    def close(self) -> None:
        ...
