"""Shared test fixtures and doubles."""

from datetime import datetime, timezone

import pytest

from commit_watcher.domain.errors import DeliveryFailure, TransientQueryFailure
from commit_watcher.domain.watched_repository import CommitInfo
from commit_watcher.infrastructure.memory_registry import InMemorySubscriptionRegistry


def make_commit(sha: str, message: str = "Update README", author: str = "The Octocat") -> CommitInfo:
    return CommitInfo(
        sha=sha,
        author_name=author,
        timestamp=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
        message=message,
        url=f"https://github.com/octocat/Hello-World/commit/{sha}",
    )


class FakeSource:
    """Hosting service double with configurable users, repositories and commits."""
    
    def __init__(self):
        self.users = set()
        self.repositories = set()
        self.commits = {}
        self.failing = set()
        self.calls = []
    
    def add_repository(self, full_name: str, commit: CommitInfo = None):
        owner = full_name.split("/", 1)[0]
        self.users.add(owner)
        self.repositories.add(full_name)
        if commit is not None:
            self.commits[full_name] = commit
    
    def user_exists(self, username: str) -> bool:
        if username in self.failing:
            raise TransientQueryFailure(f"lookup of {username} timed out")
        return username in self.users
    
    def repository_exists(self, owner: str, name: str) -> bool:
        return f"{owner}/{name}" in self.repositories
    
    def latest_commit(self, owner: str, name: str):
        full_name = f"{owner}/{name}"
        self.calls.append(full_name)
        if full_name in self.failing:
            raise TransientQueryFailure(f"{full_name}: connection reset")
        return self.commits.get(full_name)


class RecordingChannel:
    """Delivery channel double recording sent messages."""
    
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent = []
        self.attempted = []
        self.closed = False
    
    def send_message(self, recipient: str, text: str) -> None:
        self.attempted.append(recipient)
        if recipient in self.failing:
            raise DeliveryFailure(recipient, "Forbidden: bot was blocked by the user")
        self.sent.append((recipient, text))
    
    def close(self) -> None:
        self.closed = True


class RecordingDispatcher:
    """Dispatcher double capturing submitted jobs."""
    
    def __init__(self):
        self.jobs = []
    
    def submit(self, job):
        self.jobs.append(job)


@pytest.fixture
def registry():
    return InMemorySubscriptionRegistry()


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()
