"""Error taxonomy shared by the registry, the adapters and the services."""

from typing import Optional


class CommitWatcherError(Exception):
    """Base class for all commit watcher errors."""
    pass


class InvalidRepositoryId(CommitWatcherError, ValueError):
    """Raised when a repository identifier cannot be decomposed into owner and name."""
    pass


class TransientQueryFailure(CommitWatcherError):
    """Raised when the hosting service could not answer (network, auth, server error)."""
    pass


class RateLimitExceeded(TransientQueryFailure):
    """Raised when the hosting service reports an exhausted API quota."""
    
    def __init__(self, message: str, reset_at: Optional[int] = None):
        super().__init__(message)
        self.reset_at = reset_at


class DeliveryFailure(CommitWatcherError):
    """Raised when a message could not be delivered to one recipient."""
    
    def __init__(self, recipient: str, reason: str):
        super().__init__(f"Delivery to {recipient} failed: {reason}")
        self.recipient = recipient
        self.reason = reason


class PersistenceFailure(CommitWatcherError):
    """Raised when the subscription registry cannot be read or written."""
    pass
