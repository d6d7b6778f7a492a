"""Delivery of detected commits to subscribers."""

import html
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from commit_watcher.domain.errors import DeliveryFailure
from commit_watcher.domain.ports import DeliveryChannel
from commit_watcher.domain.watched_repository import NotificationJob

logger = logging.getLogger(__name__)


def format_timestamp(value: Optional[datetime]) -> str:
    """Normalize a commit timestamp to UTC minutes, e.g. 2024-05-01 12:30 UTC."""
    if value is None:
        return "unknown"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def format_notification(job: NotificationJob) -> str:
    """Render the user-visible message for a notification job (Telegram HTML)."""
    commit = job.commit
    return (
        f"New commit in <b>{html.escape(job.repository_id)}</b>\n"
        f"Author: {html.escape(commit.author_name or 'unknown')}\n"
        f"Time: {format_timestamp(commit.timestamp)}\n"
        f"Message: {html.escape(commit.message.strip())}\n"
        f"Link: {html.escape(commit.url)}"
    )


@dataclass(frozen=True)
class DispatchReport:
    repository_id: str
    commit_id: str
    delivered: int
    failed: int


class NotificationDispatcher:
    """Delivers each job to every recipient, one attempt per recipient.
    
    A failing recipient is logged and skipped; the remaining recipients are
    still attempted. Jobs submitted through submit() run on a worker pool so
    that detection never waits for delivery.
    """
    
    def __init__(self, channel: DeliveryChannel, max_workers: int = 4):
        self.channel = channel
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="dispatch",
        )
    
    def dispatch(self, job: NotificationJob) -> DispatchReport:
        """
        Deliver a job synchronously.
        
        Args:
            job: The detected change and its recipients
            
        Returns:
            Counts of successful and failed deliveries
        """
        text = format_notification(job)
        delivered = 0
        failed = 0
        
        for recipient in sorted(job.recipients):
            try:
                self.channel.send_message(recipient, text)
                delivered += 1
            except DeliveryFailure as e:
                failed += 1
                logger.error(f"Error sending notification for {job.repository_id} to {recipient}: {e.reason}")
            except Exception as e:
                failed += 1
                logger.error(
                    f"Unexpected error sending notification for {job.repository_id} to {recipient}: {e}",
                    exc_info=True,
                )
        
        logger.info(
            f"Dispatched {job.repository_id}@{job.commit_id[:7]}: "
            f"{delivered} delivered, {failed} failed"
        )
        return DispatchReport(job.repository_id, job.commit_id, delivered, failed)
    
    def submit(self, job: NotificationJob) -> Future:
        """
        Queue a job on the worker pool and return immediately.
        
        Raises:
            RuntimeError: If the dispatcher has been shut down
        """
        return self._executor.submit(self.dispatch, job)
    
    def shutdown(self, wait: bool = True):
        """Stop accepting jobs; optionally wait for in-flight deliveries."""
        self._executor.shutdown(wait=wait)
