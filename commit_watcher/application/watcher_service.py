"""Long-lived service owning the detection timer and the delivery channel."""

import logging
import threading
from typing import Optional

from commit_watcher.application.change_detector import ChangeDetector, CycleReport
from commit_watcher.application.notification_dispatcher import NotificationDispatcher
from commit_watcher.application.subscription_manager import SubscriptionManager
from commit_watcher.domain.ports import DeliveryChannel, SourceQuery, SubscriptionRegistry

logger = logging.getLogger(__name__)


class WatcherService:
    """Process-wide service created at startup and stopped on exit.
    
    Cycles run inline on a single timer thread, so a cycle never starts
    before the previous one has finished.
    """
    
    def __init__(
        self,
        registry: SubscriptionRegistry,
        source: SourceQuery,
        channel: DeliveryChannel,
        interval_seconds: float = 60.0,
        detector_max_workers: int = ChangeDetector.DEFAULT_MAX_WORKERS,
        dispatcher_max_workers: int = 4,
        notify_on_first_commit: bool = False,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        
        self.registry = registry
        self.source = source
        self.channel = channel
        self.interval_seconds = interval_seconds
        self.dispatcher = NotificationDispatcher(channel, max_workers=dispatcher_max_workers)
        self.detector = ChangeDetector(
            registry,
            source,
            self.dispatcher,
            max_workers=detector_max_workers,
            notify_on_first_commit=notify_on_first_commit,
        )
        self.subscriptions = SubscriptionManager(registry, source)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
    
    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
    
    def run_once(self) -> Optional[CycleReport]:
        """Run one detection cycle, logging instead of raising on failure."""
        try:
            return self.detector.run_cycle()
        except Exception as e:
            logger.error(f"Detection cycle failed: {e}", exc_info=True)
            return None
    
    def _loop(self):
        logger.info(f"Watcher started (interval: {self.interval_seconds}s)")
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self.interval_seconds)
        logger.info("Watcher loop stopped")
    
    def start(self):
        if self.running:
            raise RuntimeError("Watcher service is already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="commit-watcher", daemon=True)
        self._thread.start()
    
    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() is requested; returns True if it was."""
        return self._stop_event.wait(timeout)
    
    def request_stop(self):
        """Ask the loop to exit after the current cycle; safe from signal handlers."""
        self._stop_event.set()
    
    def stop(self, timeout: Optional[float] = None):
        """Stop the timer, drain pending deliveries and close the channel."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.dispatcher.shutdown(wait=True)
        self.channel.close()
        logger.info("Watcher service stopped")
    
    def __enter__(self) -> "WatcherService":
        self.start()
        return self
    
    def __exit__(self, exc_type, exc, tb):
        self.stop()
