"""Application service detecting new commits on watched repositories."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum

from commit_watcher.domain.errors import PersistenceFailure, TransientQueryFailure
from commit_watcher.domain.ports import SourceQuery, SubscriptionRegistry
from commit_watcher.domain.watched_repository import NotificationJob, WatchedRepository

logger = logging.getLogger(__name__)


class RepositoryOutcome(Enum):
    """Result of checking one repository during a cycle."""
    
    BASELINED = "baselined"
    UNCHANGED = "unchanged"
    NOTIFIED = "notified"
    FAILED = "failed"
    DISCARDED = "discarded"


@dataclass
class CycleReport:
    """Per-outcome counts of one detection cycle."""
    
    checked: int = 0
    baselined: int = 0
    unchanged: int = 0
    notified: int = 0
    failed: int = 0
    discarded: int = 0
    
    def record(self, outcome: RepositoryOutcome):
        self.checked += 1
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)


class ChangeDetector:
    """Compares each watched repository's latest commit with its stored marker.
    
    Every repository is an independent unit of work: a failed query or a
    failed registry write only affects that repository for the current cycle.
    The marker is advanced before a job is handed to the dispatcher, so a
    delivery problem can never cause the same commit to be reported twice.
    """
    
    DEFAULT_MAX_WORKERS = 4
    
    def __init__(
        self,
        registry: SubscriptionRegistry,
        source: SourceQuery,
        dispatcher,
        max_workers: int = DEFAULT_MAX_WORKERS,
        notify_on_first_commit: bool = False,
    ):
        """
        Initialize change detector.
        
        Args:
            registry: Subscription registry holding markers and subscribers
            source: Hosting service query adapter
            dispatcher: Object whose submit(job) accepts notification jobs
            max_workers: Upper bound on repositories checked concurrently
            notify_on_first_commit: Notify on the first observed commit instead
                of silently recording it as the baseline
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        
        self.registry = registry
        self.source = source
        self.dispatcher = dispatcher
        self.max_workers = max_workers
        self.notify_on_first_commit = notify_on_first_commit
    
    def run_cycle(self) -> CycleReport:
        """
        Check every watched repository once.
        
        Returns:
            Aggregated outcomes of the cycle
            
        Raises:
            PersistenceFailure: If the registry snapshot itself cannot be loaded
        """
        repositories = self.registry.find_all()
        report = CycleReport()
        logger.info(f"Starting detection cycle for {len(repositories)} repositories")
        
        if not repositories:
            return report
        
        workers = min(self.max_workers, len(repositories))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="detect") as executor:
            futures = {
                executor.submit(self.check_repository, repository): repository
                for repository in repositories
            }
            for future in as_completed(futures):
                repository = futures[future]
                try:
                    outcome = future.result()
                except Exception as e:
                    logger.error(f"Unexpected error checking {repository.repository_id}: {e}", exc_info=True)
                    outcome = RepositoryOutcome.FAILED
                report.record(outcome)
        
        logger.info(
            f"Detection cycle completed: {report.checked} checked, {report.notified} notified, "
            f"{report.baselined} baselined, {report.unchanged} unchanged, "
            f"{report.failed} failed, {report.discarded} discarded"
        )
        return report
    
    def check_repository(self, repository: WatchedRepository) -> RepositoryOutcome:
        """Query, compare and, on divergence, advance the marker and hand off a job."""
        try:
            commit = self.source.latest_commit(repository.owner, repository.name)
        except TransientQueryFailure as e:
            logger.warning(f"Skipping {repository.repository_id} this cycle: {e}")
            return RepositoryOutcome.FAILED
        
        if commit is None or commit.sha == repository.last_seen_commit:
            return RepositoryOutcome.UNCHANGED
        
        try:
            advanced = self.registry.advance_commit_marker(repository.repository_id, commit.sha)
        except PersistenceFailure as e:
            logger.error(f"Could not record commit {commit.sha} for {repository.repository_id}: {e}")
            return RepositoryOutcome.FAILED
        
        if not advanced:
            return RepositoryOutcome.DISCARDED
        
        if repository.never_checked and not self.notify_on_first_commit:
            logger.info(f"Baseline for {repository.repository_id} set to {commit.sha}")
            return RepositoryOutcome.BASELINED
        
        job = NotificationJob(
            repository_id=repository.repository_id,
            commit=commit,
            recipients=repository.subscribers,
        )
        logger.info(
            f"New commit {commit.sha} in {repository.repository_id} "
            f"for {len(job.recipients)} subscribers"
        )
        try:
            self.dispatcher.submit(job)
        except Exception as e:
            logger.error(f"Could not hand off notification for {repository.repository_id}: {e}")
        return RepositoryOutcome.NOTIFIED
