"""Tests for the change detection cycle."""

from unittest.mock import MagicMock

import pytest
from conftest import make_commit

from commit_watcher.application.change_detector import ChangeDetector, RepositoryOutcome
from commit_watcher.domain.errors import PersistenceFailure
from commit_watcher.domain.watched_repository import WatchedRepository

REPO = "octocat/Hello-World"


@pytest.fixture
def detector(registry, source, dispatcher):
    return ChangeDetector(registry, source, dispatcher, max_workers=2)


def _watch(registry, source, repository_id=REPO, subscribers=("42",), marker="", commit=None):
    source.add_repository(repository_id, commit)
    for subscriber in subscribers:
        registry.upsert_subscriber(repository_id, subscriber)
    if marker:
        registry.advance_commit_marker(repository_id, marker)


class TestBaseline:
    def test_first_cycle_records_baseline_silently(self, detector, registry, source, dispatcher):
        _watch(registry, source, commit=make_commit("c1"))

        report = detector.run_cycle()

        assert registry.find_by_repository_id(REPO).last_seen_commit == "c1"
        assert dispatcher.jobs == []
        assert report.baselined == 1

    def test_first_commit_can_notify_when_configured(self, registry, source, dispatcher):
        _watch(registry, source, commit=make_commit("c1"))
        detector = ChangeDetector(registry, source, dispatcher, notify_on_first_commit=True)

        report = detector.run_cycle()

        assert report.notified == 1
        assert dispatcher.jobs[0].commit_id == "c1"


class TestDivergence:
    def test_new_commit_emits_one_job_and_advances(self, detector, registry, source, dispatcher):
        _watch(registry, source, subscribers=("42", "7"), marker="c1", commit=make_commit("c2"))

        report = detector.run_cycle()

        assert report.notified == 1
        assert len(dispatcher.jobs) == 1
        job = dispatcher.jobs[0]
        assert job.repository_id == REPO
        assert job.commit_id == "c2"
        assert job.recipients == frozenset({"42", "7"})
        assert registry.find_by_repository_id(REPO).last_seen_commit == "c2"

    def test_same_commit_is_noop(self, detector, registry, source, dispatcher):
        _watch(registry, source, marker="c1", commit=make_commit("c1"))

        report = detector.run_cycle()

        assert report.unchanged == 1
        assert dispatcher.jobs == []
        assert registry.find_by_repository_id(REPO).last_seen_commit == "c1"

    def test_repository_without_commits_is_unchanged(self, detector, registry, source, dispatcher):
        _watch(registry, source)

        assert detector.run_cycle().unchanged == 1
        assert registry.find_by_repository_id(REPO).never_checked

    def test_second_cycle_does_not_repeat_notification(self, detector, registry, source, dispatcher):
        _watch(registry, source, marker="c1", commit=make_commit("c2"))

        detector.run_cycle()
        detector.run_cycle()

        assert len(dispatcher.jobs) == 1


class TestFailureIsolation:
    def test_transient_failure_skips_only_that_repository(self, detector, registry, source, dispatcher):
        _watch(registry, source, repository_id="octocat/broken", marker="c1", commit=make_commit("c9"))
        _watch(registry, source, repository_id=REPO, marker="c1", commit=make_commit("c2"))
        source.failing.add("octocat/broken")

        report = detector.run_cycle()

        assert report.failed == 1
        assert report.notified == 1
        assert registry.find_by_repository_id("octocat/broken").last_seen_commit == "c1"
        assert registry.find_by_repository_id(REPO).last_seen_commit == "c2"
        assert [job.repository_id for job in dispatcher.jobs] == [REPO]

    def test_persistence_failure_skips_dispatch(self, source, dispatcher):
        source.add_repository(REPO, make_commit("c2"))
        registry = MagicMock()
        registry.find_all.return_value = []
        registry.advance_commit_marker.side_effect = PersistenceFailure("disk full")
        detector = ChangeDetector(registry, source, dispatcher)
        repository = _snapshot(marker="c1")

        assert detector.check_repository(repository) is RepositoryOutcome.FAILED
        assert dispatcher.jobs == []

    def test_vanished_record_discards_result(self, detector, source, dispatcher):
        source.add_repository(REPO, make_commit("c2"))

        outcome = detector.check_repository(_snapshot(marker="c1"))

        assert outcome is RepositoryOutcome.DISCARDED
        assert dispatcher.jobs == []

    def test_dispatch_failure_keeps_marker(self, registry, source):
        _watch(registry, source, marker="c1", commit=make_commit("c2"))
        dispatcher = MagicMock()
        dispatcher.submit.side_effect = RuntimeError("cannot schedule new futures after shutdown")

        report = ChangeDetector(registry, source, dispatcher).run_cycle()

        assert report.notified == 1
        assert registry.find_by_repository_id(REPO).last_seen_commit == "c2"

    def test_unexpected_error_does_not_abort_cycle(self, registry, source, dispatcher):
        _watch(registry, source, repository_id="a/one", marker="c1", commit=make_commit("c2"))
        _watch(registry, source, repository_id="b/two", marker="c1", commit=make_commit("c2"))
        original = source.latest_commit

        def flaky(owner, name):
            if owner == "a":
                raise KeyError("sha")
            return original(owner, name)

        source.latest_commit = flaky
        report = ChangeDetector(registry, source, dispatcher).run_cycle()

        assert report.failed == 1
        assert report.notified == 1


class TestCycle:
    def test_empty_registry(self, detector):
        report = detector.run_cycle()
        assert report.checked == 0

    def test_every_repository_checked_once(self, detector, registry, source):
        for index in range(10):
            _watch(registry, source, repository_id=f"owner{index}/repo", commit=make_commit(f"c{index}"))

        report = detector.run_cycle()

        assert report.checked == 10
        assert sorted(source.calls) == sorted(f"owner{index}/repo" for index in range(10))

    def test_rejects_invalid_worker_count(self, registry, source, dispatcher):
        with pytest.raises(ValueError):
            ChangeDetector(registry, source, dispatcher, max_workers=0)


def _snapshot(marker=""):
    return WatchedRepository(repository_id=REPO, subscribers=frozenset({"42"}), last_seen_commit=marker)
