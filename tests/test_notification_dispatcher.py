"""Tests for notification formatting and delivery."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from conftest import RecordingChannel, make_commit

from commit_watcher.application.notification_dispatcher import (
    NotificationDispatcher,
    format_notification,
    format_timestamp,
)
from commit_watcher.domain.watched_repository import NotificationJob


def _job(recipients, sha="abc123", message="Update README"):
    return NotificationJob(
        repository_id="octocat/Hello-World",
        commit=make_commit(sha, message=message),
        recipients=frozenset(recipients),
    )


class TestFormatTimestamp:
    def test_converts_to_utc(self):
        value = datetime(2024, 5, 1, 15, 30, tzinfo=timezone(timedelta(hours=3)))
        assert format_timestamp(value) == "2024-05-01 12:30 UTC"

    def test_naive_is_treated_as_utc(self):
        assert format_timestamp(datetime(2024, 5, 1, 12, 30)) == "2024-05-01 12:30 UTC"

    def test_missing(self):
        assert format_timestamp(None) == "unknown"


class TestFormatNotification:
    def test_contains_required_fields(self):
        text = format_notification(_job(["42"]))

        assert "octocat/Hello-World" in text
        assert "The Octocat" in text
        assert "2024-05-01 12:30 UTC" in text
        assert "Update README" in text
        assert "https://github.com/octocat/Hello-World/commit/abc123" in text

    def test_escapes_markup(self):
        text = format_notification(_job(["42"], message="Use <script> & stuff"))
        assert "&lt;script&gt; &amp; stuff" in text


class TestDispatch:
    def test_one_message_per_recipient(self):
        channel = RecordingChannel()
        report = NotificationDispatcher(channel).dispatch(_job(["1", "2", "3"]))

        assert sorted(recipient for recipient, _ in channel.sent) == ["1", "2", "3"]
        assert report.delivered == 3
        assert report.failed == 0

    def test_failed_recipient_does_not_block_others(self):
        channel = RecordingChannel(failing={"A"})

        report = NotificationDispatcher(channel).dispatch(_job(["A", "B"]))

        assert set(channel.attempted) == {"A", "B"}
        assert [recipient for recipient, _ in channel.sent] == ["B"]
        assert report.delivered == 1
        assert report.failed == 1

    def test_unexpected_error_is_isolated(self):
        class ExplodingChannel(RecordingChannel):
            def send_message(self, recipient, text):
                if recipient == "A":
                    raise RuntimeError("boom")
                super().send_message(recipient, text)

        channel = ExplodingChannel()
        report = NotificationDispatcher(channel).dispatch(_job(["A", "B"]))

        assert report.delivered == 1
        assert [recipient for recipient, _ in channel.sent] == ["B"]

    def test_single_attempt_per_recipient(self):
        channel = RecordingChannel(failing={"A"})
        NotificationDispatcher(channel).dispatch(_job(["A"]))
        assert channel.attempted == ["A"]


class TestSubmit:
    def test_submitted_job_is_delivered(self):
        channel = RecordingChannel()
        dispatcher = NotificationDispatcher(channel, max_workers=2)

        future = dispatcher.submit(_job(["42"]))
        report = future.result(timeout=5)
        dispatcher.shutdown()

        assert report.delivered == 1
        assert channel.sent[0][0] == "42"

    def test_shutdown_waits_for_pending_jobs(self):
        channel = RecordingChannel()
        dispatcher = NotificationDispatcher(channel, max_workers=1)

        for sha in ("c1", "c2", "c3"):
            dispatcher.submit(_job(["42"], sha=sha))
        dispatcher.shutdown(wait=True)

        assert len(channel.sent) == 3

    def test_concurrent_submits_share_one_pool(self):
        created = []

        class CountingExecutor(ThreadPoolExecutor):
            def __init__(self, *args, **kwargs):
                created.append(self)
                super().__init__(*args, **kwargs)

        channel = RecordingChannel()
        submitters = 8
        barrier = threading.Barrier(submitters, timeout=5)
        with patch("commit_watcher.application.notification_dispatcher.ThreadPoolExecutor", CountingExecutor):
            dispatcher = NotificationDispatcher(channel, max_workers=2)

            def submit(index):
                barrier.wait()
                dispatcher.submit(_job([str(index)], sha=f"c{index}"))

            threads = [threading.Thread(target=submit, args=(index,)) for index in range(submitters)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
            dispatcher.shutdown(wait=True)

        assert len(created) == 1
        assert len(channel.sent) == submitters

    def test_submit_after_shutdown_is_rejected(self):
        channel = RecordingChannel()
        dispatcher = NotificationDispatcher(channel)
        dispatcher.shutdown()

        with pytest.raises(RuntimeError):
            dispatcher.submit(_job(["42"]))
        assert channel.attempted == []
