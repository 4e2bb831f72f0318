"""Tests for Slack notifications."""

from datetime import datetime, timedelta

import requests

from backup_runner import notifications
from backup_runner.config import NotificationsConfig
from backup_runner.job_engine import RunResult
from backup_runner.notifications import SlackNotifier, build_notifier, format_summary

STARTED = datetime(2024, 5, 17, 3, 0, 0)


def _result(trigger, errors=None):
    return RunResult(
        trigger=trigger,
        status="failed" if errors else "success",
        started_at=STARTED,
        completed_at=STARTED + timedelta(seconds=12),
        errors=errors or [],
    )


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class TestSlackNotifier:
    """Tests for SlackNotifier."""

    def test_posts_on_failure(self, monkeypatch):
        posts = []
        monkeypatch.setattr(
            notifications.requests,
            "post",
            lambda url, json, timeout: posts.append((url, json)) or FakeResponse(),
        )

        sent = SlackNotifier("https://hooks.example/x").notify([_result("a"), _result("b", ["disk full"])])

        assert sent
        assert posts[0][0] == "https://hooks.example/x"
        assert ":x: b failed: disk full" in posts[0][1]["text"]

    def test_silent_on_success(self, monkeypatch):
        monkeypatch.setattr(notifications.requests, "post", lambda *a, **k: 1 / 0)

        assert not SlackNotifier("https://hooks.example/x").notify([_result("a")])

    def test_notify_on_success(self, monkeypatch):
        monkeypatch.setattr(notifications.requests, "post", lambda url, json, timeout: FakeResponse())

        assert SlackNotifier("https://hooks.example/x", notify_on_success=True).notify([_result("a")])

    def test_post_failure_is_logged(self, monkeypatch, caplog):
        monkeypatch.setattr(notifications.requests, "post", lambda url, json, timeout: FakeResponse(500))

        assert not SlackNotifier("https://hooks.example/x").notify([_result("a", ["boom"])])
        assert "Slack notification failed" in caplog.text


class TestHelpers:
    """Tests for summary formatting and notifier construction."""

    def test_format_summary(self):
        text = format_summary([_result("a"), _result("b", ["x", "y"])])

        assert text.splitlines() == [
            ":white_check_mark: a succeeded in 12.0s",
            ":x: b failed: x; y",
        ]

    def test_build_notifier_requires_webhook(self, monkeypatch):
        monkeypatch.delenv("TEST_SLACK_WEBHOOK", raising=False)
        config = NotificationsConfig(slack_webhook_env="TEST_SLACK_WEBHOOK")

        assert build_notifier(config) is None
        assert build_notifier(NotificationsConfig()) is None

        monkeypatch.setenv("TEST_SLACK_WEBHOOK", "https://hooks.example/x")
        assert isinstance(build_notifier(config), SlackNotifier)
