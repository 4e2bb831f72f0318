from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import requests

from .config import NotificationsConfig
from .job_engine import RunResult

LOG = logging.getLogger(__name__)


class SlackNotifier:
    """Posts a run summary to a Slack incoming webhook."""

    def __init__(self, webhook_url: str, notify_on_success: bool = False, timeout: float = 10) -> None:
        self._webhook_url = webhook_url
        self._notify_on_success = notify_on_success
        self._timeout = timeout

    def should_notify(self, results: Sequence[RunResult]) -> bool:
        if not results:
            return False
        return self._notify_on_success or any(not result.success for result in results)

    def notify(self, results: Sequence[RunResult]) -> bool:
        if not self.should_notify(results):
            return False

        payload = {"text": format_summary(results)}
        try:
            response = requests.post(self._webhook_url, json=payload, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            LOG.error("Slack notification failed: %s", exc)
            return False
        return True


def format_summary(results: Sequence[RunResult]) -> str:
    lines: List[str] = []
    for result in results:
        if result.success:
            lines.append(f":white_check_mark: {result.trigger} succeeded in {result.duration:.1f}s")
        else:
            lines.append(f":x: {result.trigger} failed: {'; '.join(result.errors)}")
    return "\n".join(lines)


def build_notifier(config: NotificationsConfig) -> Optional[SlackNotifier]:
    webhook_url = config.resolve_slack_webhook()
    if not webhook_url:
        return None
    return SlackNotifier(webhook_url, notify_on_success=config.notify_on_success)
