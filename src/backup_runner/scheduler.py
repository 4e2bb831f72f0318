"""Cron-driven repetition of trigger runs."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from croniter import croniter

from .config import ConfigurationError, CoreConfig, load_config

LOG = logging.getLogger(__name__)

TriggerRunner = Callable[[CoreConfig, List[str]], int]

# Mirrors the CLI exit codes; the runner reports through them.
RUN_OK = 0
RUN_FAILED = 1
RUN_CONFIG_ERROR = 2

MAX_SLEEP_SECONDS = 60


class TriggerScheduler:
    """Runs a fixed list of triggers on the configured cron schedule.

    The configuration file is re-read before every run so edits take effect
    without a restart. The loop ends when :meth:`stop` is called or the
    ``scheduler`` block disappears from the configuration.
    """

    def __init__(
        self,
        config_path: Path,
        config: CoreConfig,
        triggers: List[str],
        runner: TriggerRunner,
    ) -> None:
        if not config.scheduler:
            raise ValueError("Scheduler configuration is required")
        self._config_path = config_path
        self._config = config
        self._triggers = list(triggers)
        self._runner = runner
        self._stop_event = threading.Event()
        self._last_exit: Optional[int] = None
        self.runs = 0

    @property
    def config(self) -> CoreConfig:
        return self._config

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self._config.scheduler.timezone)

    def stop(self) -> None:
        self._stop_event.set()

    def next_run_after(self, reference: datetime) -> datetime:
        return croniter(self._config.scheduler.cron, reference).get_next(datetime)

    def reload(self) -> bool:
        """Re-read the configuration; returns False when scheduling was removed."""
        try:
            config = load_config(self._config_path)
        except ConfigurationError as exc:
            LOG.error("Failed to reload configuration: %s; continuing with previous settings", exc)
            return True
        if not config.scheduler:
            LOG.info("Scheduler removed from configuration; exiting loop")
            return False
        self._config = config
        return True

    def run_once(self) -> int:
        self.runs += 1
        try:
            exit_code = self._runner(self._config, self._triggers)
        except Exception:  # noqa: BLE001
            LOG.exception("Scheduled run of %s raised", ", ".join(self._triggers))
            exit_code = RUN_FAILED

        if exit_code == RUN_CONFIG_ERROR:
            if self._last_exit != RUN_CONFIG_ERROR:
                LOG.error(
                    "Triggers %s cannot be run with the current configuration; "
                    "retrying on every schedule until it is fixed",
                    ", ".join(self._triggers),
                )
        elif exit_code != RUN_OK:
            LOG.warning("Scheduled run completed with errors (exit code %s)", exit_code)
        self._last_exit = exit_code
        return exit_code

    def run(self) -> int:
        now = datetime.now(self.timezone)
        if self._config.scheduler.run_on_startup:
            LOG.info("Executing initial run immediately")
            next_run = now
        else:
            next_run = self.next_run_after(now)
            LOG.info("Next run scheduled for %s", next_run.isoformat())

        while not self._stop_event.is_set():
            now = datetime.now(self.timezone)
            if now < next_run:
                sleep_for = (next_run - now).total_seconds()
                self._stop_event.wait(min(sleep_for, MAX_SLEEP_SECONDS))
                continue

            # The startup run uses the configuration already loaded.
            if self.runs and not self.reload():
                break
            self.run_once()
            next_run = self.next_run_after(datetime.now(self.timezone))
            LOG.info("Next run scheduled for %s", next_run.isoformat())

        LOG.info("Scheduler stopped")
        return RUN_OK
