"""Tests for the cron scheduler loop."""

import logging

import pytest

from backup_runner import cli
from backup_runner.config import load_config
from backup_runner.scheduler import TriggerScheduler

SCHEDULER_BLOCK = '\nscheduler:\n  cron: "0 3 * * *"\n  run_on_startup: true\n'


@pytest.fixture
def scheduled_config_file(config_file):
    config_file.write_text(config_file.read_text() + SCHEDULER_BLOCK)
    return config_file


class TestTriggerScheduler:
    """Tests for TriggerScheduler."""

    def test_requires_scheduler_block(self, config_file):
        with pytest.raises(ValueError, match="Scheduler configuration is required"):
            TriggerScheduler(config_file, load_config(config_file), ["weekly-archive"], runner=lambda c, t: 0)

    def test_startup_run_then_stop(self, scheduled_config_file):
        calls = []

        def runner(config, triggers):
            calls.append(list(triggers))
            scheduler.stop()
            return cli.EXIT_OK

        scheduler = TriggerScheduler(
            scheduled_config_file, load_config(scheduled_config_file), ["weekly-archive"], runner=runner
        )

        assert scheduler.run() == cli.EXIT_OK
        assert calls == [["weekly-archive"]]
        assert scheduler.runs == 1

    def test_real_run_through_cli_runner(self, scheduled_config_file, tmp_path):
        """Test one scheduled tick performs the backup via the CLI runner."""
        config = load_config(scheduled_config_file)
        results = []

        def runner(config, triggers):
            results.append(cli.run_triggers(config, triggers))
            scheduler.stop()
            return results[-1]

        scheduler = TriggerScheduler(scheduled_config_file, config, ["weekly-archive"], runner=runner)
        scheduler.run()

        assert results == [cli.EXIT_OK]
        assert list((tmp_path / "backups" / "weekly-archive").iterdir())

    def test_runner_exception_is_isolated(self, scheduled_config_file, caplog):
        def runner(config, triggers):
            raise RuntimeError("adapter blew up")

        scheduler = TriggerScheduler(
            scheduled_config_file, load_config(scheduled_config_file), ["weekly-archive"], runner=runner
        )

        assert scheduler.run_once() == cli.EXIT_RUN_FAILED
        assert "Scheduled run of weekly-archive raised" in caplog.text
        assert "adapter blew up" in caplog.text

    def test_config_error_logged_once(self, scheduled_config_file, caplog):
        scheduler = TriggerScheduler(
            scheduled_config_file,
            load_config(scheduled_config_file),
            ["monthly"],
            runner=lambda config, triggers: cli.EXIT_CONFIG_ERROR,
        )

        with caplog.at_level(logging.INFO, logger="backup_runner.scheduler"):
            for _ in range(3):
                assert scheduler.run_once() == cli.EXIT_CONFIG_ERROR

        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "monthly" in errors[0].getMessage()
        assert not [r for r in caplog.records if r.levelno == logging.WARNING]

    def test_reload_picks_up_changes(self, scheduled_config_file):
        scheduler = TriggerScheduler(
            scheduled_config_file, load_config(scheduled_config_file), ["weekly-archive"], runner=lambda c, t: 0
        )
        scheduled_config_file.write_text(
            scheduled_config_file.read_text().replace("default_retention_days: 7", "default_retention_days: 3")
        )

        assert scheduler.reload()
        assert scheduler.config.default_retention_days == 3

    def test_reload_keeps_previous_config_on_error(self, scheduled_config_file, caplog):
        config = load_config(scheduled_config_file)
        scheduler = TriggerScheduler(scheduled_config_file, config, ["weekly-archive"], runner=lambda c, t: 0)
        scheduled_config_file.write_text("procedures: [unclosed\n")

        assert scheduler.reload()
        assert scheduler.config is config
        assert "Failed to reload configuration" in caplog.text

    def test_reload_stops_when_scheduler_removed(self, scheduled_config_file):
        scheduler = TriggerScheduler(
            scheduled_config_file, load_config(scheduled_config_file), ["weekly-archive"], runner=lambda c, t: 0
        )
        scheduled_config_file.write_text(scheduled_config_file.read_text().replace(SCHEDULER_BLOCK, ""))

        assert not scheduler.reload()

    def test_cli_wires_scheduler(self, scheduled_config_file, monkeypatch):
        """Test main runs the scheduler loop with the CLI runner and signal handlers."""
        handlers = {}
        monkeypatch.setattr(cli.signal, "signal", lambda signum, handler: handlers.setdefault(signum, handler))

        def fake_run_triggers(config, triggers):
            handlers[cli.signal.SIGTERM](cli.signal.SIGTERM, None)
            return cli.EXIT_OK

        monkeypatch.setattr(cli, "run_triggers", fake_run_triggers)

        assert cli.main(["--config", str(scheduled_config_file), "-r", "weekly-archive"]) == cli.EXIT_OK
        assert set(handlers) == {cli.signal.SIGTERM, cli.signal.SIGINT}
