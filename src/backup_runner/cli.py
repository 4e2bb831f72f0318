from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError

from .adapters import UnknownAdapter
from .config import ConfigurationError, CoreConfig, load_config
from .logger import configure_logging
from .notifications import build_notifier
from .orchestrator import BackupOrchestrator
from .procedures import ProcedureNotFound
from .scheduler import TriggerScheduler

DEFAULT_CONFIG_PATH = "/etc/backup-runner/backup-runner.yaml"

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run configured backup procedures by trigger.")
    parser.add_argument(
        "--config",
        default=os.getenv("BACKUP_RUNNER_CONFIG", DEFAULT_CONFIG_PATH),
        help="Path to configuration YAML file.",
    )
    parser.add_argument(
        "-r",
        "--run",
        dest="triggers",
        action="append",
        metavar="TRIGGER",
        help="Trigger of the procedure to run (can be specified multiple times).",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List the triggers defined in the configuration and exit.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Log level (default INFO).",
    )
    args = parser.parse_args(argv)
    if not args.list and not args.triggers:
        parser.error("at least one --run TRIGGER is required")
    return args


def load_configuration(path: Path) -> CoreConfig:
    try:
        return load_config(path)
    except ConfigurationError as exc:
        logging.error("Configuration error: %s", exc)
        raise SystemExit(EXIT_CONFIG_ERROR) from exc


def list_procedures(config: CoreConfig) -> None:
    for procedure in config.procedures:
        print(f"{procedure.trigger}\t{procedure.adapter_name}")


def run_triggers(config: CoreConfig, triggers: List[str]) -> int:
    orchestrator = BackupOrchestrator(config=config)
    try:
        results = orchestrator.run(triggers)
    except (ProcedureNotFound, UnknownAdapter) as exc:
        logging.error("%s", exc)
        return EXIT_CONFIG_ERROR
    except ValidationError as exc:
        logging.error("Invalid adapter options: %s", exc)
        return EXIT_CONFIG_ERROR

    success = True
    for result in results:
        if result.success:
            logging.info("Procedure %s succeeded in %.2fs", result.trigger, result.duration)
        else:
            success = False
            logging.error("Procedure %s failed: %s", result.trigger, "; ".join(result.errors))

    notifier = build_notifier(config.notifications)
    if notifier:
        notifier.notify(results)

    return EXIT_OK if success else EXIT_RUN_FAILED


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    config_path = Path(args.config).expanduser()
    config = load_configuration(config_path)

    if args.list:
        list_procedures(config)
        return EXIT_OK

    if config.scheduler:
        return run_with_scheduler(
            config_path=config_path,
            initial_config=config,
            triggers=args.triggers,
        )
    return run_triggers(config, args.triggers)


def run_with_scheduler(
    config_path: Path,
    initial_config: CoreConfig,
    triggers: List[str],
) -> int:
    scheduler = TriggerScheduler(config_path, initial_config, triggers, runner=run_triggers)

    def _handle_signal(signum: int, _frame: Optional[object]) -> None:
        logging.info("Received signal %s; stopping scheduler", signum)
        scheduler.stop()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)
    return scheduler.run()


if __name__ == "__main__":
    sys.exit(main())
