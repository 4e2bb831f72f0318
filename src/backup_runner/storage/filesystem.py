from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator

from backup_runner.config import Procedure

LOG = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


def retention_cutoff(retention_days: int) -> datetime:
    return datetime.utcnow() - timedelta(days=retention_days)


def expired_runs(trigger_root: Path, cutoff: datetime) -> Iterator[Path]:
    """Yield the dated run directories under ``trigger_root`` older than ``cutoff``."""
    if not trigger_root.is_dir():
        return
    for run_dir in sorted(trigger_root.iterdir()):
        if not run_dir.is_dir():
            continue
        try:
            run_date = datetime.strptime(run_dir.name, DATE_FORMAT)
        except ValueError:
            LOG.debug("Skipping non-date directory %s", run_dir)
            continue
        if run_date < cutoff:
            yield run_dir


@dataclass
class FilesystemStorageAdapter:
    """Stores artifacts under ``<base_path>/<trigger>/<date>/`` on a mounted filesystem."""

    name: str
    base_path: Path

    def store(self, artifact: Path, procedure: Procedure, started_at: datetime) -> str:
        run_dir = self.base_path / procedure.trigger / started_at.strftime(DATE_FORMAT)
        run_dir.mkdir(parents=True, exist_ok=True)
        destination = run_dir / artifact.name
        shutil.copy2(artifact, destination)
        LOG.info("Stored %s in %s", artifact.name, run_dir)
        return str(destination)

    def enforce_retention(self, procedure: Procedure, retention_days: int) -> None:
        if retention_days <= 0:
            return
        cutoff = retention_cutoff(retention_days)
        for run_dir in list(expired_runs(self.base_path / procedure.trigger, cutoff)):
            LOG.info("Removing expired backup %s", run_dir)
            shutil.rmtree(run_dir)
