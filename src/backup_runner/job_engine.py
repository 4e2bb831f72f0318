from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from .config import Procedure

LOG = logging.getLogger(__name__)


@dataclass
class RunContext:
    trigger: str
    procedure: Procedure
    started_at: datetime
    workspace: Path

    @property
    def timestamp(self) -> str:
        return self.started_at.strftime("%Y%m%d%H%M%S")


@dataclass
class RunResult:
    trigger: str
    status: str
    started_at: datetime
    completed_at: datetime
    artifact_name: str = ""
    locations: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == "success"

    @property
    def duration(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


class RunnableAdapter(Protocol):
    def perform(self, context: RunContext) -> Path:
        ...


class StorageAdapter(Protocol):
    name: str

    def store(self, artifact: Path, procedure: Procedure, started_at: datetime) -> str:
        ...

    def enforce_retention(self, procedure: Procedure, retention_days: int) -> None:
        ...


class BackupServiceError(Exception):
    """Raised by adapters and storage to signal controlled run failures."""

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or [message]


class StorageError(BackupServiceError):
    """Raised when an artifact cannot be shipped to a destination."""


class JobEngine:
    """Runs one dispatched adapter and ships its artifact to storage."""

    DEFAULT_STATUS = "success"

    def __init__(self, storage_adapters: Sequence[StorageAdapter], working_directory: Path) -> None:
        self._storage = list(storage_adapters)
        self._working_directory = working_directory

    def run(
        self,
        trigger: str,
        procedure: Procedure,
        adapter: RunnableAdapter,
        retention_days: int,
    ) -> RunResult:
        started_at = datetime.utcnow()
        self._working_directory.mkdir(parents=True, exist_ok=True)
        workspace = Path(tempfile.mkdtemp(prefix=f"{trigger}-", dir=self._working_directory))
        context = RunContext(trigger=trigger, procedure=procedure, started_at=started_at, workspace=workspace)
        errors: List[str] = []
        locations: List[str] = []
        artifact_name = ""
        status = self.DEFAULT_STATUS

        LOG.info("Running procedure %s with adapter %s", trigger, procedure.adapter_name)
        try:
            artifact = adapter.perform(context)
            artifact_name = artifact.name
            for storage in self._storage:
                try:
                    locations.append(storage.store(artifact, procedure, started_at))
                except BackupServiceError as exc:
                    status = "failed"
                    errors.extend(f"Storage {storage.name}: {error}" for error in exc.errors)
        except BackupServiceError as exc:
            status = "failed"
            errors.extend(exc.errors)
        except Exception as exc:  # noqa: BLE001
            status = "failed"
            errors.append(str(exc))
            LOG.debug("Procedure %s raised", trigger, exc_info=True)
        finally:
            shutil.rmtree(workspace, ignore_errors=True)

        if status == self.DEFAULT_STATUS:
            for storage in self._storage:
                try:
                    storage.enforce_retention(procedure, retention_days)
                except BackupServiceError as exc:
                    LOG.warning("Retention on %s failed: %s", storage.name, exc)

        return RunResult(
            trigger=trigger,
            status=status,
            started_at=started_at,
            completed_at=datetime.utcnow(),
            artifact_name=artifact_name,
            locations=locations,
            errors=errors,
        )
