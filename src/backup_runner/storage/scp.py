from __future__ import annotations

import logging
import subprocess
from datetime import datetime
from pathlib import Path
from typing import List

from backup_runner.config import Procedure, ScpStorageConfig
from backup_runner.job_engine import StorageError

LOG = logging.getLogger(__name__)


class ScpStorageAdapter:
    """Copies artifacts to a remote host with scp."""

    def __init__(self, name: str, config: ScpStorageConfig) -> None:
        self.name = name
        self.config = config

    @property
    def remote(self) -> str:
        host = f"{self.config.user}@{self.config.host}" if self.config.user else self.config.host
        return f"{host}:{self.config.path.rstrip('/')}/"

    def build_command(self, artifact: Path) -> List[str]:
        cmd = ["scp", "-B", "-P", str(self.config.port)]
        if self.config.identity_file:
            cmd.extend(["-i", str(self.config.identity_file)])
        cmd.extend([str(artifact), self.remote])
        return cmd

    def store(self, artifact: Path, procedure: Procedure, started_at: datetime) -> str:  # noqa: ARG002
        cmd = self.build_command(artifact)
        LOG.info("Copying %s to %s", artifact.name, self.remote)
        try:
            subprocess.run(cmd, check=True, capture_output=True)
        except FileNotFoundError as exc:
            raise StorageError("scp executable not found") from exc
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode("utf-8", "ignore").strip()
            LOG.error("scp failed: %s", stderr)
            raise StorageError(f"scp to {self.remote} failed: {stderr}") from exc
        return self.remote + artifact.name

    def enforce_retention(self, procedure: Procedure, retention_days: int) -> None:  # noqa: ARG002
        LOG.debug("Retention is not supported for scp storage %s", self.name)
