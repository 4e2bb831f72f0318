from __future__ import annotations

import logging
import os
import subprocess
import tarfile
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field

from backup_runner.job_engine import RunContext

from .base import AdapterError, BackupAdapter

LOG = logging.getLogger(__name__)


class CustomOptions(BaseModel):
    commands: List[str] = Field(default_factory=list)


class Custom(BackupAdapter):
    """Runs operator-supplied shell commands and packs what they leave behind.

    Every command runs with ``$BACKUP_WORKSPACE`` pointing to an empty scratch
    directory; whatever ends up there becomes the artifact.
    """

    options_model = CustomOptions
    extension = "tar.gz"

    def produce(self, context: RunContext, artifact: Path) -> None:
        if not self.options.commands:
            raise AdapterError(f"Procedure '{self.trigger}' has no commands configured")

        scratch = context.workspace / self.trigger
        scratch.mkdir(parents=True, exist_ok=True)
        env = os.environ.copy()
        env["BACKUP_WORKSPACE"] = str(scratch)
        env["BACKUP_TRIGGER"] = self.trigger

        for command in self.options.commands:
            LOG.info("Running custom command for %s: %s", self.trigger, command)
            try:
                subprocess.run(command, shell=True, cwd=scratch, env=env, check=True, capture_output=True)
            except subprocess.CalledProcessError as exc:
                stderr = exc.stderr.decode("utf-8", "ignore").strip()
                LOG.error("Custom command failed: %s", stderr)
                raise AdapterError(f"Command '{command}' exited with status {exc.returncode}: {stderr}") from exc

        with tarfile.open(artifact, "w:gz") as tar:
            tar.add(scratch, arcname=self.trigger)
