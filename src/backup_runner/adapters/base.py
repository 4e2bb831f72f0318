from __future__ import annotations

import gzip
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import ClassVar, Dict, List, Optional, Sequence, Type

from pydantic import BaseModel

from backup_runner.config import Procedure
from backup_runner.job_engine import BackupServiceError, RunContext

LOG = logging.getLogger(__name__)


class AdapterError(BackupServiceError):
    """Raised when an adapter cannot produce its artifact."""


class BackupAdapter:
    """Produces one backup artifact for a procedure.

    Subclasses declare an ``options_model`` used to read the procedure's
    adapter-specific settings, an artifact ``extension`` and implement
    :meth:`produce`.
    """

    options_model: ClassVar[Type[BaseModel]]
    extension: ClassVar[str]

    def __init__(self, trigger: str, procedure: Procedure) -> None:
        self.trigger = trigger
        self.procedure = procedure
        self.options = self.options_model.model_validate(procedure.options)

    def perform(self, context: RunContext) -> Path:
        artifact = context.workspace / f"{self.trigger}.{context.timestamp}.{self.extension}"
        self.produce(context, artifact)
        if not artifact.exists():
            raise AdapterError(f"Adapter produced no artifact at {artifact}")
        LOG.info("Created artifact %s (%d bytes)", artifact.name, artifact.stat().st_size)
        return artifact

    def produce(self, context: RunContext, artifact: Path) -> None:
        raise NotImplementedError


def run_to_gzip(
    cmd: Sequence[str],
    artifact: Path,
    env: Optional[Dict[str, str]] = None,
    description: str = "command",
) -> None:
    """Run ``cmd`` and gzip its standard output into ``artifact``."""
    LOG.info("Running %s", cmd[0])
    try:
        with gzip.open(artifact, "wb") as out, tempfile.TemporaryFile() as errfile:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=errfile, env=env)
            try:
                shutil.copyfileobj(proc.stdout, out)
            except BaseException:
                proc.kill()
                raise
            finally:
                proc.stdout.close()
                returncode = proc.wait()
            errfile.seek(0)
            stderr = errfile.read()
    except FileNotFoundError as exc:
        artifact.unlink(missing_ok=True)
        raise AdapterError(f"{description} executable not found: {cmd[0]}") from exc
    except OSError as exc:
        artifact.unlink(missing_ok=True)
        raise AdapterError(f"Writing {artifact.name} from {description} failed: {exc}") from exc

    if returncode != 0:
        message = stderr.decode("utf-8", "ignore").strip()
        LOG.error("%s failed: %s", description, message)
        artifact.unlink(missing_ok=True)
        raise AdapterError(f"{description} exited with status {returncode}: {message}")


def extend_flags(cmd: List[str], flag: str, values: Sequence[str]) -> None:
    for value in values:
        cmd.append(f"{flag}{value}")
