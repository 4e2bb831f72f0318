from __future__ import annotations

import fnmatch
import logging
import tarfile
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from backup_runner.job_engine import RunContext

from .base import AdapterError, BackupAdapter

LOG = logging.getLogger(__name__)


class ArchiveOptions(BaseModel):
    files: List[Path] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)

    @field_validator("files")
    @classmethod
    def _expand_files(cls, value: List[Path]) -> List[Path]:
        return [path.expanduser() for path in value]


class Archive(BackupAdapter):
    """Packs files and directories into a gzipped tarball."""

    options_model = ArchiveOptions
    extension = "tar.gz"

    def produce(self, context: RunContext, artifact: Path) -> None:
        opts: ArchiveOptions = self.options
        if not opts.files:
            raise AdapterError(f"Procedure '{self.trigger}' lists no files to archive")
        missing = [str(path) for path in opts.files if not path.exists()]
        if missing:
            raise AdapterError(f"Paths to archive do not exist: {', '.join(missing)}")

        with tarfile.open(artifact, "w:gz") as tar:
            for path in opts.files:
                LOG.info("Adding %s to %s", path, artifact.name)
                tar.add(path, arcname=str(path).lstrip("/"), filter=self._exclude_filter(path))

    def _exclude_filter(self, root: Path):
        patterns = self.options.exclude
        if not patterns:
            return None
        prefix = str(root).lstrip("/")

        def _filter(info: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
            # Patterns match either the absolute source path or the base name.
            source = "/" + info.name if str(root).startswith("/") else info.name
            name = info.name.rsplit("/", 1)[-1]
            if info.name != prefix and any(
                fnmatch.fnmatch(source, pattern) or fnmatch.fnmatch(name, pattern) for pattern in patterns
            ):
                LOG.debug("Excluding %s", source)
                return None
            return info

        return _filter
