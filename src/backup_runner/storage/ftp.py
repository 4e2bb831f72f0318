from __future__ import annotations

import ftplib
import logging
import posixpath
from datetime import datetime
from pathlib import Path
from typing import Callable

from backup_runner.config import FtpStorageConfig, Procedure
from backup_runner.job_engine import StorageError

from .filesystem import retention_cutoff

LOG = logging.getLogger(__name__)

MLSD_TIME_FORMAT = "%Y%m%d%H%M%S"


class FtpStorageAdapter:
    """Uploads artifacts to ``<path>/<trigger>/`` on an FTP server."""

    def __init__(
        self,
        name: str,
        config: FtpStorageConfig,
        ftp_factory: Callable[[], ftplib.FTP] = ftplib.FTP,
    ) -> None:
        self.name = name
        self.config = config
        self._ftp_factory = ftp_factory

    def remote_dir(self, procedure: Procedure) -> str:
        return posixpath.normpath(posixpath.join(self.config.path, procedure.trigger))

    def _connect(self) -> ftplib.FTP:
        ftp = self._ftp_factory()
        ftp.connect(self.config.host, self.config.port, timeout=self.config.timeout)
        ftp.login(self.config.user or "anonymous", self.config.resolved_password())
        ftp.set_pasv(self.config.passive)
        return ftp

    @staticmethod
    def _enter_dir(ftp: ftplib.FTP, remote_dir: str, create: bool) -> None:
        if remote_dir.startswith("/"):
            ftp.cwd("/")
        for part in [p for p in remote_dir.split("/") if p and p != "."]:
            try:
                ftp.cwd(part)
            except ftplib.error_perm:
                if not create:
                    raise
                ftp.mkd(part)
                ftp.cwd(part)

    def store(self, artifact: Path, procedure: Procedure, started_at: datetime) -> str:  # noqa: ARG002
        remote_dir = self.remote_dir(procedure)
        location = f"ftp://{self.config.host}/{remote_dir.lstrip('/')}/{artifact.name}"
        try:
            with self._connect() as ftp:
                self._enter_dir(ftp, remote_dir, create=True)
                with artifact.open("rb") as fh:
                    ftp.storbinary(f"STOR {artifact.name}", fh)
        except ftplib.all_errors as exc:
            LOG.error("FTP upload to %s failed: %s", self.config.host, exc)
            raise StorageError(f"Upload to {location} failed: {exc}") from exc
        LOG.info("Uploaded %s to %s", artifact.name, location)
        return location

    def enforce_retention(self, procedure: Procedure, retention_days: int) -> None:
        if retention_days <= 0:
            return

        cutoff = retention_cutoff(retention_days)
        try:
            with self._connect() as ftp:
                try:
                    self._enter_dir(ftp, self.remote_dir(procedure), create=False)
                except ftplib.error_perm:
                    LOG.debug("No backups on %s for %s yet", self.name, procedure.trigger)
                    return
                for filename, facts in list(ftp.mlsd(facts=["type", "modify"])):
                    if facts.get("type") != "file" or "modify" not in facts:
                        continue
                    modified = datetime.strptime(facts["modify"][:14], MLSD_TIME_FORMAT)
                    if modified < cutoff:
                        LOG.info("Removing expired backup %s from %s", filename, self.name)
                        ftp.delete(filename)
        except ftplib.all_errors as exc:
            raise StorageError(f"Retention on ftp://{self.config.host} failed: {exc}") from exc
