from __future__ import annotations

import logging
import posixpath
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import paramiko

from backup_runner.config import Procedure, SftpStorageConfig
from backup_runner.job_engine import StorageError

from .filesystem import retention_cutoff

LOG = logging.getLogger(__name__)


class SftpStorageAdapter:
    """Uploads artifacts to ``<path>/<trigger>/`` over SFTP.

    Host keys are checked against the system known_hosts file; unknown hosts
    are rejected unless ``accept_unknown_hosts`` is set.
    """

    def __init__(
        self,
        name: str,
        config: SftpStorageConfig,
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
    ) -> None:
        self.name = name
        self.config = config
        self._client_factory = client_factory

    def remote_dir(self, procedure: Procedure) -> str:
        return posixpath.normpath(posixpath.join(self.config.path, procedure.trigger))

    def _connect(self) -> paramiko.SSHClient:
        client = self._client_factory()
        client.load_system_host_keys()
        policy = paramiko.AutoAddPolicy() if self.config.accept_unknown_hosts else paramiko.RejectPolicy()
        client.set_missing_host_key_policy(policy)
        try:
            client.connect(
                hostname=self.config.host,
                port=self.config.port,
                username=self.config.user,
                password=self.config.resolved_password(),
                key_filename=str(self.config.identity_file) if self.config.identity_file else None,
                timeout=self.config.timeout,
            )
        except BaseException:
            client.close()
            raise
        return client

    @staticmethod
    def _makedirs(sftp: paramiko.SFTPClient, remote_dir: str) -> None:
        current = "/" if remote_dir.startswith("/") else ""
        for part in [p for p in remote_dir.split("/") if p and p != "."]:
            current = posixpath.join(current, part) if current else part
            try:
                sftp.stat(current)
            except FileNotFoundError:
                sftp.mkdir(current)

    def store(self, artifact: Path, procedure: Procedure, started_at: datetime) -> str:  # noqa: ARG002
        remote_path = posixpath.join(self.remote_dir(procedure), artifact.name)
        location = f"sftp://{self.config.host}/{remote_path.lstrip('/')}"
        client = None
        try:
            client = self._connect()
            with client.open_sftp() as sftp:
                self._makedirs(sftp, self.remote_dir(procedure))
                sftp.put(str(artifact), remote_path)
        except (paramiko.SSHException, OSError) as exc:
            LOG.error("SFTP upload to %s failed: %s", self.config.host, exc)
            raise StorageError(f"Upload to {location} failed: {exc}") from exc
        finally:
            if client is not None:
                client.close()
        LOG.info("Uploaded %s to %s", artifact.name, location)
        return location

    def enforce_retention(self, procedure: Procedure, retention_days: int) -> None:
        if retention_days <= 0:
            return

        cutoff = retention_cutoff(retention_days).replace(tzinfo=timezone.utc).timestamp()
        remote_dir = self.remote_dir(procedure)
        client = None
        try:
            client = self._connect()
            with client.open_sftp() as sftp:
                try:
                    entries = sftp.listdir_attr(remote_dir)
                except FileNotFoundError:
                    LOG.debug("No backups on %s for %s yet", self.name, procedure.trigger)
                    return
                for entry in entries:
                    if not stat.S_ISREG(entry.st_mode or 0) or entry.st_mtime is None:
                        continue
                    if entry.st_mtime < cutoff:
                        LOG.info("Removing expired backup %s from %s", entry.filename, self.name)
                        sftp.remove(posixpath.join(remote_dir, entry.filename))
        except (paramiko.SSHException, OSError) as exc:
            raise StorageError(f"Retention on sftp://{self.config.host} failed: {exc}") from exc
        finally:
            if client is not None:
                client.close()
