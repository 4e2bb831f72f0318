from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from backup_runner.job_engine import RunContext

from .base import AdapterError, BackupAdapter, extend_flags, run_to_gzip


class MySQLOptions(BaseModel):
    database: Optional[str] = None
    user: Optional[str] = None
    password_env: Optional[str] = Field(default=None, description="Environment variable holding the password.")
    host: Optional[str] = None
    port: Optional[int] = None
    socket: Optional[str] = None
    tables: List[str] = Field(default_factory=list)
    skip_tables: List[str] = Field(default_factory=list)
    additional_options: List[str] = Field(default_factory=list)
    binary: str = "mysqldump"


class MySQL(BackupAdapter):
    """Dumps a MySQL database with mysqldump."""

    options_model = MySQLOptions
    extension = "sql.gz"

    def build_command(self) -> List[str]:
        opts: MySQLOptions = self.options
        if not opts.database:
            raise AdapterError(f"Procedure '{self.trigger}' has no MySQL database configured")

        cmd = [opts.binary]
        if opts.user:
            cmd.append(f"--user={opts.user}")
        if opts.host:
            cmd.append(f"--host={opts.host}")
        if opts.port:
            cmd.append(f"--port={opts.port}")
        if opts.socket:
            cmd.append(f"--socket={opts.socket}")
        extend_flags(cmd, f"--ignore-table={opts.database}.", opts.skip_tables)
        cmd.extend(opts.additional_options)
        cmd.append(opts.database)
        cmd.extend(opts.tables)
        return cmd

    def produce(self, context: RunContext, artifact: Path) -> None:
        cmd = self.build_command()
        env = os.environ.copy()
        if self.options.password_env:
            password = os.getenv(self.options.password_env)
            if password is None:
                raise AdapterError(f"Environment variable {self.options.password_env} is not set")
            # MYSQL_PWD keeps the password off the process list.
            env["MYSQL_PWD"] = password
        run_to_gzip(cmd, artifact, env=env, description="mysqldump")
