from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from backup_runner.job_engine import RunContext

from .base import AdapterError, BackupAdapter, extend_flags, run_to_gzip


class PostgreSQLOptions(BaseModel):
    database: Optional[str] = None
    user: Optional[str] = None
    password_env: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    socket: Optional[str] = Field(default=None, description="Socket directory, passed to pg_dump as --host.")
    tables: List[str] = Field(default_factory=list)
    skip_tables: List[str] = Field(default_factory=list)
    additional_options: List[str] = Field(default_factory=list)
    binary: str = "pg_dump"


class PostgreSQL(BackupAdapter):
    """Dumps a PostgreSQL database with pg_dump."""

    options_model = PostgreSQLOptions
    extension = "sql.gz"

    def build_command(self) -> List[str]:
        opts: PostgreSQLOptions = self.options
        if not opts.database:
            raise AdapterError(f"Procedure '{self.trigger}' has no PostgreSQL database configured")

        cmd = [opts.binary]
        if opts.user:
            cmd.append(f"--username={opts.user}")
        host = opts.socket or opts.host
        if host:
            cmd.append(f"--host={host}")
        if opts.port:
            cmd.append(f"--port={opts.port}")
        extend_flags(cmd, "--table=", opts.tables)
        extend_flags(cmd, "--exclude-table=", opts.skip_tables)
        cmd.extend(opts.additional_options)
        cmd.append(opts.database)
        return cmd

    def produce(self, context: RunContext, artifact: Path) -> None:
        cmd = self.build_command()
        env = os.environ.copy()
        if self.options.password_env:
            password = os.getenv(self.options.password_env)
            if password is None:
                raise AdapterError(f"Environment variable {self.options.password_env} is not set")
            env["PGPASSWORD"] = password
        run_to_gzip(cmd, artifact, env=env, description="pg_dump")
