from __future__ import annotations

from enum import Enum
from typing import Dict, Type

from backup_runner.config import Procedure

from .archive import Archive
from .base import AdapterError, BackupAdapter
from .custom import Custom
from .mysql import MySQL
from .postgresql import PostgreSQL


class UnknownAdapter(LookupError):
    """Raised when a procedure names an adapter outside the known set."""

    def __init__(self, adapter_name: str) -> None:
        self.adapter_name = adapter_name
        super().__init__(f'Unknown Adapter: "{adapter_name}".')


class AdapterKind(str, Enum):
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    ARCHIVE = "archive"
    CUSTOM = "custom"


ADAPTERS: Dict[AdapterKind, Type[BackupAdapter]] = {
    AdapterKind.MYSQL: MySQL,
    AdapterKind.POSTGRESQL: PostgreSQL,
    AdapterKind.ARCHIVE: Archive,
    AdapterKind.CUSTOM: Custom,
}


def dispatch(trigger: str, procedure: Procedure) -> BackupAdapter:
    try:
        kind = AdapterKind(procedure.adapter_name)
    except ValueError as exc:
        raise UnknownAdapter(procedure.adapter_name) from exc
    return ADAPTERS[kind](trigger, procedure)


__all__ = [
    "ADAPTERS",
    "AdapterError",
    "AdapterKind",
    "Archive",
    "BackupAdapter",
    "Custom",
    "MySQL",
    "PostgreSQL",
    "UnknownAdapter",
    "dispatch",
]
