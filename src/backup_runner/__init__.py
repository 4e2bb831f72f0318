"""Trigger-driven backup runner."""

from __future__ import annotations

from .adapters import UnknownAdapter, dispatch  # noqa: F401
from .config import CoreConfig, Platform, Procedure, load_config  # noqa: F401
from .orchestrator import BackupOrchestrator  # noqa: F401
from .procedures import ProcedureNotFound, resolve  # noqa: F401
