from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, List, Sequence

from .adapters import dispatch
from .config import CoreConfig, Procedure, load_config
from .job_engine import JobEngine, RunnableAdapter, RunResult, StorageAdapter
from .procedures import resolve
from .storage import build_storage_adapter

LOG = logging.getLogger(__name__)

AdapterFactory = Callable[[str, Procedure], RunnableAdapter]


class BackupOrchestrator:
    """Resolves triggers, dispatches adapters and runs them through the job engine."""

    def __init__(self, config: CoreConfig, adapter_factory: AdapterFactory = dispatch) -> None:
        self._config = config
        self._adapter_factory = adapter_factory
        self._storage_adapters: Dict[str, StorageAdapter] = {
            name: build_storage_adapter(name, storage_cfg)
            for name, storage_cfg in config.storage.items()
        }

    def run(self, triggers: Sequence[str]) -> List[RunResult]:
        # Lookup and dispatch errors abort before any backup starts.
        prepared = []
        for trigger in triggers:
            procedure = resolve(trigger, self._config.procedures)
            prepared.append((trigger, procedure, self._adapter_factory(trigger, procedure)))

        results: List[RunResult] = []
        for trigger, procedure, adapter in prepared:
            engine = JobEngine(
                storage_adapters=[self._storage_adapters[name] for name in procedure.storage],
                working_directory=self._config.working_directory(),
            )
            retention_days = procedure.effective_retention(self._config.default_retention_days)
            results.append(engine.run(trigger, procedure, adapter, retention_days=retention_days))
        return results


def load_orchestrator(config_path: str, adapter_factory: AdapterFactory = dispatch) -> BackupOrchestrator:
    config = load_config(Path(config_path))
    return BackupOrchestrator(config=config, adapter_factory=adapter_factory)
