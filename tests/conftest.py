"""Pytest configuration and shared fixtures."""

from datetime import datetime

import pytest

from backup_runner.config import Procedure
from backup_runner.job_engine import RunContext


@pytest.fixture
def procedures():
    """The two-procedure set used throughout the lookup and dispatch tests."""
    return [
        Procedure(trigger="daily-db", adapter_name="mysql", options={"database": "app"}),
        Procedure(trigger="weekly-archive", adapter_name="archive"),
    ]


@pytest.fixture
def run_context(tmp_path):
    """Build a RunContext for a procedure with its workspace under tmp_path."""

    def _build(procedure):
        workspace = tmp_path / "workspace"
        workspace.mkdir(exist_ok=True)
        return RunContext(
            trigger=procedure.trigger,
            procedure=procedure,
            started_at=datetime(2024, 5, 17, 3, 0, 0),
            workspace=workspace,
        )

    return _build


@pytest.fixture
def source_tree(tmp_path):
    """A small directory tree to archive."""
    root = tmp_path / "data"
    (root / "nested").mkdir(parents=True)
    (root / "keep.txt").write_text("keep")
    (root / "skip.log").write_text("skip")
    (root / "nested" / "inner.txt").write_text("inner")
    return root


@pytest.fixture
def sample_config_yaml(tmp_path, source_tree):
    """Return a valid configuration with filesystem storage and two procedures."""
    return f"""
platform: unix
tmp_path: {tmp_path / "work"}
default_retention_days: 7

storage:
  default:
    type: filesystem
    base_path: {tmp_path / "backups"}

procedures:
  - trigger: daily-db
    adapter: mysql
    options:
      database: app
      user: backup
  - trigger: weekly-archive
    adapter: archive
    retention_days: 30
    options:
      files:
        - {source_tree}
      exclude:
        - "*.log"
"""


@pytest.fixture
def config_file(tmp_path, sample_config_yaml):
    """Write the sample configuration to disk."""
    path = tmp_path / "backup-runner.yaml"
    path.write_text(sample_config_yaml)
    return path
