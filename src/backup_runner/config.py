from __future__ import annotations

import logging
import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from croniter import CroniterBadCronError, croniter
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .procedures import duplicate_triggers

LOG = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when the backup runner configuration is invalid."""


class Platform(str, Enum):
    """Host flavour used to pick the default working directory."""

    UNIX = "unix"
    RAILS = "rails"


# --- Storage -----------------------------------------------------------------


class FilesystemStorageConfig(BaseModel):
    type: Literal["filesystem"]
    base_path: Path

    @field_validator("base_path")
    @classmethod
    def _expand_base_path(cls, value: Path) -> Path:
        return value.expanduser()


class S3StorageConfig(BaseModel):
    type: Literal["s3"]
    bucket: str
    prefix: str = ""
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    access_key_env: Optional[str] = Field(default=None, description="Environment variable holding the access key.")
    secret_key_env: Optional[str] = Field(default=None, description="Environment variable holding the secret key.")

    def resolved_credentials(self) -> Optional[Tuple[str, str]]:
        if not self.access_key_env or not self.secret_key_env:
            return None
        access_key = os.getenv(self.access_key_env)
        secret_key = os.getenv(self.secret_key_env)
        if access_key and secret_key:
            return access_key, secret_key
        return None


class ScpStorageConfig(BaseModel):
    type: Literal["scp"]
    host: str
    user: Optional[str] = None
    port: int = 22
    path: str = "."
    identity_file: Optional[Path] = None

    @field_validator("identity_file")
    @classmethod
    def _expand_identity_file(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value else value


class FtpStorageConfig(BaseModel):
    type: Literal["ftp"]
    host: str
    port: int = 21
    user: Optional[str] = None
    password_env: Optional[str] = None
    path: str = "."
    passive: bool = True
    timeout: float = 30

    def resolved_password(self) -> str:
        if self.password_env:
            return os.getenv(self.password_env, "")
        return ""


class SftpStorageConfig(BaseModel):
    type: Literal["sftp"]
    host: str
    port: int = 22
    user: Optional[str] = None
    password_env: Optional[str] = None
    identity_file: Optional[Path] = None
    path: str = "."
    accept_unknown_hosts: bool = False
    timeout: float = 30

    @field_validator("identity_file")
    @classmethod
    def _expand_identity_file(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value else value

    def resolved_password(self) -> Optional[str]:
        if self.password_env:
            return os.getenv(self.password_env)
        return None


StorageConfig = Union[
    FilesystemStorageConfig,
    S3StorageConfig,
    ScpStorageConfig,
    FtpStorageConfig,
    SftpStorageConfig,
]
StorageConfigMap = Dict[str, StorageConfig]


# --- Procedures --------------------------------------------------------------


class Procedure(BaseModel):
    """One configured backup task, addressed by its trigger."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    trigger: str
    adapter_name: str = Field(alias="adapter")
    options: Dict[str, Any] = Field(default_factory=dict)
    storage: List[str] = Field(default_factory=lambda: ["default"])
    retention_days: Optional[int] = None

    def effective_retention(self, fallback: int) -> int:
        if self.retention_days is not None:
            return self.retention_days
        return fallback


class NotificationsConfig(BaseModel):
    slack_webhook_env: Optional[str] = None
    notify_on_success: bool = False

    def resolve_slack_webhook(self) -> Optional[str]:
        if not self.slack_webhook_env:
            return None
        return os.getenv(self.slack_webhook_env)


class SchedulerConfig(BaseModel):
    cron: str
    timezone: str = "UTC"
    run_on_startup: bool = True

    @field_validator("cron")
    @classmethod
    def _validate_cron(cls, value: str) -> str:
        try:
            croniter(value, datetime.now())
        except (CroniterBadCronError, ValueError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc
        return value

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value


class CoreConfig(BaseModel):
    procedures: List[Procedure]
    storage: StorageConfigMap = Field(default_factory=dict)
    platform: Platform = Platform.UNIX
    rails_root: Optional[Path] = None
    tmp_path: Optional[Path] = None
    default_retention_days: int = 30
    notifications: NotificationsConfig = NotificationsConfig()
    scheduler: Optional[SchedulerConfig] = None

    @field_validator("storage", mode="before")
    @classmethod
    def _tag_storage(cls, value: Any) -> Any:
        # Discriminate on "type" so error messages name the right model.
        if not isinstance(value, dict):
            return value
        models = {
            "filesystem": FilesystemStorageConfig,
            "s3": S3StorageConfig,
            "scp": ScpStorageConfig,
            "ftp": FtpStorageConfig,
            "sftp": SftpStorageConfig,
        }
        parsed = {}
        for name, raw in value.items():
            if isinstance(raw, dict):
                model = models.get(raw.get("type"))
                if model is None:
                    raise ValueError(f"Storage '{name}' has unsupported type '{raw.get('type')}'.")
                raw = model.model_validate(raw)
            parsed[name] = raw
        return parsed

    @model_validator(mode="after")
    def _check_references(self) -> "CoreConfig":
        for procedure in self.procedures:
            for target in procedure.storage:
                if target not in self.storage:
                    raise ValueError(
                        f"Procedure '{procedure.trigger}' references unknown storage '{target}'."
                    )
        if self.platform is Platform.RAILS and self.rails_root is None:
            raise ValueError("The rails platform requires rails_root to be set.")
        return self

    def working_directory(self) -> Path:
        """Directory under which per-run workspaces are created."""
        if self.tmp_path:
            return self.tmp_path.expanduser()
        if self.platform is Platform.RAILS:
            return self.rails_root.expanduser() / "tmp" / "backups"
        return Path("~/.backup/tmp").expanduser()


def load_config(path: Path) -> CoreConfig:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    try:
        config = CoreConfig.model_validate(raw)
    except Exception as exc:  # noqa: BLE001
        raise ConfigurationError(str(exc)) from exc

    for trigger in duplicate_triggers(config.procedures):
        LOG.warning("Trigger '%s' is defined more than once; the first definition wins", trigger)
    return config
