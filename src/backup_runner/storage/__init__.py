from __future__ import annotations

from backup_runner.config import (
    FilesystemStorageConfig,
    FtpStorageConfig,
    S3StorageConfig,
    ScpStorageConfig,
    SftpStorageConfig,
    StorageConfig,
)
from backup_runner.job_engine import StorageAdapter

from .filesystem import FilesystemStorageAdapter
from .ftp import FtpStorageAdapter
from .s3 import S3StorageAdapter
from .scp import ScpStorageAdapter
from .sftp import SftpStorageAdapter


def build_storage_adapter(name: str, config: StorageConfig) -> StorageAdapter:
    if isinstance(config, FilesystemStorageConfig):
        config.base_path.mkdir(parents=True, exist_ok=True)
        return FilesystemStorageAdapter(name=name, base_path=config.base_path)
    if isinstance(config, S3StorageConfig):
        return S3StorageAdapter(name, config)
    if isinstance(config, ScpStorageConfig):
        return ScpStorageAdapter(name, config)
    if isinstance(config, FtpStorageConfig):
        return FtpStorageAdapter(name, config)
    if isinstance(config, SftpStorageConfig):
        return SftpStorageAdapter(name, config)
    raise ValueError(f"Unsupported storage type '{config.type}' for {name}")


__all__ = [
    "FilesystemStorageAdapter",
    "FtpStorageAdapter",
    "S3StorageAdapter",
    "ScpStorageAdapter",
    "SftpStorageAdapter",
    "build_storage_adapter",
]
