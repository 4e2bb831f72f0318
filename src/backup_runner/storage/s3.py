"""S3-compatible object storage destination."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from backup_runner.config import Procedure, S3StorageConfig
from backup_runner.job_engine import StorageError

from .filesystem import retention_cutoff

LOG = logging.getLogger(__name__)


class S3StorageAdapter:
    """Uploads artifacts to ``<prefix>/<trigger>/`` in a bucket.

    Works with AWS S3 and S3-compatible services reachable through
    ``endpoint_url``.
    """

    def __init__(self, name: str, config: S3StorageConfig, client: Optional[Any] = None) -> None:
        self.name = name
        self.bucket = config.bucket
        self.prefix = config.prefix.strip("/")
        self.client = client or self._build_client(config)

    @staticmethod
    def _build_client(config: S3StorageConfig) -> Any:
        client_kwargs = {
            "service_name": "s3",
            "region_name": config.region,
            "config": Config(signature_version="s3v4"),
        }
        if config.endpoint_url:
            client_kwargs["endpoint_url"] = config.endpoint_url

        credentials = config.resolved_credentials()
        if credentials:
            client_kwargs["aws_access_key_id"], client_kwargs["aws_secret_access_key"] = credentials
        return boto3.client(**client_kwargs)

    def _key_prefix(self, procedure: Procedure) -> str:
        if self.prefix:
            return f"{self.prefix}/{procedure.trigger}/"
        return f"{procedure.trigger}/"

    def store(self, artifact: Path, procedure: Procedure, started_at: datetime) -> str:  # noqa: ARG002
        key = self._key_prefix(procedure) + artifact.name
        try:
            self.client.upload_file(str(artifact), self.bucket, key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Upload to s3://{self.bucket}/{key} failed: {exc}") from exc
        LOG.info("Uploaded %s to s3://%s/%s", artifact.name, self.bucket, key)
        return f"s3://{self.bucket}/{key}"

    def enforce_retention(self, procedure: Procedure, retention_days: int) -> None:
        if retention_days <= 0:
            return

        cutoff = retention_cutoff(retention_days).replace(tzinfo=timezone.utc)
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=self._key_prefix(procedure)):
                for obj in page.get("Contents", []):
                    if obj["LastModified"] < cutoff:
                        LOG.info("Removing expired backup s3://%s/%s", self.bucket, obj["Key"])
                        self.client.delete_object(Bucket=self.bucket, Key=obj["Key"])
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Retention on s3://{self.bucket} failed: {exc}") from exc
