from __future__ import annotations

import logging
import os
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.errors import StorageError

logger = logging.getLogger(__name__)


class StorageService:
    """Stores upload bytes on local disk, or in S3 when it is configured.

    Stored objects are addressed by their public path,
    ``<UPLOAD_URL_PREFIX>/<filename>``, which is what the database keeps.
    """

    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():  # type: ignore[return]
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def public_path(filename: str) -> str:
        return f"{settings.upload_url_prefix.rstrip('/')}/{filename}"

    @staticmethod
    def filename_from_path(public_path: str) -> str:
        return os.path.basename(public_path)

    @staticmethod
    def local_path(public_path: str) -> Path:
        return Path(settings.upload_dir) / StorageService.filename_from_path(public_path)

    @staticmethod
    def save(filename: str, content: bytes, content_type: str | None = None) -> str:
        if StorageService.is_configured():
            params = {
                "Bucket": settings.s3_bucket_name,
                "Key": filename,
                "Body": content,
            }
            if content_type:
                params["ContentType"] = content_type
            try:
                StorageService._get_client().put_object(**params)
            except (BotoCoreError, ClientError) as exc:
                logger.error("Failed to upload %s to S3: %s", filename, exc)
                raise StorageError(f"Failed to store {filename}")
        else:
            target = Path(settings.upload_dir) / filename
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(content)
            except OSError as exc:
                logger.error("Failed to write %s: %s", target, exc)
                raise StorageError(f"Failed to store {filename}")
        logger.info("Stored upload %s (%d bytes)", filename, len(content))
        return StorageService.public_path(filename)

    @staticmethod
    def delete(public_path: str) -> bool:
        """Remove a stored object. Returns False when it was already gone."""
        if StorageService.is_configured():
            StorageService._get_client().delete_object(
                Bucket=settings.s3_bucket_name,
                Key=StorageService.filename_from_path(public_path),
            )
            return True
        try:
            StorageService.local_path(public_path).unlink()
        except FileNotFoundError:
            logger.debug("Upload %s already removed", public_path)
            return False
        return True

    @staticmethod
    def delete_quietly(public_path: str) -> bool:
        """Best-effort delete; failures are logged as orphaned files."""
        try:
            return StorageService.delete(public_path)
        except (OSError, BotoCoreError, ClientError) as exc:
            logger.warning("Orphaned upload %s could not be removed: %s", public_path, exc)
            return False


storage = StorageService()
