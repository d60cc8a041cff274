from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import BotoCoreError
from fastapi import HTTPException

from app.config import settings
from app.services.storage import StorageService


def _s3_settings(mock_settings):
    mock_settings.s3_endpoint_url = "http://localhost:9000"
    mock_settings.s3_access_key = "test-key"
    mock_settings.s3_secret_key = "test-secret"
    mock_settings.s3_region = "us-east-1"
    mock_settings.s3_bucket_name = "record-uploads"
    mock_settings.upload_url_prefix = "/uploads"


class TestLocalStorage:
    def test_is_configured_false_by_default(self):
        assert StorageService.is_configured() is False

    def test_save_and_delete(self):
        path = StorageService.save("tickets_local_1.txt", b"hello", "text/plain")
        assert path == f"{settings.upload_url_prefix}/tickets_local_1.txt"
        local = StorageService.local_path(path)
        assert local.read_bytes() == b"hello"

        assert StorageService.delete(path) is True
        assert not local.exists()

    def test_delete_missing_returns_false(self):
        assert StorageService.delete("/uploads/never-written.bin") is False

    def test_local_path_ignores_directories(self):
        local = StorageService.local_path("/uploads/../../etc/passwd")
        assert local.name == "passwd"
        assert str(local.parent) == settings.upload_dir

    def test_delete_quietly_swallows_os_errors(self):
        with patch.object(StorageService, "delete", side_effect=OSError("busy")):
            assert StorageService.delete_quietly("/uploads/x.bin") is False


class TestS3Storage:
    @patch("app.services.storage.settings")
    def test_is_configured_true(self, mock_settings):
        _s3_settings(mock_settings)
        assert StorageService.is_configured() is True

    @patch("app.services.storage.boto3")
    @patch("app.services.storage.settings")
    def test_save_puts_object(self, mock_settings, mock_boto3):
        _s3_settings(mock_settings)
        mock_client = MagicMock()
        mock_boto3.client.return_value = mock_client

        path = StorageService.save("a.png", b"bytes", "image/png")

        assert path == "/uploads/a.png"
        mock_client.put_object.assert_called_once_with(
            Bucket="record-uploads", Key="a.png", Body=b"bytes", ContentType="image/png"
        )

    @patch("app.services.storage.boto3")
    @patch("app.services.storage.settings")
    def test_save_failure_raises_storage_error(self, mock_settings, mock_boto3):
        _s3_settings(mock_settings)
        mock_client = MagicMock()
        mock_client.put_object.side_effect = BotoCoreError()
        mock_boto3.client.return_value = mock_client

        with pytest.raises(HTTPException) as exc:
            StorageService.save("a.png", b"bytes")
        assert exc.value.status_code == 500

    @patch("app.services.storage.boto3")
    @patch("app.services.storage.settings")
    def test_delete_uses_object_key(self, mock_settings, mock_boto3):
        _s3_settings(mock_settings)
        mock_client = MagicMock()
        mock_boto3.client.return_value = mock_client

        assert StorageService.delete("/uploads/a.png") is True
        mock_client.delete_object.assert_called_once_with(
            Bucket="record-uploads", Key="a.png"
        )

    @patch("app.services.storage.boto3")
    @patch("app.services.storage.settings")
    def test_delete_quietly_logs_s3_failure(self, mock_settings, mock_boto3):
        _s3_settings(mock_settings)
        mock_client = MagicMock()
        mock_client.delete_object.side_effect = BotoCoreError()
        mock_boto3.client.return_value = mock_client

        assert StorageService.delete_quietly("/uploads/a.png") is False
