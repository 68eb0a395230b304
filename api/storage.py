# api/storage.py
from __future__ import annotations
import logging
from pathlib import Path

from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from common.aws import s3
from common.errors import StorageError

log = logging.getLogger("api")


def _reason(e: Exception) -> str:
    if isinstance(e, ClientError):
        err = e.response.get("Error", {})
        return err.get("Message") or err.get("Code") or str(e)
    return str(e)


class ObjectStorage:
    """S3-backed object storage used by the transcoder (download source, upload renditions)."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = s3()
        return self._client

    def download(self, bucket: str, key: str, dest_path: str | Path) -> int:
        log.info("Downloading s3://%s/%s", bucket, key)
        try:
            self.client.download_file(bucket, key, str(dest_path))
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to download file: {_reason(e)}") from e
        size = Path(dest_path).stat().st_size
        if size == 0:
            raise StorageError("No data received from storage")
        return size

    def upload(self, src_path: str | Path, bucket: str, key: str, content_type: str) -> str:
        log.info("Uploading to s3://%s/%s (%s)", bucket, key, content_type)
        try:
            # put overwrites an existing object at the same key
            self.client.upload_file(str(src_path), bucket, key, ExtraArgs={"ContentType": content_type})
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            raise StorageError(f"Failed to upload file: {_reason(e)}") from e
        return key
