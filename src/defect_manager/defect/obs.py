"""Uploader for bulletin artifacts on the S3-compatible object store."""

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from defect_manager.utils import year


logger = logging.getLogger(__name__)

UPLOADED_DEFECT_INDEX = "update_defect.txt"


class ObsError(Exception):
    """Raised when an object cannot be uploaded."""


class ObsUploader:
    """Puts bulletin files under ``<directory>/<year>/`` in the bucket."""

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        endpoint: str,
        bucket: str,
        directory: str,
        client=None,
    ):
        self.bucket = bucket
        self.directory = directory.strip("/")
        self._client = client or boto3.client(
            "s3",
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            endpoint_url=endpoint or None,
        )

    def object_key(self, file_name: str) -> str:
        if file_name == UPLOADED_DEFECT_INDEX:
            return f"{self.directory}/{file_name}"
        return f"{self.directory}/{year()}/{file_name}"

    def upload(self, file_name: str, data: bytes) -> None:
        key = self.object_key(file_name)
        try:
            self._client.put_object(Bucket=self.bucket, Key=key, Body=data)
        except (BotoCoreError, ClientError) as e:
            raise ObsError(f"Failed to upload {key}: {e}") from e

        logger.info(f"uploaded {key} to bucket {self.bucket}")
