"""
S3-compatible storage provider (boto3).
Works against AWS S3 or a MinIO endpoint; downloads use native ranged GETs.
"""

import logging
import threading
import uuid
from typing import Any, Iterator, Optional

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.errors import (
    RemoteFileNotFound,
    StorageConfigError,
    StorageConnectionError,
    StorageError,
)
from app.storage.base import RemoteFile, StorageProvider
from app.storage.config import (
    FILENAME_METADATA_KEY,
    MAX_CONCURRENCY,
    MULTIPART_CHUNKSIZE,
    MULTIPART_THRESHOLD,
)
from app.utils.byte_range import ByteRange
from app.utils.content_type import detect_content_type

logger = logging.getLogger(__name__)


class S3StorageProvider(StorageProvider):
    """Wrapper for S3/MinIO object operations."""

    name = "s3"
    supports_range = True

    def __init__(self, client: Any = None, bucket: Optional[str] = None, prefix: Optional[str] = None):
        """
        Args:
            client: Pre-built boto3 S3 client, skips building one from settings
            bucket: Bucket name (defaults to S3_BUCKET)
            prefix: Key prefix for uploaded objects (defaults to S3_PREFIX)
        """
        self.bucket = bucket or settings.S3_BUCKET
        self.prefix = (prefix if prefix is not None else settings.S3_PREFIX).strip("/")
        self.chunk_size = settings.DOWNLOAD_CHUNK_SIZE
        self._client = client
        self._lock = threading.Lock()

    def check_configuration(self) -> bool:
        if not settings.S3_ACCESS_KEY or not settings.S3_SECRET_KEY:
            logger.error("ERROR: Set S3_ACCESS_KEY and S3_SECRET_KEY in .env file!")
            return False
        return True

    def connect(self) -> None:
        self._get_client()

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        if not settings.S3_ACCESS_KEY or not settings.S3_SECRET_KEY:
            raise StorageConfigError("S3 credentials are not configured in server environment variables.")

        with self._lock:
            if self._client is None:
                # Parse endpoint to extract protocol and host
                endpoint_url = settings.S3_ENDPOINT or None
                if endpoint_url and not endpoint_url.startswith(("http://", "https://")):
                    protocol = "https" if settings.S3_SECURE else "http"
                    endpoint_url = f"{protocol}://{endpoint_url}"

                try:
                    self._client = boto3.client(
                        "s3",
                        endpoint_url=endpoint_url,
                        aws_access_key_id=settings.S3_ACCESS_KEY,
                        aws_secret_access_key=settings.S3_SECRET_KEY,
                        config=Config(signature_version="s3v4"),
                        region_name=settings.S3_REGION,
                    )
                except BotoCoreError as e:
                    logger.error(f"FAILED to create S3 client: {e}")
                    raise StorageConnectionError(f"S3 connection failed: {e}") from e

                logger.info(f"S3 client initialized with endpoint: {endpoint_url or 'aws'}")

        return self._client

    def _object_key(self, file_id: str) -> str:
        return f"{self.prefix}/{file_id}" if self.prefix else file_id

    def upload(self, path: str, name: str, size: int) -> Any:
        """
        Upload a spooled file under a fresh identifier.

        Returns:
            Dict with id, Bucket, Key, ETag and size

        Raises:
            StorageError: If the upload fails
        """
        client = self._get_client()
        file_id = uuid.uuid4().hex
        key = self._object_key(file_id)

        extra_args = {
            "ContentType": detect_content_type(name),
            "Metadata": {FILENAME_METADATA_KEY: name},
        }
        config = TransferConfig(
            multipart_threshold=MULTIPART_THRESHOLD,
            multipart_chunksize=MULTIPART_CHUNKSIZE,
            max_concurrency=MAX_CONCURRENCY,
        )

        logger.info(f"[S3] Uploading {name} ({size} bytes) to {self.bucket}/{key}")
        try:
            with open(path, "rb") as f:
                client.upload_fileobj(f, self.bucket, key, ExtraArgs=extra_args, Config=config)
            head = client.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"[S3] Failed to upload {self.bucket}/{key}: {e}")
            raise StorageError(f"S3 upload failed: {e}") from e

        logger.info(f"[S3] Uploaded file: {self.bucket}/{key}")
        return {
            "id": file_id,
            "name": name,
            "Bucket": self.bucket,
            "Key": key,
            "ETag": head.get("ETag"),
            "size": head.get("ContentLength", size),
        }

    def share_link(self, uploaded: Any) -> Optional[str]:
        """Presigned GET URL for the uploaded object."""
        key = uploaded.get("Key") if isinstance(uploaded, dict) else None
        if not key:
            return None

        return self._get_client().generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=settings.S3_LINK_EXPIRATION,
        )

    def locate(self, file_id: str) -> Optional[RemoteFile]:
        client = self._get_client()
        key = self._object_key(file_id)
        try:
            head = client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            if error_code in ("404", "NoSuchKey", "NotFound"):
                return None
            logger.error(f"[S3] Error checking {self.bucket}/{key}: {e}")
            raise StorageError(f"S3 lookup failed: {e}") from e
        except BotoCoreError as e:
            logger.error(f"[S3] Error checking {self.bucket}/{key}: {e}")
            raise StorageError(f"S3 lookup failed: {e}") from e

        metadata = head.get("Metadata") or {}
        name = metadata.get(FILENAME_METADATA_KEY) or file_id
        return RemoteFile(
            file_id=file_id,
            name=name,
            size=int(head.get("ContentLength", 0)),
            content_type=head.get("ContentType") or detect_content_type(name),
            locator=key,
        )

    def open(self, remote: RemoteFile, byte_range: Optional[ByteRange] = None) -> Iterator[bytes]:
        client = self._get_client()
        key = remote.locator or self._object_key(remote.file_id)

        get_kwargs = {"Bucket": self.bucket, "Key": key}
        if byte_range is not None:
            get_kwargs["Range"] = byte_range.header_value()

        try:
            response = client.get_object(**get_kwargs)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            if error_code in ("404", "NoSuchKey"):
                raise RemoteFileNotFound(remote.file_id) from e
            logger.error(f"[S3] Failed to read {self.bucket}/{key}: {e}")
            raise StorageError(f"S3 download failed: {e}") from e
        except BotoCoreError as e:
            logger.error(f"[S3] Failed to read {self.bucket}/{key}: {e}")
            raise StorageError(f"S3 download failed: {e}") from e

        return _iter_body(response["Body"], self.chunk_size)

    def ping(self) -> None:
        try:
            self._get_client().head_bucket(Bucket=self.bucket)
        except (ClientError, BotoCoreError) as e:
            raise StorageConnectionError(f"S3 ping failed: {e}") from e


def _iter_body(body: Any, chunk_size: int) -> Iterator[bytes]:
    """Read a botocore StreamingBody in chunks and close it afterwards."""
    try:
        while True:
            chunk = body.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        body.close()
