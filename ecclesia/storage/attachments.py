"""
Attachment Store: Receipts and Photos
=====================================

Entities only hold string references to attachments (``photo_url``,
``receipt_url``, ``receipt_urls``). This module produces and resolves
those references.

Reference forms:
- ``s3://<bucket>/<key>``        when an S3 bucket is configured
- ``data:<type>;base64,<data>``  inline, when no bucket is configured

The inline form is what earlier releases stored, so old records resolve
without a bucket.
"""

from __future__ import annotations

import base64
import logging
import mimetypes
from typing import TYPE_CHECKING, Any, Dict, Optional
from uuid import uuid4

from ecclesia.core.errors import StorageError
from ecclesia.core.types import Err, Ok, Result
from ecclesia.storage.config import S3Config

if TYPE_CHECKING:
    from types_aiobotocore_s3 import S3Client

logger = logging.getLogger(__name__)

BACKEND = "s3"
DATA_URI_PREFIX = "data:"
S3_URI_PREFIX = "s3://"


def encode_data_uri(data: bytes, content_type: str) -> str:
    return f"{DATA_URI_PREFIX}{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_uri(reference: str) -> bytes:
    """
    Raises:
        ValueError: If ``reference`` is not a base64 data URI.
    """
    if not reference.startswith(DATA_URI_PREFIX) or ";base64," not in reference:
        raise ValueError("not a base64 data URI")
    _, payload = reference.split(";base64,", 1)
    return base64.b64decode(payload, validate=True)


class AttachmentStore:
    """
    Stores attachment bytes and hands back a reference string.

    Example:
        >>> store = AttachmentStore(None)          # inline references
        >>> ref = await store.store(b"...", "image/png", "receipt.png")
        >>> data = await store.load(ref)
    """

    __slots__ = ("_config", "_session", "_client")

    def __init__(self, config: Optional[S3Config], client: Optional["S3Client"] = None) -> None:
        self._config = config
        self._session: Any = None
        self._client = client

    @property
    def is_inline(self) -> bool:
        return self._config is None

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    async def connect(self) -> Result[None, StorageError]:
        """
        Initialize the S3 client. No-op for inline references.
        """
        if self._config is None or self._client is not None:
            return Ok(None)

        import aioboto3
        from botocore.config import Config
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            session_kwargs: Dict[str, Any] = {}
            if self._config.access_key_id and self._config.secret_access_key:
                session_kwargs["aws_access_key_id"] = self._config.access_key_id
                session_kwargs["aws_secret_access_key"] = self._config.secret_access_key

            self._session = aioboto3.Session(**session_kwargs)

            client_config = Config(
                connect_timeout=self._config.connect_timeout_seconds,
                read_timeout=self._config.read_timeout_seconds,
                retries={"max_attempts": self._config.max_retries},
            )

            client_kwargs: Dict[str, Any] = {
                "region_name": self._config.region,
                "config": client_config,
                "use_ssl": self._config.use_ssl,
            }
            if self._config.endpoint_url:
                client_kwargs["endpoint_url"] = self._config.endpoint_url

            self._client = await self._session.client("s3", **client_kwargs).__aenter__()
            await self._client.head_bucket(Bucket=self._config.bucket_name)

            logger.info("Attachment bucket ready", extra={"bucket": self._config.bucket_name})
            return Ok(None)

        except (BotoCoreError, ClientError, OSError) as e:
            return Err(StorageError.unavailable(BACKEND, "connect", e))

    async def close(self) -> None:
        if self._client is not None and self._session is not None:
            await self._client.__aexit__(None, None, None)
        self._client = None

    # -------------------------------------------------------------------------
    # OPERATIONS
    # -------------------------------------------------------------------------

    def _object_key(self, filename: str, content_type: str) -> str:
        assert self._config is not None
        if "." in filename:
            extension = "." + filename.rsplit(".", 1)[1].lower()
        else:
            extension = mimetypes.guess_extension(content_type) or ""
        return f"{self._config.key_prefix}{uuid4().hex}{extension}"

    async def store(self, data: bytes, content_type: str, filename: str = "") -> str:
        """
        Persist ``data`` and return its reference.

        Raises:
            StorageError: When the bucket cannot be written.
        """
        if self._config is None:
            return encode_data_uri(data, content_type)
        if self._client is None:
            raise StorageError.not_connected(BACKEND)

        from botocore.exceptions import BotoCoreError, ClientError

        key = self._object_key(filename, content_type)
        try:
            await self._client.put_object(
                Bucket=self._config.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError, OSError) as e:
            raise StorageError.unavailable(BACKEND, "put_object", e)

        logger.debug("Attachment stored", extra={"key": key, "size": len(data)})
        return f"{S3_URI_PREFIX}{self._config.bucket_name}/{key}"

    async def load(self, reference: str) -> bytes:
        """
        Resolve a reference produced by ``store`` (or an inline legacy one).

        Raises:
            ValueError: Unknown reference form.
            StorageError: Bucket unreachable.
        """
        if reference.startswith(DATA_URI_PREFIX):
            return decode_data_uri(reference)
        if not reference.startswith(S3_URI_PREFIX):
            raise ValueError(f"unsupported attachment reference: {reference[:32]!r}")
        if self._client is None:
            raise StorageError.not_connected(BACKEND)

        from botocore.exceptions import BotoCoreError, ClientError

        bucket, _, key = reference[len(S3_URI_PREFIX):].partition("/")
        try:
            response = await self._client.get_object(Bucket=bucket, Key=key)
            async with response["Body"] as stream:
                return await stream.read()
        except (BotoCoreError, ClientError, OSError) as e:
            raise StorageError.unavailable(BACKEND, "get_object", e)


__all__ = ["AttachmentStore", "encode_data_uri", "decode_data_uri"]
