"""Object storage abstraction. S3-compatible bucket for deployments, local disk for dev.

Both backends expose the same async contract (BaseObjectStore). The boto3 SDK
is sync, so every S3 call is wrapped with asyncio.to_thread; cancelling the
awaiting task abandons the call instead of blocking the event loop.
"""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Optional

import aiofiles
import aiofiles.os
import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from file_service.config import Settings
from file_service.errors import (
    StoreObjectNotFound,
    StoreProvisionFailed,
    StoreUnavailable,
    StoreWriteFailed,
)

logger = logging.getLogger(__name__)

# Connectivity failures, as opposed to the backend answering with an error
UNAVAILABLE_EXCEPTIONS = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ConnectionClosedError,
    ReadTimeoutError,
)
NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}

# Payloads up to this size go out in a single PUT; larger ones use multipart
SINGLE_PUT_MAX_BYTES = 8 * 1024 * 1024
CHUNK_SIZE = 1024 * 1024


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


class ObjectStream(ABC):
    """Lazily-read object content. Must be fully consumed or closed."""

    @abstractmethod
    async def read(self, size: int = -1) -> bytes:
        """Read up to `size` bytes, or everything that remains when size < 0."""

    @abstractmethod
    async def close(self) -> None:
        pass

    async def iter_chunks(self, chunk_size: int = CHUNK_SIZE):
        """Yield the remaining content in chunks, closing the stream at the end."""
        try:
            while True:
                chunk = await self.read(chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await self.close()

    async def __aenter__(self) -> "ObjectStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class BaseObjectStore(ABC):
    """Async object-storage backend: one bucket, opaque string keys."""

    bucket: str

    @abstractmethod
    async def ensure_bucket(self, name: str) -> None:
        """Create the bucket if absent. Idempotent."""

    @abstractmethod
    async def upload(self, key: str, stream: BinaryIO, length: int, content_type: str) -> None:
        """Stream `stream` into the bucket under `key`."""

    @abstractmethod
    async def download(self, key: str) -> ObjectStream:
        """Open the object under `key` for reading."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the object under `key`. A missing key is not an error."""


# ── S3 / MinIO ───────────────────────────────────────────────────

class _S3ObjectStream(ObjectStream):
    def __init__(self, key: str, body):
        self._key = key
        self._body = body

    async def read(self, size: int = -1) -> bytes:
        try:
            return await asyncio.to_thread(self._body.read, None if size < 0 else size)
        except BotoCoreError as e:
            logger.error(f"Reading object {self._key} failed: {e}")
            raise StoreUnavailable(f"read object {self._key!r}: {e}") from e

    async def close(self) -> None:
        self._body.close()


class S3ObjectStore(BaseObjectStore):
    """Bucket on any S3-compatible endpoint (AWS S3, MinIO)."""

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3ObjectStore":
        endpoint = settings.S3_ENDPOINT_URL or None
        if endpoint and "://" not in endpoint:
            endpoint = f"{'https' if settings.S3_USE_SSL else 'http'}://{endpoint}"
        client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=settings.S3_ACCESS_KEY or None,
            aws_secret_access_key=settings.S3_SECRET_KEY or None,
            region_name=settings.S3_REGION,
            use_ssl=settings.S3_USE_SSL,
            config=BotoConfig(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
                # Single attempt: botocore would otherwise retry 5xx and connection errors
                retries={"total_max_attempts": 1, "mode": "standard"},
            ),
        )
        return cls(client, settings.S3_BUCKET)

    async def ensure_bucket(self, name: str) -> None:
        try:
            await asyncio.to_thread(self.client.head_bucket, Bucket=name)
            return
        except UNAVAILABLE_EXCEPTIONS as e:
            raise StoreUnavailable(f"check bucket {name!r}: {e}") from e
        except ClientError as e:
            if _error_code(e) not in NOT_FOUND_CODES:
                raise StoreProvisionFailed(f"check bucket {name!r}: {e}") from e
        except BotoCoreError as e:
            raise StoreUnavailable(f"check bucket {name!r}: {e}") from e

        params = {"Bucket": name}
        region = self.client.meta.region_name
        if region and region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            await asyncio.to_thread(self.client.create_bucket, **params)
        except UNAVAILABLE_EXCEPTIONS as e:
            raise StoreUnavailable(f"create bucket {name!r}: {e}") from e
        except ClientError as e:
            if _error_code(e) == "BucketAlreadyOwnedByYou":
                return
            raise StoreProvisionFailed(f"create bucket {name!r}: {e}") from e
        except BotoCoreError as e:
            raise StoreProvisionFailed(f"create bucket {name!r}: {e}") from e
        logger.info(f"Created bucket {name}")

    async def upload(self, key: str, stream: BinaryIO, length: int, content_type: str) -> None:
        try:
            if 0 <= length <= SINGLE_PUT_MAX_BYTES:
                await asyncio.to_thread(
                    self.client.put_object,
                    Bucket=self.bucket, Key=key, Body=stream,
                    ContentLength=length, ContentType=content_type,
                )
            else:
                await asyncio.to_thread(
                    self.client.upload_fileobj,
                    stream, self.bucket, key,
                    ExtraArgs={"ContentType": content_type},
                )
        except UNAVAILABLE_EXCEPTIONS as e:
            raise StoreUnavailable(f"put object {key!r}: {e}") from e
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            logger.error(f"Upload of {key} to bucket {self.bucket} failed: {e}")
            raise StoreWriteFailed(f"put object {key!r}: {e}") from e

    async def download(self, key: str) -> ObjectStream:
        try:
            response = await asyncio.to_thread(
                self.client.get_object, Bucket=self.bucket, Key=key,
            )
        except UNAVAILABLE_EXCEPTIONS as e:
            raise StoreUnavailable(f"get object {key!r}: {e}") from e
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                raise StoreObjectNotFound(key) from e
            raise StoreUnavailable(f"get object {key!r}: {e}") from e
        except BotoCoreError as e:
            raise StoreUnavailable(f"get object {key!r}: {e}") from e
        return _S3ObjectStream(key, response["Body"])

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.delete_object, Bucket=self.bucket, Key=key,
            )
        except UNAVAILABLE_EXCEPTIONS as e:
            raise StoreUnavailable(f"remove object {key!r}: {e}") from e
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Delete of {key} from bucket {self.bucket} failed: {e}")
            raise StoreWriteFailed(f"remove object {key!r}: {e}") from e


# ── Local filesystem ─────────────────────────────────────────────

class _LocalObjectStream(ObjectStream):
    def __init__(self, handle):
        self._handle = handle

    async def read(self, size: int = -1) -> bytes:
        return await self._handle.read(size)

    async def close(self) -> None:
        await self._handle.close()


class LocalObjectStore(BaseObjectStore):
    """Bucket as a directory under `base_path`; keys map to nested paths."""

    def __init__(self, base_path: str | Path, bucket: str):
        self.base_path = Path(base_path)
        self.bucket = bucket

    def _path_for(self, key: str) -> Optional[Path]:
        """Resolve a key inside the bucket directory, or None if it escapes it."""
        root = (self.base_path / self.bucket).resolve()
        path = (root / key).resolve()
        if root not in path.parents:
            return None
        return path

    async def ensure_bucket(self, name: str) -> None:
        try:
            (self.base_path / name).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreProvisionFailed(f"create bucket directory {name!r}: {e}") from e

    async def upload(self, key: str, stream: BinaryIO, length: int, content_type: str) -> None:
        path = self._path_for(key)
        if path is None:
            raise StoreWriteFailed(f"object key escapes bucket: {key!r}")

        # Write beside the target, then rename, so readers never see a partial object
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.part")
        renamed = False
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                while chunk := stream.read(CHUNK_SIZE):
                    await f.write(chunk)
            await aiofiles.os.replace(tmp_path, path)
            renamed = True
        except OSError as e:
            logger.error(f"Writing {key} under {self.base_path} failed: {e}")
            raise StoreWriteFailed(f"write object {key!r}: {e}") from e
        finally:
            if not renamed:
                tmp_path.unlink(missing_ok=True)

    async def download(self, key: str) -> ObjectStream:
        path = self._path_for(key)
        if path is None or not path.is_file():
            raise StoreObjectNotFound(key)
        try:
            handle = await aiofiles.open(path, "rb")
        except FileNotFoundError as e:
            raise StoreObjectNotFound(key) from e
        except OSError as e:
            raise StoreUnavailable(f"open object {key!r}: {e}") from e
        return _LocalObjectStream(handle)

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        if path is None:
            raise StoreWriteFailed(f"object key escapes bucket: {key!r}")
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise StoreWriteFailed(f"remove object {key!r}: {e}") from e


def create_object_store(settings: Settings) -> BaseObjectStore:
    """Factory keyed on FILE_STORAGE_TYPE."""
    if settings.FILE_STORAGE_TYPE == "s3":
        return S3ObjectStore.from_settings(settings)
    elif settings.FILE_STORAGE_TYPE == "local":
        return LocalObjectStore(settings.FILE_STORAGE_PATH, settings.S3_BUCKET)
    raise ValueError(f"Unknown storage type: {settings.FILE_STORAGE_TYPE}")
