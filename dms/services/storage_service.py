import asyncio
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from io import BytesIO
from typing import Iterable, Optional
from urllib.parse import quote

from minio import Minio
from minio.commonconfig import CopySource
from minio.deleteobjects import DeleteObject
from minio.error import S3Error

from dms.configs.settings import settings
from dms.utils import get_logger

logger = get_logger(__name__)

_MISSING_OBJECT_CODES = {"NoSuchKey", "NoSuchObject", "NotFound"}


@dataclass
class ObjectMetadata:
    key: str
    size: int
    content_type: Optional[str]
    etag: Optional[str]
    last_modified: Optional[datetime]


def build_object_key(owner_id: str, file_name: str, now: Optional[datetime] = None) -> str:
    """
    Storage key for a new object: documents/<owner>/<YYYY/MM/DD>/<uuid><ext>
    The original extension is kept, lowercased.
    """
    now = now or datetime.utcnow()
    _, ext = os.path.splitext(file_name)
    return f"documents/{owner_id}/{now:%Y/%m/%d}/{uuid.uuid4()}{ext.lower()}"


def owner_key_prefix(owner_id: str) -> str:
    return f"documents/{owner_id}/"


def create_minio_client() -> Minio:
    return Minio(
        endpoint=settings.MINIO_URL.replace("http://", "").replace("https://", ""),
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        secure=settings.MINIO_SSL,
        region=settings.MINIO_REGION,
    )


class StorageService:
    """Object storage adapter over a single MinIO/S3 bucket.

    The minio client is blocking, so every call is pushed to a worker thread.
    """

    def __init__(self, client: Optional[Minio] = None, bucket: Optional[str] = None):
        self.client = client or create_minio_client()
        self.bucket = bucket or settings.MINIO_BUCKET

    async def ensure_bucket(self) -> None:
        if not await asyncio.to_thread(self.client.bucket_exists, self.bucket):
            await asyncio.to_thread(self.client.make_bucket, self.bucket)
            logger.info(f"Created storage bucket {self.bucket}")

    async def upload(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        await asyncio.to_thread(
            self.client.put_object,
            bucket_name=self.bucket,
            object_name=key,
            data=BytesIO(data),
            length=len(data),
            content_type=content_type,
        )
        logger.debug(f"Uploaded object {key} ({len(data)} bytes)")

    async def download(self, key: str) -> bytes:
        def _read() -> bytes:
            response = self.client.get_object(bucket_name=self.bucket, object_name=key)
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()

        return await asyncio.to_thread(_read)

    async def delete(self, key: str) -> bool:
        """Remove one object; failures are logged and reported as False"""
        try:
            await asyncio.to_thread(self.client.remove_object, bucket_name=self.bucket, object_name=key)
            return True
        except S3Error as e:
            logger.error(f"Error removing object {key} from {self.bucket}: {e}")
            return False

    async def delete_many(self, keys: Iterable[str]) -> int:
        """Bulk remove; returns how many objects were removed without error"""
        keys = list(keys)
        if not keys:
            return 0

        def _remove() -> int:
            errors = self.client.remove_objects(
                bucket_name=self.bucket,
                delete_object_list=[DeleteObject(key) for key in keys],
            )
            # remove_objects is lazy; nothing is deleted until errors are consumed
            failed = 0
            for error in errors:
                failed += 1
                logger.error(f"Error removing object {error.name} from {self.bucket}: {error.message}")
            return len(keys) - failed

        return await asyncio.to_thread(_remove)

    async def copy(self, source_key: str, dest_key: str) -> None:
        await asyncio.to_thread(
            self.client.copy_object,
            bucket_name=self.bucket,
            object_name=dest_key,
            source=CopySource(self.bucket, source_key),
        )
        logger.debug(f"Copied object {source_key} -> {dest_key}")

    async def get_metadata(self, key: str) -> Optional[ObjectMetadata]:
        """Object stat, or None when the object does not exist"""
        try:
            stat = await asyncio.to_thread(self.client.stat_object, bucket_name=self.bucket, object_name=key)
        except S3Error as e:
            if e.code in _MISSING_OBJECT_CODES:
                return None
            raise
        return ObjectMetadata(
            key=key,
            size=stat.size or 0,
            content_type=stat.content_type,
            etag=stat.etag,
            last_modified=stat.last_modified,
        )

    async def get_presigned_upload_url(self, key: str, expires_in: Optional[int] = None) -> str:
        expires_in = expires_in or settings.UPLOAD_URL_EXPIRES_IN
        return await asyncio.to_thread(
            self.client.presigned_put_object,
            bucket_name=self.bucket,
            object_name=key,
            expires=timedelta(seconds=expires_in),
        )

    async def get_presigned_download_url(
        self,
        key: str,
        expires_in: Optional[int] = None,
        file_name: Optional[str] = None,
    ) -> str:
        expires_in = expires_in or settings.UPLOAD_URL_EXPIRES_IN
        response_headers = None
        if file_name:
            response_headers = {
                "response-content-disposition": f"attachment; filename*=UTF-8''{quote(file_name)}"
            }
        return await asyncio.to_thread(
            self.client.presigned_get_object,
            bucket_name=self.bucket,
            object_name=key,
            expires=timedelta(seconds=expires_in),
            response_headers=response_headers,
        )

    async def ping(self) -> bool:
        try:
            return await asyncio.to_thread(self.client.bucket_exists, self.bucket)
        except (S3Error, OSError) as e:
            logger.warning(f"Storage ping failed: {e}")
            return False
