import logging
from io import BytesIO
from datetime import datetime, timedelta
from typing import Optional

import urllib3
from minio import Minio
from minio.error import S3Error, ServerError

from docshare_client.config import MinioConfig
from docshare_client.exceptions import ObjectNotFoundError, StorageUnavailableError, ValidationError
from docshare_client.models.token import SignedUrl
from docshare_client.repositories.blob_store import validate_blob_name
from docshare_client.utils.minio_async import run_io_bound

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "NoSuchObject"}
_TRANSPORT_ERRORS = (urllib3.exceptions.HTTPError, ServerError)


class MinioRepository:
    def __init__(self, settings: MinioConfig):
        self._client = Minio(
            endpoint=settings.endpoint,
            access_key=settings.access_key,
            secret_key=settings.secret_key,
            secure=settings.secure,
            region=settings.region,
        )
        self._bucket = settings.bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    async def _ensure_bucket(self):
        try:
            exists = await run_io_bound(self._client.bucket_exists, self._bucket)
            if not exists:
                await run_io_bound(self._client.make_bucket, self._bucket)
        except (S3Error, *_TRANSPORT_ERRORS) as e:
            raise StorageUnavailableError(f"Bucket '{self._bucket}' is not reachable: {e}") from e

    async def check_connection(self):
        """Проверяет соединение с MinIO и наличие бакета."""
        logger.debug(f"Checking MinIO connection and bucket '{self._bucket}' existence...")
        try:
            await self._ensure_bucket()
            logger.debug("MinIO connection and bucket presence confirmed.")
        except StorageUnavailableError as e:
            logger.error(f"MinIO connection failed: {e}")
            raise

    async def put_object(self, object_name: str, data: bytes, content_type: str | None = None) -> str:
        validate_blob_name(object_name)
        try:
            await run_io_bound(
                self._client.put_object,
                self._bucket,
                object_name,
                BytesIO(data),
                len(data),
                content_type=content_type or "application/octet-stream",
            )
        except (S3Error, *_TRANSPORT_ERRORS) as e:
            logger.error("put_object failed for '%s': %s", object_name, e)
            raise StorageUnavailableError(f"put '{object_name}' failed: {e}") from e
        return f"{self._bucket}/{object_name}"

    async def get_object(self, object_name: str) -> bytes:
        def _read() -> bytes:
            resp = self._client.get_object(self._bucket, object_name)
            try:
                return resp.read()
            finally:
                resp.close()
                resp.release_conn()

        try:
            return await run_io_bound(_read)
        except S3Error as e:
            if e.code in _MISSING_CODES:
                raise ObjectNotFoundError(f"Object '{object_name}' not found") from e
            raise StorageUnavailableError(f"get '{object_name}' failed: {e}") from e
        except _TRANSPORT_ERRORS as e:
            raise StorageUnavailableError(f"get '{object_name}' failed: {e}") from e

    async def remove_object(self, object_name: str) -> None:
        try:
            await run_io_bound(self._client.remove_object, self._bucket, object_name)
        except S3Error as e:
            if e.code in _MISSING_CODES:
                return
            raise StorageUnavailableError(f"remove '{object_name}' failed: {e}") from e
        except _TRANSPORT_ERRORS as e:
            raise StorageUnavailableError(f"remove '{object_name}' failed: {e}") from e

    async def exists(self, object_name: str) -> bool:
        try:
            await run_io_bound(self._client.stat_object, self._bucket, object_name)
            return True
        except S3Error as e:
            if e.code in _MISSING_CODES:
                return False
            raise StorageUnavailableError(f"stat '{object_name}' failed: {e}") from e
        except _TRANSPORT_ERRORS as e:
            raise StorageUnavailableError(f"stat '{object_name}' failed: {e}") from e

    async def issue_signed_url(
        self,
        object_name: str,
        ttl: timedelta,
        *,
        issued_at: datetime,
        content_disposition: Optional[str] = None,
    ) -> SignedUrl:
        """
        Генерирует presigned GET-ссылку. Подпись считается локально
        (регион задан в конфиге), поэтому в executor не уходим.
        """
        response_headers = None
        if content_disposition:
            response_headers = {"response-content-disposition": content_disposition}
        try:
            url = self._client.presigned_get_object(
                self._bucket,
                object_name,
                expires=ttl,
                response_headers=response_headers,
                request_date=issued_at,
            )
        except ValueError as e:
            raise ValidationError(f"cannot sign '{object_name}': {e}") from e
        except S3Error as e:
            raise StorageUnavailableError(f"signing '{object_name}' failed: {e}") from e
        return SignedUrl(url=url, expires_at=issued_at + ttl)

