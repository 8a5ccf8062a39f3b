import asyncio
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from docshare_client.config import TokenConfig
from docshare_client.exceptions import (
    DatabaseError,
    DocumentClientError,
    DocumentNotFoundError,
    StorageError,
    UnsupportedPreviewError,
    UploadFailedError,
    ValidationError,
)
from docshare_client.models import DocumentCreate, DocumentInDB, DocumentPreview, DownloadedDocument, TokenResult
from docshare_client.repositories import BlobStore, MetaDataRepository, MISSING
from docshare_client.services.file_types import (
    PDF,
    PREVIEWABLE_TYPES,
    build_blob_name,
    classify_file_type,
    display_file_name,
)
from docshare_client.services.preview import Rasterizer
from docshare_client.services.token_issuer import TokenIssuer
from docshare_client.utils.minio_async import shutdown_pools

logger = logging.getLogger(__name__)


class DocumentClient:
    """
    Единая точка доступа для бизнес-логики: метаданные в PostgreSQL,
    байты в объектном хранилище, подписанные ссылки через TokenIssuer.
    """

    def __init__(
        self,
        meta_repo: MetaDataRepository,
        blob_store: BlobStore,
        token_issuer: TokenIssuer | None = None,
        rasterizer: Rasterizer | None = None,
        policy: TokenConfig | None = None,
        engine: AsyncEngine | None = None,
    ):
        self._engine = engine
        self.metarepo = meta_repo
        self.blobs = blob_store
        self.policy = policy or TokenConfig()
        self.tokens = token_issuer or TokenIssuer(meta_repo, blob_store, self.policy)
        self.rasterizer = rasterizer

    async def check_connections(self) -> dict[str, str]:
        """
        Проверяет доступность PostgreSQL и объектного хранилища.
        Возвращает словарь со статусами.
        """
        statuses = {}

        try:
            await self.metarepo.check_connection()
            statuses["postgres"] = "ok"
        except DatabaseError as e:
            statuses["postgres"] = f"failed: {e}"

        try:
            await self.blobs.check_connection()
            statuses["minio"] = "ok"
        except StorageError as e:
            statuses["minio"] = f"failed: {e}"

        return statuses

    async def aclose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        await asyncio.to_thread(shutdown_pools)

    # ――― read ――― #

    async def list_documents(self, limit: int | None = None, offset: int = 0) -> list[DocumentInDB]:
        docs = await self.metarepo.list_all(limit, offset)
        # file_type всегда производный от имени файла
        return [d.model_copy(update={"file_type": classify_file_type(d.file_name)}) for d in docs]

    async def get_document(self, doc_id: int) -> Optional[DocumentInDB]:
        return await self.metarepo.get(doc_id)

    async def get_document_by_blob_name(self, blob_name: str) -> Optional[DocumentInDB]:
        return await self.metarepo.get_by_blob_name(blob_name)

    # ――― atomic high-level ops ――― #

    async def upload_document(self, content: bytes, name: Optional[str], file_name: str) -> int:
        """
        Загружает файл и возвращает id документа.

        Порядок: объект в хранилище -> строка метаданных (сразу с финальным ключом)
        -> токены. Если что-то падает после записи объекта, строка и объект
        удаляются, наружу уходит UploadFailedError.
        """
        if not content:
            raise ValidationError("File is required.")
        if not file_name:
            raise ValidationError("Original file name is required.")

        blob_name = build_blob_name(file_name)
        file_type = classify_file_type(file_name)
        shown_name = display_file_name(file_name, fallback=blob_name)
        logger.info(f"Uploading '{shown_name}' ({len(content)} bytes) as '{blob_name}'")

        try:
            file_path = await self.blobs.put_object(blob_name, content, content_type=file_type)
        except DocumentClientError as e:
            logger.error(f"Blob write failed for '{blob_name}': {e}")
            # Объект мог записаться частично
            await self._compensate_upload(None, blob_name)
            raise UploadFailedError(f"Failed to store '{shown_name}'", cause=e) from e

        doc: Optional[DocumentInDB] = None
        try:
            doc = await self.metarepo.insert(DocumentCreate(
                name=name,
                file_name=shown_name,
                blob_name=blob_name,
                file_type=file_type,
                file_path=file_path,
            ))
            result = await self.tokens.issue_default_tokens(doc.id)
            if result is None:
                raise DocumentNotFoundError(f"Document {doc.id} vanished during upload.")
        except DocumentClientError as e:
            logger.error(f"Upload of '{blob_name}' failed after blob write: {e}. Rolling back.")
            await self._compensate_upload(doc, blob_name)
            raise UploadFailedError(f"Failed to register '{shown_name}'", cause=e) from e

        logger.info(f"Document {doc.id} uploaded, token expires at {result.expires_at.isoformat()}")
        return doc.id

    async def _compensate_upload(self, doc: Optional[DocumentInDB], blob_name: str) -> None:
        # Компенсация идемпотентна; её сбой только логируется, чтобы не спрятать исходную ошибку
        if doc is not None:
            try:
                await self.metarepo.delete(doc.id)
            except DatabaseError:
                logger.exception(f"Compensation: could not delete metadata row {doc.id}")
        try:
            await self.blobs.remove_object(blob_name)
        except StorageError:
            logger.exception(f"Compensation: could not remove blob '{blob_name}'")
        else:
            logger.warning(f"Compensation: upload of '{blob_name}' rolled back")

    async def delete_document(self, doc_id: int) -> None:
        """Сначала объект, потом строка. Отсутствующий документ не ошибка."""
        doc = await self.metarepo.get(doc_id)
        if doc is None:
            logger.debug(f"Delete requested for missing document {doc_id}; nothing to do")
            return
        if doc.blob_name:
            await self.blobs.remove_object(doc.blob_name)
        await self.metarepo.delete(doc_id)
        logger.info(f"Document {doc_id} deleted (blob '{doc.blob_name}')")

    async def download_document(self, doc_id: int) -> Optional[DownloadedDocument]:
        """Возвращает байты и имя файла, увеличивая счётчик скачиваний."""
        doc = await self.metarepo.get(doc_id)
        if doc is None:
            return None
        content = await self.blobs.get_object(doc.blob_name)
        count = await self.metarepo.increment_download_count(doc_id)
        if count == MISSING:
            return None
        return DownloadedDocument(
            document_id=doc.id,
            content=content,
            file_name=doc.file_name,
            file_type=classify_file_type(doc.file_name),
            download_count=count,
        )

    async def get_preview(self, doc_id: int) -> Optional[DocumentPreview]:
        """
        Превью только для pdf/png/jpeg/docx/xlsx/pptx. Для PDF первая страница
        растеризуется в PNG; ConversionFailedError пробрасывается как есть.
        """
        doc = await self.metarepo.get(doc_id)
        if doc is None:
            return None
        file_type = doc.file_type or classify_file_type(doc.file_name)
        if file_type not in PREVIEWABLE_TYPES:
            raise UnsupportedPreviewError(f"Preview is not supported for '{file_type}'")

        data = await self.blobs.get_object(doc.blob_name)
        media_type = file_type
        if file_type == PDF:
            if self.rasterizer is None:
                raise UnsupportedPreviewError("No rasterizer configured for PDF previews")
            data = await self.rasterizer.rasterize(data, file_type)
            media_type = "image/png"

        return DocumentPreview(document_id=doc.id, preview_data=data, file_type=file_type, media_type=media_type)

    # ――― links ――― #

    async def get_download_link(self, doc_id: int) -> Optional[str]:
        doc = await self.metarepo.get(doc_id)
        if doc is None:
            return None
        signed = await self.tokens.issue_download_link(doc)
        logger.info(f"Generated download link for document {doc_id}")
        return signed.url

    async def get_share_link(
        self,
        doc_id: int,
        valid_for_hours: int,
        share_link_expires_in_hours: int,
    ) -> Optional[TokenResult]:
        hours = {"valid_for_hours": valid_for_hours, "share_link_expires_in_hours": share_link_expires_in_hours}
        for field, value in hours.items():
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{field} must be an integer number of hours")
            if not (self.policy.min_ttl_hours <= value <= self.policy.max_ttl_hours):
                raise ValidationError(
                    f"{field} must be between {self.policy.min_ttl_hours} and {self.policy.max_ttl_hours}"
                )
        return await self.tokens.issue_access_token(
            doc_id,
            timedelta(hours=valid_for_hours),
            timedelta(hours=share_link_expires_in_hours),
        )

    # ――― counters ――― #

    async def increment_and_get_download_count(self, doc_id: int) -> int:
        return await self.metarepo.increment_download_count(doc_id)

    async def get_download_count(self, doc_id: int) -> int:
        return await self.metarepo.get_download_count(doc_id)
