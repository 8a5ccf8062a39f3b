import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, delete, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from docshare_client.db.base import get_session
from docshare_client.db.document_orm import DocumentORM
from docshare_client.exceptions import DatabaseError
from docshare_client.models.document import DocumentCreate, DocumentInDB

logger = logging.getLogger(__name__)

# Значение-сигнал для операций со счётчиком, когда документа нет
MISSING = -1

# asyncpg отдаёт отказ соединения как OSError, SQLAlchemy его не оборачивает
_DB_ERRORS = (SQLAlchemyError, OSError)


class MetaDataRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def check_connection(self):
        """Проверяет соединение с базой данных, выполняя простой запрос."""
        logger.debug("Checking PostgreSQL connection...")
        async with get_session(self._session_factory) as session:
            try:
                await session.execute(text("SELECT 1"))
                logger.debug("PostgreSQL connection successful.")
            except _DB_ERRORS as e:
                logger.error(f"PostgreSQL connection failed: {e}")
                raise DatabaseError("Failed to connect to the database.") from e

    async def insert(self, doc: DocumentCreate) -> DocumentInDB:
        async with get_session(self._session_factory) as session:
            try:
                orm = DocumentORM(
                    name=doc.name,
                    file_name=doc.file_name,
                    blob_name=doc.blob_name,
                    file_type=doc.file_type,
                    file_path=doc.file_path,
                    sas_token="",
                )
                session.add(orm)
                await session.commit()
                await session.refresh(orm)
                return orm.to_pydantic()
            except _DB_ERRORS as e:
                await session.rollback()
                raise DatabaseError(f"Failed to insert document '{doc.blob_name}': {e}") from e

    async def get(self, doc_id: int) -> Optional[DocumentInDB]:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(select(DocumentORM).where(DocumentORM.id == doc_id))
            except _DB_ERRORS as e:
                raise DatabaseError(f"Failed to load document {doc_id}: {e}") from e
            orm = res.scalar_one_or_none()
            return orm.to_pydantic() if orm else None

    async def get_by_blob_name(self, blob_name: str) -> Optional[DocumentInDB]:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(select(DocumentORM).where(DocumentORM.blob_name == blob_name))
            except _DB_ERRORS as e:
                raise DatabaseError(f"Failed to load document by blob '{blob_name}': {e}") from e
            orm = res.scalar_one_or_none()
            return orm.to_pydantic() if orm else None

    async def list_all(self,
                       limit: int | None = None,
                       offset: int = 0) -> list[DocumentInDB]:
        """
        Возвращает список документов, свежие сверху.
        Можно пагинировать через limit/offset.
        """
        async with get_session(self._session_factory) as session:
            q = select(DocumentORM).order_by(DocumentORM.upload_datetime.desc(), DocumentORM.id.desc()) \
                                   .offset(offset)
            if limit:
                q = q.limit(limit)
            try:
                rows = await session.execute(q)
            except _DB_ERRORS as e:
                raise DatabaseError(f"Failed to list documents: {e}") from e
            return [o.to_pydantic() for o in rows.scalars().all()]

    async def _patch(self, doc_id: int, values: dict, op: str) -> Optional[DocumentInDB]:
        """
        Частичный UPDATE только переданных колонок + last_modified.
        Параллельные правки других полей не затираются.
        """
        async with get_session(self._session_factory) as session:
            try:
                q = (
                    update(DocumentORM)
                    .where(DocumentORM.id == doc_id)
                    .values(**values, last_modified_datetime=func.now())
                    .returning(DocumentORM)
                )
                res = await session.execute(q)
                orm = res.scalar_one_or_none()
                await session.commit()
                return orm.to_pydantic() if orm else None
            except _DB_ERRORS as e:
                await session.rollback()
                logger.error("%s failed for document %s: %s", op, doc_id, e)
                raise DatabaseError(f"{op} failed for document {doc_id}: {e}") from e

    async def update_token_fields(self, doc_id: int, token: str, expires_at: datetime) -> Optional[DocumentInDB]:
        return await self._patch(
            doc_id, {"sas_token": token, "sas_expiration_time": expires_at}, "update_token_fields"
        )

    async def increment_download_count(self, doc_id: int) -> int:
        """
        Атомарный инкремент одним UPDATE ... RETURNING: строка блокируется
        на время оператора, потерянных обновлений нет. Вернёт -1, если документа нет.
        """
        async with get_session(self._session_factory) as session:
            try:
                q = (
                    update(DocumentORM)
                    .where(DocumentORM.id == doc_id)
                    .values(
                        download_count=DocumentORM.download_count + 1,
                        last_modified_datetime=func.now(),
                    )
                    .returning(DocumentORM.download_count)
                )
                res = await session.execute(q)
                new_count = res.scalar_one_or_none()
                await session.commit()
            except _DB_ERRORS as e:
                await session.rollback()
                raise DatabaseError(f"increment_download_count failed for document {doc_id}: {e}") from e
            return MISSING if new_count is None else new_count

    async def get_download_count(self, doc_id: int) -> int:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(
                    select(DocumentORM.download_count).where(DocumentORM.id == doc_id)
                )
            except _DB_ERRORS as e:
                raise DatabaseError(f"get_download_count failed for document {doc_id}: {e}") from e
            count = res.scalar_one_or_none()
            return MISSING if count is None else count

    async def delete(self, doc_id: int) -> bool:
        async with get_session(self._session_factory) as session:
            try:
                res = await session.execute(delete(DocumentORM).where(DocumentORM.id == doc_id))
                await session.commit()
            except _DB_ERRORS as e:
                await session.rollback()
                raise DatabaseError(f"delete failed for document {doc_id}: {e}") from e
            return res.rowcount > 0
