# Файл: src/docshare_client/__init__.py

from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from .client import DocumentClient
from .config import get_settings, DocumentClientConfig, PostgresConfig, MinioConfig, TokenConfig
from .repositories.pg_repositoryMeta import MetaDataRepository
from .repositories.minio_repository import MinioRepository
from .services.token_issuer import TokenIssuer
from .services.preview import PdfFirstPageRasterizer
from .models import TokenResult, AccessToken, ShareLink, DocumentInDB

from .exceptions import *

def create_document_client(config: Optional[DocumentClientConfig] = None) -> DocumentClient:
    """
    Фабричная функция для создания и конфигурации DocumentClient.

    :param config: Единый объект с настройками.
                   Если не предоставлен, используются переменные окружения.
    :return: Сконфигурированный экземпляр DocumentClient.
    """
    if config is None:
        s = get_settings()
        config = DocumentClientConfig(postgres=s.postgres, minio=s.minio, tokens=s.tokens)

    engine = create_async_engine(
            config.postgres.get_pg_dsn(),
            pool_size=config.postgres.pool_size,
            max_overflow=config.postgres.max_overflow,
            pool_timeout=config.postgres.pool_timeout,
            pool_recycle=config.postgres.pool_recycle,
            pool_pre_ping=True,
            connect_args={
                "server_settings": {
                    "application_name": config.postgres.application_name
                }
            }
        )

    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    meta_repo = MetaDataRepository(session_factory)
    minio_repo = MinioRepository(config.minio)
    token_issuer = TokenIssuer(meta_repo, minio_repo, config.tokens)

    return DocumentClient(
        meta_repo=meta_repo,
        blob_store=minio_repo,
        token_issuer=token_issuer,
        rasterizer=PdfFirstPageRasterizer(),
        policy=config.tokens,
        engine=engine,
    )

__all__ = [
    "DocumentClient", "create_document_client", "TokenIssuer",
    "DocumentClientConfig", "PostgresConfig", "MinioConfig", "TokenConfig",
    "TokenResult", "AccessToken", "ShareLink", "DocumentInDB",
    "DocumentClientError", "DocumentNotFoundError", "NotFoundError", "ValidationError",
    "DatabaseError", "StorageError", "StorageUnavailableError", "InvalidKeyError",
    "ObjectNotFoundError", "ConversionFailedError", "UploadFailedError", "UnsupportedPreviewError",
]
