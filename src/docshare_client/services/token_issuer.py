"""
Выдача подписанных ссылок на объекты хранилища.

Каждый вызов issue_* заново подписывает обе ссылки (кэша нет) и одной
частичной записью сохраняет access-токен в метаданных документа.
Блокировок внутри нет: атомарность обеспечивает MetaDataRepository.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from urllib.parse import quote

from docshare_client.config import TokenConfig
from docshare_client.exceptions import ValidationError
from docshare_client.models.document import DocumentInDB
from docshare_client.models.token import AccessToken, ShareLink, SignedUrl, TokenResult
from docshare_client.repositories.blob_store import BlobStore
from docshare_client.repositories.pg_repositoryMeta import MetaDataRepository

logger = logging.getLogger(__name__)

# Предел для presigned-ссылок S3/MinIO
MAX_SIGNATURE_TTL = timedelta(days=7)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def attachment_disposition(file_name: str) -> str:
    ascii_name = file_name.encode("ascii", "ignore").decode().replace('"', "") or "download"
    value = f'attachment; filename="{ascii_name}"'
    if ascii_name != file_name:
        value += f"; filename*=UTF-8''{quote(file_name)}"
    return value


class TokenIssuer:
    def __init__(
        self,
        meta_repo: MetaDataRepository,
        blob_store: BlobStore,
        policy: TokenConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.metarepo = meta_repo
        self.blob_store = blob_store
        self.policy = policy or TokenConfig()
        self._clock = clock

    @property
    def min_ttl(self) -> timedelta:
        return timedelta(hours=self.policy.min_ttl_hours)

    @property
    def max_ttl(self) -> timedelta:
        return timedelta(hours=self.policy.max_ttl_hours)

    def validate_ttl(self, ttl: timedelta, field: str) -> timedelta:
        if not isinstance(ttl, timedelta):
            raise ValidationError(f"{field} must be a timedelta, got {type(ttl).__name__}")
        if not (self.min_ttl <= ttl <= self.max_ttl):
            raise ValidationError(
                f"{field} must be between {self.policy.min_ttl_hours} and "
                f"{self.policy.max_ttl_hours} hours, got {ttl}"
            )
        return ttl

    def _now(self) -> datetime:
        # Подпись S3 имеет секундную точность, expires_at должен совпадать с ней
        return self._clock().astimezone(timezone.utc).replace(microsecond=0)

    async def sign(
        self,
        blob_name: str,
        ttl: timedelta,
        *,
        content_disposition: Optional[str] = None,
        issued_at: Optional[datetime] = None,
    ) -> SignedUrl:
        """Единственная точка, где подписываются ссылки на чтение."""
        if ttl <= timedelta(0) or ttl > MAX_SIGNATURE_TTL:
            raise ValidationError(f"Signature lifetime must be within (0, {MAX_SIGNATURE_TTL}], got {ttl}")
        return await self.blob_store.issue_signed_url(
            blob_name,
            ttl,
            issued_at=issued_at or self._now(),
            content_disposition=content_disposition,
        )

    async def issue_access_token(
        self,
        doc_id: int,
        token_ttl: timedelta,
        share_link_ttl: timedelta,
    ) -> Optional[TokenResult]:
        """
        Выдаёт access-токен и share-ссылку для документа.
        None, если документа нет. ValidationError до любого I/O, если TTL вне границ.
        """
        self.validate_ttl(token_ttl, "token_ttl")
        self.validate_ttl(share_link_ttl, "share_link_ttl")
        return await self._issue(doc_id, token_ttl, share_link_ttl)

    async def issue_default_tokens(self, doc_id: int) -> Optional[TokenResult]:
        """TTL из политики (4 часа / 7 дней) для только что загруженного документа."""
        return await self._issue(
            doc_id,
            timedelta(hours=self.policy.access_ttl_hours),
            timedelta(hours=self.policy.share_ttl_hours),
        )

    async def issue_download_link(self, doc: DocumentInDB) -> SignedUrl:
        """
        Отдельная короткая ссылка на скачивание. В метаданные не пишется,
        но подписывается тем же путём, что и access-токен.
        """
        return await self.sign(
            doc.blob_name,
            timedelta(hours=self.policy.download_link_ttl_hours),
            content_disposition=attachment_disposition(doc.file_name),
        )

    async def _issue(self, doc_id: int, token_ttl: timedelta, share_link_ttl: timedelta) -> Optional[TokenResult]:
        doc = await self.metarepo.get(doc_id)
        if doc is None:
            logger.info("Token requested for missing document %s", doc_id)
            return None

        issued_at = self._now()
        access = await self.sign(
            doc.blob_name,
            token_ttl,
            content_disposition=attachment_disposition(doc.file_name),
            issued_at=issued_at,
        )
        share = await self.sign(doc.blob_name, share_link_ttl, issued_at=issued_at)

        updated = await self.metarepo.update_token_fields(doc.id, access.url, access.expires_at)
        if updated is None:
            # Документ удалили между чтением и записью
            logger.warning("Document %s disappeared while issuing tokens", doc_id)
            return None

        logger.info(
            "Issued access token for document %s (expires %s, share link expires %s)",
            doc.id, access.expires_at.isoformat(), share.expires_at.isoformat(),
        )
        return TokenResult(
            document_id=doc.id,
            access_token=AccessToken(url=access.url, expires_at=access.expires_at),
            share_link=ShareLink(url=share.url, expires_at=share.expires_at),
        )
