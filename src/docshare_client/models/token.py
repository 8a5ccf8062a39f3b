"""
Value-объекты для подписанных ссылок.

AccessToken и ShareLink намеренно разные типы: в БД хранится только AccessToken,
ShareLink всегда вычисляется заново и ни в какую колонку не пишется.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SignedUrl(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    expires_at: datetime


class AccessToken(SignedUrl):
    """Короткоживущая ссылка на скачивание (Content-Disposition: attachment)."""


class ShareLink(SignedUrl):
    """Ссылка для просмотра inline, со своим независимым сроком жизни."""


class TokenResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: int
    access_token: AccessToken
    share_link: ShareLink

    @property
    def token(self) -> str:
        return self.access_token.url

    @property
    def expires_at(self) -> datetime:
        return self.access_token.expires_at
