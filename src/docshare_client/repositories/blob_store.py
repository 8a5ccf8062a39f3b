from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Protocol, runtime_checkable

from docshare_client.exceptions import InvalidKeyError
from docshare_client.models.token import SignedUrl

# Символы, недопустимые в имени файла/ключе объекта: управляющие + набор Windows/URL.
ILLEGAL_KEY_CHARS = frozenset([chr(c) for c in range(32)] + list('"<>|:*?\\/'))
MAX_KEY_BYTES = 1024


def sanitize_blob_name(name: str) -> str:
    """Удаляет (а не заменяет) недопустимые символы, чтобы ключ оставался читаемым."""
    return "".join(ch for ch in name if ch not in ILLEGAL_KEY_CHARS)


def validate_blob_name(name: str) -> str:
    if not name or name in (".", ".."):
        raise InvalidKeyError(f"Invalid object key: {name!r}")
    bad = sorted({ch for ch in name if ch in ILLEGAL_KEY_CHARS})
    if bad:
        raise InvalidKeyError(f"Object key {name!r} contains illegal characters: {bad!r}")
    if len(name.encode("utf-8")) > MAX_KEY_BYTES:
        raise InvalidKeyError(f"Object key is longer than {MAX_KEY_BYTES} bytes")
    return name


@runtime_checkable
class BlobStore(Protocol):
    """
    Минимальный контракт объектного хранилища.
    DocumentClient и TokenIssuer работают только через него, бэкенд подменяемый.
    """

    async def check_connection(self) -> None:
        """StorageError, если хранилище недоступно."""
        ...

    async def put_object(self, object_name: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Перезаписывает объект по ключу, возвращает путь к нему."""
        ...

    async def get_object(self, object_name: str) -> bytes:
        ...

    async def remove_object(self, object_name: str) -> None:
        """Идемпотентно: отсутствующий ключ не ошибка."""
        ...

    async def exists(self, object_name: str) -> bool:
        ...

    async def issue_signed_url(
        self,
        object_name: str,
        ttl: timedelta,
        *,
        issued_at: datetime,
        content_disposition: Optional[str] = None,
    ) -> SignedUrl:
        """Подписанная ссылка только на чтение, действует до issued_at + ttl."""
        ...
