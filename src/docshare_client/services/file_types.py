import os
from uuid import uuid4

from docshare_client.repositories.blob_store import sanitize_blob_name

OCTET_STREAM = "application/octet-stream"
PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PPTX = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

EXTENSION_TYPES = {
    ".pdf": PDF,
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".docx": DOCX,
    ".xlsx": XLSX,
    ".pptx": PPTX,
}

PREVIEWABLE_TYPES = frozenset(EXTENSION_TYPES.values())


def get_extension(file_name: str) -> str:
    return os.path.splitext(file_name or "")[1].lower()


def classify_file_type(file_name: str) -> str:
    """report.PDF -> application/pdf, всё неизвестное -> application/octet-stream."""
    return EXTENSION_TYPES.get(get_extension(file_name), OCTET_STREAM)


def build_blob_name(original_file_name: str) -> str:
    """Случайный ключ + исходное расширение, без недопустимых символов."""
    ext = os.path.splitext(original_file_name or "")[1]
    return sanitize_blob_name(f"{uuid4()}{ext}")


def display_file_name(original_file_name: str, fallback: str) -> str:
    # Клиент может прислать путь целиком, нам нужно только имя
    base = (original_file_name or "").replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = sanitize_blob_name(base).strip()
    return cleaned or fallback
