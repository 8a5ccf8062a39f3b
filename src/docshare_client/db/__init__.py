# docshare_client/db/__init__.py

from .base import Base, get_session
from .document_orm import DocumentORM

__all__ = [
    "Base",
    "get_session",
    "DocumentORM",
]
