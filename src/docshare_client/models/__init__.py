from .document import DocumentCreate, DocumentInDB, DocumentPreview, DownloadedDocument
from .token import SignedUrl, AccessToken, ShareLink, TokenResult

__all__ = [
    "DocumentCreate", "DocumentInDB", "DocumentPreview", "DownloadedDocument",
    "SignedUrl", "AccessToken", "ShareLink", "TokenResult",
]
