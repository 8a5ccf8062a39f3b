from .file_types import classify_file_type, build_blob_name, PREVIEWABLE_TYPES
from .token_issuer import TokenIssuer
from .preview import Rasterizer, PdfFirstPageRasterizer

__all__ = [
    "classify_file_type", "build_blob_name", "PREVIEWABLE_TYPES",
    "TokenIssuer", "Rasterizer", "PdfFirstPageRasterizer",
]
