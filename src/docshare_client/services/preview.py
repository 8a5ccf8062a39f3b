import logging
from io import BytesIO
from typing import Protocol

import pypdfium2 as pdfium

from docshare_client.exceptions import ConversionFailedError
from docshare_client.services.file_types import PDF
from docshare_client.utils.minio_async import run_render

logger = logging.getLogger(__name__)


class Rasterizer(Protocol):
    async def rasterize(self, data: bytes, source_format: str) -> bytes:
        """Первая страница документа -> PNG."""
        ...


class PdfFirstPageRasterizer:
    def __init__(self, scale: float = 1.0):
        self._scale = scale

    async def rasterize(self, data: bytes, source_format: str) -> bytes:
        if source_format != PDF:
            raise ConversionFailedError(f"Cannot rasterize '{source_format}'")
        return await run_render(self._render_first_page, data)

    def _render_first_page(self, data: bytes) -> bytes:
        try:
            pdf = pdfium.PdfDocument(data)
        except pdfium.PdfiumError as e:
            raise ConversionFailedError(f"Not a readable PDF: {e}") from e
        try:
            if len(pdf) == 0:
                raise ConversionFailedError("PDF has no pages")
            page = pdf[0]
            try:
                image = page.render(scale=self._scale).to_pil()
            finally:
                page.close()
            buf = BytesIO()
            image.save(buf, format="PNG")
            return buf.getvalue()
        except pdfium.PdfiumError as e:
            raise ConversionFailedError(f"PDF rendering failed: {e}") from e
        finally:
            pdf.close()
