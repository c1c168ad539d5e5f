"""Document to preview image converters."""

import asyncio
from abc import ABC, abstractmethod
from typing import Sequence

import fitz

from docpreview.core.exceptions import PreviewGenerationError
from docpreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class PreviewConverter(ABC):
    """Turns raw document bytes into a preview image."""

    content_type: str = "image/png"
    supported_types: Sequence[str] = ()

    def supports(self, document_type: str) -> bool:
        return document_type.lower() in self.supported_types

    @abstractmethod
    async def convert(self, data: bytes, document_type: str) -> bytes:
        """Render a preview.

        Raises:
            PreviewGenerationError: If the document cannot be rendered
        """


class PyMuPDFConverter(PreviewConverter):
    """Renders the first page of a PDF or EPUB to a PNG thumbnail."""

    content_type = "image/png"
    supported_types = ("pdf", "epub")

    def __init__(self, render_width: int = 480):
        self.render_width = render_width

    def _render(self, data: bytes, document_type: str) -> bytes:
        try:
            document = fitz.open(stream=data, filetype=document_type)
        except Exception as e:
            raise PreviewGenerationError(f"Unable to open {document_type} document", original_error=e)

        try:
            if document.page_count < 1:
                raise PreviewGenerationError("Document has no pages")
            page = document.load_page(0)
            width = page.rect.width or 1
            scale = self.render_width / width
            pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            return pixmap.tobytes("png")
        finally:
            document.close()

    async def convert(self, data: bytes, document_type: str) -> bytes:
        document_type = document_type.lower()
        if not self.supports(document_type):
            raise PreviewGenerationError(f"No converter for document type: {document_type}")
        return await asyncio.to_thread(self._render, data, document_type)
