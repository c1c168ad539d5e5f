import fitz
import pytest

from docpreview.core.exceptions import PreviewGenerationError
from docpreview.services.preview.converter import PyMuPDFConverter


def make_pdf() -> bytes:
    document = fitz.open()
    page = document.new_page()
    page.insert_text((72, 72), "Chapter One")
    data = document.tobytes()
    document.close()
    return data


@pytest.mark.asyncio
async def test_renders_first_page_to_png():
    converter = PyMuPDFConverter(render_width=120)

    image = await converter.convert(make_pdf(), "PDF")

    assert image.startswith(b"\x89PNG\r\n\x1a\n")
    pixmap = fitz.Pixmap(image)
    assert abs(pixmap.width - 120) <= 1


@pytest.mark.asyncio
async def test_garbage_input_raises():
    with pytest.raises(PreviewGenerationError):
        await PyMuPDFConverter().convert(b"not a pdf", "pdf")


@pytest.mark.asyncio
async def test_unsupported_type_raises():
    converter = PyMuPDFConverter()

    assert not converter.supports("docx")
    with pytest.raises(PreviewGenerationError):
        await converter.convert(b"PK\x03\x04", "docx")
