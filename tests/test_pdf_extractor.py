"""Tests for services/pdf_extractor.py — PDF bytes to grounding text."""

import fitz
import pytest

from errors.exceptions import ExtractionError
from services import pdf_extractor
from services.pdf_extractor import extract_pdf_text, extract_pdf_text_async
from tests.conftest import make_pdf


def test_pages_joined_by_blank_line(sample_pdf):
    text = extract_pdf_text(sample_pdf)
    assert text == "Photosynthesis converts light energy\n\nChlorophyll absorbs red light"


def test_items_joined_by_single_space():
    text = extract_pdf_text(make_pdf("Mitochondria   are    organelles"))
    assert text == "Mitochondria are organelles"


def test_blank_page_is_skipped():
    text = extract_pdf_text(make_pdf("First page", "", "Third page"))
    assert text == "First page\n\nThird page"


def test_result_is_stripped():
    text = extract_pdf_text(make_pdf("  padded  "))
    assert text == text.strip()
    assert text == "padded"


def test_no_text_layer_raises_empty():
    with pytest.raises(ExtractionError) as exc_info:
        extract_pdf_text(make_pdf("", ""))
    assert exc_info.value.kind == "empty"


def test_image_only_document_raises_empty():
    doc = fitz.open()
    for _ in range(2):
        pixmap = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, 20, 20), False)
        pixmap.clear_with(200)
        doc.new_page().insert_image(fitz.Rect(72, 72, 272, 272), pixmap=pixmap)
    data = doc.tobytes()
    doc.close()

    with pytest.raises(ExtractionError) as exc_info:
        extract_pdf_text(data)
    assert exc_info.value.kind == "empty"


def test_garbage_bytes_raise_decode():
    with pytest.raises(ExtractionError) as exc_info:
        extract_pdf_text(b"this is not a pdf at all")
    assert exc_info.value.kind == "decode"


def test_failing_page_is_skipped(monkeypatch):
    real_page_text = pdf_extractor._page_text

    def flaky(page):
        if page.number == 1:
            raise RuntimeError("broken content stream")
        return real_page_text(page)

    monkeypatch.setattr(pdf_extractor, "_page_text", flaky)
    text = extract_pdf_text(make_pdf("Page one", "Page two", "Page three"))
    assert text == "Page one\n\nPage three"


def test_every_page_failing_raises_decode(monkeypatch):
    def broken(page):
        raise RuntimeError("broken content stream")

    monkeypatch.setattr(pdf_extractor, "_page_text", broken)
    with pytest.raises(ExtractionError) as exc_info:
        extract_pdf_text(make_pdf("Page one", "Page two"))
    assert exc_info.value.kind == "decode"


@pytest.mark.asyncio
async def test_async_wrapper(sample_pdf):
    assert await extract_pdf_text_async(sample_pdf) == extract_pdf_text(sample_pdf)
