"""PDF text extraction with PyMuPDF.

Turns a PDF byte buffer into plain text for prompt grounding and for the
resource library's ``extracted_text`` column.

Layout of the result:
- within a page, text items are joined by a single space (empty items dropped)
- pages are joined by a blank line, in page order
- the final text is stripped

A page that fails to parse is logged and skipped; the rest of the document is
still used.  An unreadable document raises ``ExtractionError("decode")`` and a
document without a text layer raises ``ExtractionError("empty")``.
"""

from __future__ import annotations

import asyncio
import logging

import fitz  # PyMuPDF

from errors.exceptions import ExtractionError

logger = logging.getLogger(__name__)

# get_text("words") tuple index of the word string
_WORD_TEXT = 4


def _page_text(page: fitz.Page) -> str:
    """Join one page's text items with single spaces."""
    words = page.get_text("words")
    return " ".join(w[_WORD_TEXT] for w in words if w[_WORD_TEXT].strip())


def extract_pdf_text(data: bytes) -> str:
    """Extract the text of every readable page of a PDF.

    Args:
        data: Raw bytes purporting to be a PDF document.

    Returns:
        Page texts joined by blank lines, stripped.

    Raises:
        ExtractionError: ``decode`` if the document (or every page) is
            unreadable, ``empty`` if no page carries text.
    """
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        logger.warning("PDF decode failed (%d bytes): %s", len(data), exc)
        raise ExtractionError("decode", f"Invalid PDF document: {exc}") from exc

    with doc:
        page_count = doc.page_count
        page_texts: list[str] = []
        failed = 0
        for index in range(page_count):
            try:
                text = _page_text(doc.load_page(index))
            except Exception as exc:
                failed += 1
                logger.warning("Skipping PDF page %d/%d: %s", index + 1, page_count, exc)
                continue
            if text.strip():
                page_texts.append(text)

    if page_count and failed == page_count:
        raise ExtractionError("decode", f"All {page_count} pages failed to parse")

    result = "\n\n".join(page_texts).strip()
    if not result:
        raise ExtractionError("empty", "No text content found in PDF")

    logger.info(
        "Extracted %d chars from %d/%d PDF pages",
        len(result), len(page_texts), page_count,
    )
    return result


async def extract_pdf_text_async(data: bytes) -> str:
    """Run :func:`extract_pdf_text` in a worker thread."""
    return await asyncio.to_thread(extract_pdf_text, data)
