"""
PDF bytes -> TextSpan list (text-layer adapter).

- Uses pdfplumber to walk pages and positioned text runs; nothing is rendered,
  so this is the cheap path and always runs before OCR.
- Runs keep their inner blanks ("Investor Name:" stays one span), which is
  what the label matcher expects from a text layer.
- pdfplumber measures from the top-left; spans are converted to the
  bottom-left origin the rest of the pipeline uses.

Why separate this:
- Easy to swap/compare parsers without touching the matching rules.
- Keeps matching code focused on geometry and text, not PDF internals.
"""

import io
from typing import List, Optional

import pdfplumber

from fieldimport.models.schemas import TextSpan
from fieldimport.util.logger import get_logger


def words_to_spans(words: List[dict], page_index: int, page_height: float) -> List[TextSpan]:
    """pdfplumber word dicts (top-left origin) -> TextSpans (bottom-left origin)."""
    spans: List[TextSpan] = []
    for w in words:
        text = (w.get("text") or "").strip()
        if not text:
            continue
        x0, x1 = float(w["x0"]), float(w["x1"])
        top, bottom = float(w["top"]), float(w["bottom"])
        spans.append(TextSpan(
            text=text,
            x=x0,
            y=page_height - bottom,
            w=x1 - x0,
            h=bottom - top,
            page=page_index,
        ))
    return spans


def extract_text_spans(pdf_bytes: bytes, max_pages: Optional[int] = None) -> List[TextSpan]:
    """
    Read a PDF and return its text-layer spans, page by page in document order.

    Notes/assumptions:
    - Runs are read in text-flow order within a page.
    - Whitespace-only runs are dropped.
    - A scanned PDF simply yields an empty list here.

    Raises:
        Whatever pdfplumber raises for unreadable input; the importer decides
        how to degrade.
    """
    logger = get_logger("parse_pdf")
    spans: List[TextSpan] = []
    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        pages = pdf.pages if max_pages is None else pdf.pages[:max_pages]
        logger.info(f"Opened PDF with {len(pdf.pages)} pages, reading {len(pages)}")
        for p_idx, page in enumerate(pages):
            words = page.extract_words(
                use_text_flow=True,
                keep_blank_chars=True,
                x_tolerance=2,   # horizontal merge tolerance
                y_tolerance=3    # vertical grouping tolerance
            ) or []
            page_spans = words_to_spans(words, p_idx, float(page.height))
            logger.debug(f"Page {p_idx}: {len(page_spans)} text runs")
            spans.extend(page_spans)

    logger.info(f"Text layer: {len(spans)} spans, {sum(len(s.text) for s in spans)} chars")
    return spans
