"""
PDF bytes -> OCR TextSpans (for scans and image-only pages).

- Render each page (pdfplumber rasterisation) at settings.OCR_DPI.
- Run the page through OCREngine as a plain OCRJob.
- Convert word boxes from pixels (top-left origin) to PDF points
  (bottom-left origin) with scale = dpi / 72, same as the text layer.

Pages are processed one at a time so only one raster is in memory. A page
that fails is logged and skipped. When the whole document's yield is too
thin (few words or low average confidence) we return [] instead of feeding
noise to the mapper.
"""

import asyncio
import io
from dataclasses import dataclass
from typing import List, Optional

import pdfplumber

from fieldimport.config import ImportSettings, settings as default_settings
from fieldimport.models.schemas import TextSpan
from fieldimport.services.ocr_engine import OCREngine, OCRJob, OCRWord
from fieldimport.util.logger import get_logger


@dataclass(frozen=True)
class OCRStats:
    total_words: int
    avg_confidence: float
    low_quality_pages: int


def ocr_words_to_spans(words: List[OCRWord], page_index: int, page_height: float, dpi: int) -> List[TextSpan]:
    scale = dpi / 72.0
    spans: List[TextSpan] = []
    for w in words:
        h = w.height / scale
        spans.append(TextSpan(
            text=w.text,
            x=w.left / scale,
            y=page_height - (w.top + w.height) / scale,
            w=w.width / scale,
            h=h,
            page=page_index,
            confidence=w.confidence,
        ))
    return spans


def ocr_stats(spans: List[TextSpan], low_quality_below: Optional[float] = None) -> OCRStats:
    if low_quality_below is None:
        low_quality_below = default_settings.OCR_LOW_QUALITY_WORD_CONFIDENCE
    if not spans:
        return OCRStats(total_words=0, avg_confidence=0.0, low_quality_pages=0)
    confs = [s.confidence or 0.0 for s in spans]
    bad_pages = {s.page for s in spans if (s.confidence or 0.0) < low_quality_below}
    return OCRStats(
        total_words=len(spans),
        avg_confidence=sum(confs) / len(confs),
        low_quality_pages=len(bad_pages),
    )


def passes_yield_check(stats: OCRStats, settings: Optional[ImportSettings] = None) -> bool:
    s = settings or default_settings
    return stats.total_words >= s.OCR_MIN_WORDS and stats.avg_confidence >= s.OCR_MIN_AVG_CONFIDENCE


def is_ocr_successful(spans: List[TextSpan], settings: Optional[ImportSettings] = None) -> bool:
    return passes_yield_check(ocr_stats(spans), settings)


def _render_page(page, dpi: int, lang: str) -> OCRJob:
    image = page.to_image(resolution=dpi).original
    return OCRJob.from_image(image, lang=lang)


async def extract_ocr_spans(
    pdf_bytes: bytes,
    engine: OCREngine,
    settings: Optional[ImportSettings] = None,
) -> List[TextSpan]:
    """
    Recognise every page and return page-space spans, or [] when the
    overall yield fails the word-count / average-confidence floor.

    Raises:
        OCREngineUnavailable: Tesseract missing or language not installed.
    """
    s = settings or default_settings
    logger = get_logger("ocr_extract")
    await asyncio.to_thread(engine.ensure_ready)

    spans: List[TextSpan] = []
    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        logger.info(f"OCR: {len(pdf.pages)} pages at {s.OCR_DPI} dpi")
        for p_idx, page in enumerate(pdf.pages):
            try:
                job = await asyncio.to_thread(_render_page, page, s.OCR_DPI, s.OCR_LANGUAGE)
                words = await asyncio.to_thread(engine.recognize, job)
                page_spans = ocr_words_to_spans(words, p_idx, float(page.height), s.OCR_DPI)
                logger.debug(f"OCR page {p_idx}: {len(page_spans)} words")
                spans.extend(page_spans)
            except Exception as e:
                logger.warning(f"OCR failed on page {p_idx}, skipping: {e}")

    stats = ocr_stats(spans, s.OCR_LOW_QUALITY_WORD_CONFIDENCE)
    logger.info(
        f"OCR yield: {stats.total_words} words, avg confidence {stats.avg_confidence:.1f}, "
        f"{stats.low_quality_pages} low-quality pages"
    )
    if not passes_yield_check(stats, s):
        logger.warning("OCR yield below floor, discarding OCR spans")
        return []
    return spans
