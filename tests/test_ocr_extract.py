"""
Tests for the OCR span extractor: pixel to page-space conversion, the yield
floor and per-page failure handling. Tesseract is replaced by FakeEngine.
"""

import pytest
from PIL import Image

from conftest import FakeEngine
from fieldimport.config import ImportSettings
from fieldimport.errors import OCREngineUnavailable
from fieldimport.services import ocr_extract
from fieldimport.services.ocr_engine import OCRJob, OCRWord, words_from_data
from fieldimport.services.ocr_extract import (
    extract_ocr_spans,
    is_ocr_successful,
    ocr_stats,
    ocr_words_to_spans,
    passes_yield_check,
)


def word(text, conf, left=0, top=0):
    return OCRWord(text=text, left=left, top=top, width=100, height=50, confidence=conf)


def blank_job(page, dpi, lang):
    return OCRJob(width=1, height=1, mode="L", pixels=b"\x00", lang=lang)


class TestOCRJob:
    """Test the plain-data job boundary."""

    def test_from_image_converts_mode(self):
        """RGBA images are converted to RGB and survive the round trip."""
        image = Image.new("RGBA", (4, 3), (255, 0, 0, 255))
        job = OCRJob.from_image(image, lang="deu", psm=6)
        assert (job.width, job.height, job.mode) == (4, 3, "RGB")
        assert job.lang == "deu" and job.psm == 6
        assert job.to_image().getpixel((0, 0)) == (255, 0, 0)

    def test_words_from_data(self):
        """Empty words and non-positive confidences are dropped."""
        data = {
            "text": ["Jane", "", "Doe", "noise"],
            "conf": ["91", "-1", 88.5, "-1"],
            "left": [10, 0, 60, 0],
            "top": [20, 0, 20, 0],
            "width": [40, 0, 35, 0],
            "height": [12, 0, 12, 0],
        }
        words = words_from_data(data)
        assert [w.text for w in words] == ["Jane", "Doe"]
        assert words[1].confidence == 88.5


class TestOCRWordsToSpans:
    """Test pixel-space to page-space conversion."""

    def test_scale_and_flip(self):
        """Pixels divide by dpi/72 and y flips to a bottom-left origin."""
        spans = ocr_words_to_spans([OCRWord("Jane", left=300, top=100, width=150, height=50, confidence=90)], 2, 792.0, 300)
        s = spans[0]
        scale = 300 / 72.0
        assert s.x == pytest.approx(300 / scale)
        assert s.w == pytest.approx(150 / scale)
        assert s.h == pytest.approx(50 / scale)
        assert s.y == pytest.approx(792.0 - 150 / scale)
        assert s.page == 2
        assert s.confidence == 90

    def test_identity_at_72_dpi(self):
        """At 72 dpi one pixel is one point."""
        s = ocr_words_to_spans([OCRWord("x", left=10, top=20, width=5, height=8, confidence=50)], 0, 100.0, 72)[0]
        assert (s.x, s.y, s.w, s.h) == (10, 72, 5, 8)


class TestYieldCheck:
    """Test the word-count and average-confidence floor."""

    def test_stats(self):
        """Stats count words, average confidence and low-quality pages."""
        spans = ocr_words_to_spans([word("a", 90), word("b", 20)], 0, 792, 72)
        spans += ocr_words_to_spans([word("c", 70)], 1, 792, 72)
        stats = ocr_stats(spans, low_quality_below=35)
        assert stats.total_words == 3
        assert stats.avg_confidence == pytest.approx(60.0)
        assert stats.low_quality_pages == 1

    def test_empty_stats(self):
        """No spans -> zeros."""
        assert ocr_stats([]).total_words == 0

    def test_floor(self):
        """Both the word count and the average confidence must reach the floor."""
        s = ImportSettings(OCR_MIN_WORDS=3, OCR_MIN_AVG_CONFIDENCE=60)
        good = ocr_words_to_spans([word("w", 80)] * 3, 0, 792, 72)
        few = good[:2]
        weak = ocr_words_to_spans([word("w", 40)] * 3, 0, 792, 72)
        assert is_ocr_successful(good, s)
        assert not is_ocr_successful(few, s)
        assert not is_ocr_successful(weak, s)
        assert not passes_yield_check(ocr_stats([]), s)


class TestExtractOCRSpans:
    """Test the async page loop with a fake engine."""

    @pytest.mark.asyncio
    async def test_low_yield_returns_empty(self, label_pdf, monkeypatch):
        """Five words at confidence 40 fail the floor -> []."""
        monkeypatch.setattr(ocr_extract, "_render_page", blank_job)
        engine = FakeEngine(words=[word(f"w{i}", 40) for i in range(5)])
        assert await extract_ocr_spans(label_pdf, engine, ImportSettings()) == []
        assert engine.ready_calls == 1

    @pytest.mark.asyncio
    async def test_good_yield_returns_spans(self, label_pdf, monkeypatch):
        """Enough confident words come back as page-space spans."""
        monkeypatch.setattr(ocr_extract, "_render_page", blank_job)
        engine = FakeEngine(words=[word(f"w{i}", 95, left=i * 10) for i in range(25)])
        spans = await extract_ocr_spans(label_pdf, engine, ImportSettings(OCR_DPI=144))
        assert len(spans) == 25
        assert all(s.page == 0 and s.confidence == 95 for s in spans)
        assert spans[1].x == pytest.approx(5.0)

    @pytest.mark.asyncio
    async def test_engine_unavailable_raises(self, label_pdf):
        """A missing engine surfaces as OCREngineUnavailable."""
        with pytest.raises(OCREngineUnavailable):
            await extract_ocr_spans(label_pdf, FakeEngine(unavailable=True), ImportSettings())

    @pytest.mark.asyncio
    async def test_page_failure_skipped(self, label_pdf, monkeypatch):
        """A page that fails to render is skipped, not raised."""
        def broken(page, dpi, lang):
            raise RuntimeError("render failed")

        monkeypatch.setattr(ocr_extract, "_render_page", broken)
        engine = FakeEngine(words=[word("w", 95)] * 25)
        assert await extract_ocr_spans(label_pdf, engine, ImportSettings()) == []
        assert engine.jobs == []
