"""
Shared fixtures: real PDFs built with reportlab, plus OCR doubles so nothing
needs Tesseract or a running OCR service.
"""

from typing import List, Optional

import pytest

from fieldimport.config import ImportSettings
from fieldimport.errors import OCREngineUnavailable, OCRServiceError
from fieldimport.services.ocr_engine import OCRJob, OCRWord
from scripts.generate_sample_pdfs import (
    build_form_pdf,
    build_label_pdf,
    build_safe_pdf,
    build_token_pdf,
)


class FakeOCRClient:
    """Stands in for OCRServiceClient; records what it was sent."""

    def __init__(self, text: Optional[str] = None, error: Optional[Exception] = None):
        self.url = "http://ocr.test/api/ocr"
        self.text = text
        self.error = error
        self.calls: List[bytes] = []

    async def extract_text(self, pdf_bytes: bytes) -> str:
        self.calls.append(pdf_bytes)
        if self.error is not None:
            raise self.error
        return self.text or ""


class FakeEngine:
    """Stands in for OCREngine; returns canned words for every page."""

    def __init__(self, words: Optional[List[OCRWord]] = None, unavailable: bool = False):
        self.words = words or []
        self.unavailable = unavailable
        self.ready_calls = 0
        self.jobs: List[OCRJob] = []

    def ensure_ready(self) -> None:
        self.ready_calls += 1
        if self.unavailable:
            raise OCREngineUnavailable("tesseract missing")

    def recognize(self, job: OCRJob) -> List[OCRWord]:
        self.jobs.append(job)
        return list(self.words)

    def image_to_text(self, job: OCRJob) -> str:
        self.jobs.append(job)
        return " ".join(w.text for w in self.words)


@pytest.fixture
def no_ocr_settings() -> ImportSettings:
    return ImportSettings(ALLOW_OCR=False)


@pytest.fixture
def ocr_settings() -> ImportSettings:
    return ImportSettings(ALLOW_OCR=True)


@pytest.fixture
def label_pdf() -> bytes:
    return build_label_pdf()


@pytest.fixture
def token_pdf() -> bytes:
    return build_token_pdf()


@pytest.fixture
def form_pdf() -> bytes:
    return build_form_pdf()


@pytest.fixture
def empty_form_pdf() -> bytes:
    return build_form_pdf({"field_company_name": "", "field_investor_name": ""}, checked=False)


@pytest.fixture
def safe_pdf() -> bytes:
    return build_safe_pdf()


@pytest.fixture
def failing_client() -> FakeOCRClient:
    return FakeOCRClient(error=OCRServiceError("service down", status=503))
