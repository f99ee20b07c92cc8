"""
Tests for the OCR text service and its client, talking over a real local
aiohttp test server (OCR itself is faked).
"""

import asyncio
import base64
import threading
import time

import pytest
from aiohttp import test_utils, web

from conftest import FakeEngine
from fieldimport import ocr_server
from fieldimport.config import ImportSettings
from fieldimport.errors import OCREngineUnavailable, OCRServiceError
from fieldimport.services.ocr_engine import OCRWord
from fieldimport.services.ocr_fallback import OCRServiceClient, extract_with_ocr_fallback

PAGE_TEXT = "--- Page 1 ---\nInvestor Name: Jane Doe\n"


def make_app():
    return ocr_server.create_app(engine=FakeEngine(), settings=ImportSettings())


class TestOCRServer:
    """Test the POST /api/ocr contract."""

    @pytest.mark.asyncio
    async def test_success(self, monkeypatch):
        """Valid base64 PDF -> {success: true, text}."""
        monkeypatch.setattr(ocr_server, "ocr_pdf_text", lambda pdf, engine, settings: PAGE_TEXT)
        async with test_utils.TestClient(test_utils.TestServer(make_app())) as client:
            resp = await client.post("/api/ocr", json={"pdfData": base64.b64encode(b"%PDF").decode()})
            assert resp.status == 200
            assert await resp.json() == {"success": True, "text": PAGE_TEXT}

    @pytest.mark.asyncio
    async def test_missing_pdf_data(self):
        """No pdfData -> 400 with an error message."""
        async with test_utils.TestClient(test_utils.TestServer(make_app())) as client:
            resp = await client.post("/api/ocr", json={})
            assert resp.status == 400
            assert (await resp.json())["error"] == "PDF data is required"

    @pytest.mark.asyncio
    async def test_bad_base64(self):
        """Undecodable pdfData -> 400."""
        async with test_utils.TestClient(test_utils.TestServer(make_app())) as client:
            resp = await client.post("/api/ocr", json={"pdfData": "not base64!!"})
            assert resp.status == 400

    @pytest.mark.asyncio
    async def test_engine_unavailable(self, monkeypatch):
        """OCR failures come back as 500 with error and details."""
        def boom(pdf, engine, settings):
            raise OCREngineUnavailable("tesseract missing")

        monkeypatch.setattr(ocr_server, "ocr_pdf_text", boom)
        async with test_utils.TestClient(test_utils.TestServer(make_app())) as client:
            resp = await client.post("/api/ocr", json={"pdfData": base64.b64encode(b"%PDF").decode()})
            body = await resp.json()
            assert resp.status == 500
            assert body["details"] == "tesseract missing"
            assert "error" in body

    @pytest.mark.asyncio
    async def test_requests_recognised_one_at_a_time(self, monkeypatch):
        """Overlapping POSTs never run two recognition jobs on the shared engine at once."""
        guard = threading.Lock()
        state = {"active": 0, "peak": 0}

        def slow_ocr(pdf, engine, settings):
            with guard:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.1)
            with guard:
                state["active"] -= 1
            return PAGE_TEXT

        monkeypatch.setattr(ocr_server, "ocr_pdf_text", slow_ocr)
        payload = {"pdfData": base64.b64encode(b"%PDF").decode()}
        async with test_utils.TestClient(test_utils.TestServer(make_app())) as client:
            responses = await asyncio.gather(*(client.post("/api/ocr", json=payload) for _ in range(3)))
            assert [r.status for r in responses] == [200, 200, 200]
        assert state["peak"] == 1


class TestOCRPdfText:
    """Test page rendering + page markers with a fake engine."""

    def test_page_marked_output(self, label_pdf):
        """Every page is prefixed with its marker."""
        engine = FakeEngine(words=[OCRWord(text="Hello", left=0, top=0, width=10, height=10, confidence=95)])
        settings = ImportSettings(OCR_SERVICE_DPI=72)
        text = ocr_server.ocr_pdf_text(label_pdf, engine, settings)
        assert text == "--- Page 1 ---\nHello\n"
        assert engine.ready_calls == 1
        assert engine.jobs[0].psm == settings.OCR_SERVICE_PSM


class TestOCRServiceClient:
    """Test the client against the real server routes."""

    @pytest.mark.asyncio
    async def test_round_trip(self, monkeypatch):
        """Client posts base64, gets text, parser maps it."""
        monkeypatch.setattr(ocr_server, "ocr_pdf_text", lambda pdf, engine, settings: PAGE_TEXT)
        async with test_utils.TestClient(test_utils.TestServer(make_app())) as client:
            svc = OCRServiceClient(url=str(client.make_url("/api/ocr")), timeout=10)
            assert await svc.extract_text(b"%PDF") == PAGE_TEXT
            data = await extract_with_ocr_fallback(b"%PDF", (), svc)
            assert data["Investor Name"] == "Jane Doe"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        """A 400 from the server becomes OCRServiceError with the status."""
        async with test_utils.TestClient(test_utils.TestServer(make_app())) as client:
            svc = OCRServiceClient(url=str(client.make_url("/api/ocr")), timeout=10)
            with pytest.raises(OCRServiceError) as exc:
                await svc.extract_text(b"")
            assert exc.value.status == 400

    @pytest.mark.asyncio
    async def test_unreachable_raises(self):
        """Connection failures become OCRServiceError."""
        svc = OCRServiceClient(url="http://127.0.0.1:9/api/ocr", timeout=2)
        with pytest.raises(OCRServiceError):
            await svc.extract_text(b"%PDF")

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        """A service slower than the client timeout becomes OCRServiceError."""
        async def stall(request):
            await asyncio.sleep(1)
            return web.json_response({"success": True, "text": PAGE_TEXT})

        app = web.Application()
        app.router.add_post("/api/ocr", stall)
        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            svc = OCRServiceClient(url=str(client.make_url("/api/ocr")), timeout=0.2)
            with pytest.raises(OCRServiceError, match="timed out"):
                await svc.extract_text(b"%PDF")
            with pytest.raises(OCRServiceError):
                await extract_with_ocr_fallback(b"%PDF", (), svc)
