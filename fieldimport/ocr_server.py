"""
OCR text service (server side of the fallback contract).

POST /api/ocr  {"pdfData": <base64 PDF>}
  200 {"success": true, "text": "--- Page 1 ---\\n...\\n--- Page 2 ---\\n..."}
  400 {"error": "PDF data is required"}
  500 {"error": ..., "details": ...}

Pages are rendered at OCR_SERVICE_DPI and read with Tesseract in
OCR_SERVICE_PSM (4 = single column, good for boxed forms).

Run:
    python -m fieldimport.ocr_server
"""

import asyncio
import base64
import binascii
import io
from typing import List, Optional

import pdfplumber
from aiohttp import web

from fieldimport.config import ImportSettings, settings as default_settings
from fieldimport.errors import OCREngineUnavailable
from fieldimport.services.ocr_engine import OCREngine, OCRJob
from fieldimport.util.logger import get_logger

ENGINE_KEY = web.AppKey("engine", OCREngine)
SETTINGS_KEY = web.AppKey("settings", ImportSettings)
OCR_LOCK_KEY = web.AppKey("ocr_lock", asyncio.Lock)


def page_marker(number: int) -> str:
    return f"--- Page {number} ---"


def ocr_pdf_text(pdf_bytes: bytes, engine: OCREngine, settings: ImportSettings) -> str:
    """Render + recognise every page; page-marked plain text."""
    logger = get_logger("ocr_server")
    engine.ensure_ready()
    parts: List[str] = []
    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        for idx, page in enumerate(pdf.pages, start=1):
            image = page.to_image(resolution=settings.OCR_SERVICE_DPI).original
            job = OCRJob.from_image(image, lang=settings.OCR_LANGUAGE, psm=settings.OCR_SERVICE_PSM)
            text = engine.image_to_text(job)
            logger.debug(f"Page {idx}: {len(text)} chars")
            parts.append(page_marker(idx))
            parts.append(text.strip())
    return "\n".join(parts) + "\n"


async def handle_ocr(request: web.Request) -> web.Response:
    logger = get_logger("ocr_server")
    try:
        body = await request.json()
    except ValueError:
        body = None
    pdf_data = body.get("pdfData") if isinstance(body, dict) else None
    if not pdf_data:
        return web.json_response({"error": "PDF data is required"}, status=400)

    try:
        pdf_bytes = base64.b64decode(pdf_data, validate=True)
    except (binascii.Error, ValueError) as e:
        return web.json_response({"error": "PDF data is not valid base64", "details": str(e)}, status=400)

    engine = request.app[ENGINE_KEY]
    settings = request.app[SETTINGS_KEY]
    try:
        async with request.app[OCR_LOCK_KEY]:
            text = await asyncio.to_thread(ocr_pdf_text, pdf_bytes, engine, settings)
    except OCREngineUnavailable as e:
        logger.error(f"OCR engine unavailable: {e}")
        return web.json_response(
            {"error": "OCR functionality not available", "details": str(e)}, status=500
        )
    except Exception as e:
        logger.exception(f"OCR failed: {e}")
        return web.json_response({"error": "OCR processing failed", "details": str(e)}, status=500)

    logger.info(f"OCR request: {len(pdf_bytes)} bytes -> {len(text)} chars")
    return web.json_response({"success": True, "text": text})


def create_app(engine: Optional[OCREngine] = None, settings: Optional[ImportSettings] = None) -> web.Application:
    s = settings or default_settings
    app = web.Application(client_max_size=100 * 1024 * 1024)
    app[SETTINGS_KEY] = s
    app[ENGINE_KEY] = engine or OCREngine(lang=s.OCR_LANGUAGE)
    # one recognition job at a time on the shared engine
    app[OCR_LOCK_KEY] = asyncio.Lock()
    app.router.add_post("/api/ocr", handle_ocr)
    return app


def main() -> None:
    s = default_settings
    get_logger("ocr_server").info(f"OCR server on {s.OCR_SERVER_HOST}:{s.OCR_SERVER_PORT}")
    web.run_app(create_app(settings=s), host=s.OCR_SERVER_HOST, port=s.OCR_SERVER_PORT)


if __name__ == "__main__":
    main()
