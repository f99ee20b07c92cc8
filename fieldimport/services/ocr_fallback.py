"""
Last resort: ask the OCR text service for a plain page dump and read
"Label:" / "Label: Value" pairs out of it.

- parse_ocr_text(): line-oriented parser (no positions). A label without a
  same-line value takes the first valid line after it, skipping section
  headers, giving up at the next label or page marker.
- OCRServiceClient: POST {"pdfData": <base64>} -> {"success", "text"}.
- extract_with_ocr_fallback(): client + parser + descriptor matching.

Values are stored under several spellings of the label so the caller's
descriptor keys have a good chance of hitting one.
"""

import asyncio
import base64
import re
from typing import Dict, List, Optional, Sequence, Tuple

import aiohttp

from extraction.patterns import (
    KNOWN_ABBREVIATIONS,
    PAGE_MARKER_REGEX,
    SECTION_HEADER_WORDS_REGEX,
    SECTION_HEADERS,
)
from fieldimport.config import ImportSettings, settings as default_settings
from fieldimport.errors import OCRServiceError
from fieldimport.models.schemas import FieldDescriptor
from fieldimport.services.validate import is_token_text, key_variants, match_to_descriptors
from fieldimport.util.logger import get_logger

page_marker_pat = re.compile(PAGE_MARKER_REGEX)
header_word_pat = re.compile(SECTION_HEADER_WORDS_REGEX, re.IGNORECASE)
number_pat = re.compile(r"^[\d,.\s]+$")
currency_pat = re.compile(r"[$,€£¥]")
symbols_only_pat = re.compile(r"^[^\w\s]+$")

MAX_LOOKAHEAD = 15


# ---------- line classification ----------
def is_page_marker(line: str) -> bool:
    return bool(page_marker_pat.match(line.strip()))


def _is_number(text: str) -> bool:
    stripped = currency_pat.sub("", text)
    return bool(stripped) and bool(number_pat.match(stripped))


def is_section_header(line: str) -> bool:
    """
    "Dates", "INVESTOR", "Company Information" -> True; "500,000", "USA" -> False.

    Short single words in all caps or title case count as headers unless they
    are a known abbreviation.
    """
    t = line.strip()
    if not t:
        return False
    if _is_number(t):
        return False
    lower = t.lower()
    if lower in KNOWN_ABBREVIATIONS:
        return False
    if len(t.split()) == 1 and len(t) < 20:
        if t == t.upper() or t == t[:1].upper() + t[1:].lower():
            return True
    if lower in SECTION_HEADERS:
        return True
    return bool(header_word_pat.match(t))


def is_valid_value(value: Optional[str]) -> bool:
    v = (value or "").strip()
    if len(v) < 2:
        return False
    if is_section_header(v) or is_token_text(v):
        return False
    return not symbols_only_pat.match(v)


def split_field_line(line: str) -> Tuple[str, str]:
    """
    ("Investor Name", "") for "Investor Name:",
    ("Investor Name", "Jane Doe") for "Investor Name: Jane Doe",
    ("", "") when the line is not a field line.
    """
    if line.endswith(":"):
        return line[:-1].strip(), ""
    if ":" in line:
        before, after = line.split(":", 1)
        before, after = before.strip(), after.strip()
        if len(before) >= 2 and not is_section_header(before) and after:
            return before, after
    return "", ""


def _store(result: Dict[str, str], label: str, value: str) -> None:
    for k in key_variants(label):
        result[k] = value


def _scan_for_value(lines: List[str], start: int) -> str:
    scanned = 0
    i = start
    while i < len(lines) and scanned < MAX_LOOKAHEAD:
        line = lines[i]
        if is_page_marker(line):
            break
        if line.endswith(":"):
            if is_section_header(line[:-1].strip()):
                i += 1
                scanned += 1
                continue
            # next label before any value: this field is blank
            break
        if not is_section_header(line) and is_valid_value(line):
            return line
        i += 1
        scanned += 1
    return ""


def parse_ocr_text(text: str) -> Dict[str, str]:
    logger = get_logger("ocr_fallback")
    result: Dict[str, str] = {}
    if not text or not text.strip():
        return result

    lines = [ln.strip() for ln in text.split("\n")]
    lines = [ln for ln in lines if ln]

    for i, line in enumerate(lines):
        if is_page_marker(line):
            continue
        label, same_line = split_field_line(line)
        if len(label) < 2 or is_section_header(label):
            continue

        if same_line and is_valid_value(same_line):
            logger.debug(f"{label!r}: same-line value {same_line!r}")
            _store(result, label, same_line)
            continue

        value = _scan_for_value(lines, i + 1)
        if value:
            logger.debug(f"{label!r}: value {value!r}")
            _store(result, label, value)
        else:
            logger.debug(f"{label!r}: no value")

    return result


# ---------- service client ----------
class OCRServiceClient:
    """Client for the OCR text service (see fieldimport.ocr_server)."""

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None,
                 settings: Optional[ImportSettings] = None):
        s = settings or default_settings
        self.url = url or s.OCR_SERVICE_URL
        self.timeout = aiohttp.ClientTimeout(total=timeout or s.OCR_SERVICE_TIMEOUT)

    async def extract_text(self, pdf_bytes: bytes) -> str:
        """
        Returns the page-marked OCR text.

        Raises:
            OCRServiceError: transport failure or timeout, non-2xx, or an unsuccessful body.
        """
        payload = {"pdfData": base64.b64encode(pdf_bytes).decode("ascii")}
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.url, json=payload) as resp:
                    try:
                        body = await resp.json(content_type=None)
                    except ValueError:
                        body = {}
                    if resp.status >= 300:
                        detail = body.get("error") if isinstance(body, dict) else None
                        raise OCRServiceError(
                            f"OCR server error: {resp.status} - {detail or resp.reason}",
                            status=resp.status,
                        )
        except asyncio.TimeoutError as e:
            raise OCRServiceError(f"OCR service timed out after {self.timeout.total}s") from e
        except aiohttp.ClientError as e:
            raise OCRServiceError(f"OCR service unreachable: {e}") from e

        if not isinstance(body, dict) or not body.get("success") or not body.get("text"):
            detail = body.get("error") if isinstance(body, dict) else None
            raise OCRServiceError(f"OCR extraction failed: {detail or 'Unknown error'}")
        return body["text"]


async def extract_with_ocr_fallback(
    pdf_bytes: bytes,
    descriptors: Sequence[FieldDescriptor] = (),
    client: Optional[OCRServiceClient] = None,
) -> Dict[str, str]:
    """
    Service text -> parsed pairs -> (when descriptors are given) values under descriptor keys.

    Raises:
        OCRServiceError: passed through so the importer can log and degrade.
    """
    logger = get_logger("ocr_fallback")
    client = client or OCRServiceClient()
    logger.info(f"OCR text fallback: {len(pdf_bytes)} bytes -> {client.url}")

    text = await client.extract_text(pdf_bytes)
    if not text.strip():
        logger.info("OCR service returned empty text")
        return {}

    extracted = parse_ocr_text(text)
    logger.info(f"OCR text parsed: {len(extracted)} keys")
    if not descriptors:
        return extracted

    matched = match_to_descriptors(extracted, descriptors)
    missing = [d.key for d in descriptors if d.key not in matched]
    if missing:
        logger.debug(f"Unmatched after OCR fallback: {missing}")
    logger.info(f"OCR text matched {len(matched)}/{len(descriptors)} descriptors")
    return matched
