"""
Tesseract wrapper (one long-lived engine, plain-data jobs in and out).

- OCRJob: raw pixel buffer + dimensions + mode + language + PSM. Built from a
  PIL image at the boundary; nothing richer than bytes and ints crosses it.
- OCRWord: one recognised word in pixel space (top-left origin).
- OCREngine: owns the Tesseract check. `ensure_ready()` is idempotent and is
  called lazily on first use; construct one per importer and reuse it.

Pixel -> page-space conversion is the caller's job (see ocr_extract.py).
"""

from dataclasses import dataclass
from typing import List, Optional

import pytesseract
from PIL import Image

from fieldimport.errors import OCREngineUnavailable
from fieldimport.util.logger import get_logger


@dataclass(frozen=True)
class OCRJob:
    width: int
    height: int
    mode: str
    pixels: bytes
    lang: str = "eng"
    psm: int = 3

    @classmethod
    def from_image(cls, image: Image.Image, lang: str = "eng", psm: int = 3) -> "OCRJob":
        if image.mode not in ("L", "RGB"):
            image = image.convert("RGB")
        return cls(
            width=image.width,
            height=image.height,
            mode=image.mode,
            pixels=image.tobytes(),
            lang=lang,
            psm=psm,
        )

    def to_image(self) -> Image.Image:
        return Image.frombytes(self.mode, (self.width, self.height), self.pixels)


@dataclass(frozen=True)
class OCRWord:
    text: str
    left: int
    top: int
    width: int
    height: int
    confidence: float


def _as_float(v) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return -1.0


def words_from_data(data: dict) -> List[OCRWord]:
    """pytesseract `image_to_data(..., output_type=Output.DICT)` -> OCRWords (empty/conf<=0 dropped)."""
    words: List[OCRWord] = []
    for i, raw in enumerate(data.get("text", [])):
        text = (raw or "").strip()
        conf = _as_float(data["conf"][i])
        if not text or conf <= 0:
            continue
        words.append(OCRWord(
            text=text,
            left=int(data["left"][i]),
            top=int(data["top"][i]),
            width=int(data["width"][i]),
            height=int(data["height"][i]),
            confidence=conf,
        ))
    return words


class OCREngine:
    """Single-language Tesseract engine; one recognition job at a time."""

    def __init__(self, lang: str = "eng", tesseract_cmd: Optional[str] = None):
        self.lang = lang
        self.tesseract_cmd = tesseract_cmd
        self._ready = False
        self.version: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self._ready

    def ensure_ready(self) -> None:
        if self._ready:
            return
        logger = get_logger("ocr_engine")
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        try:
            self.version = str(pytesseract.get_tesseract_version())
            languages = pytesseract.get_languages(config="")
        except Exception as e:
            raise OCREngineUnavailable(f"Tesseract not available: {e}") from e
        if self.lang not in languages:
            raise OCREngineUnavailable(
                f"Tesseract language '{self.lang}' not installed (have: {', '.join(sorted(languages))})"
            )
        self._ready = True
        logger.info(f"Tesseract {self.version} ready ({self.lang})")

    def recognize(self, job: OCRJob) -> List[OCRWord]:
        self.ensure_ready()
        data = pytesseract.image_to_data(
            job.to_image(),
            lang=job.lang or self.lang,
            config=f"--psm {job.psm}",
            output_type=pytesseract.Output.DICT,
        )
        return words_from_data(data)

    def image_to_text(self, job: OCRJob) -> str:
        self.ensure_ready()
        return pytesseract.image_to_string(
            job.to_image(),
            lang=job.lang or self.lang,
            config=f"--psm {job.psm}",
        )
