"""
PDF -> {field key: value} orchestrator.

Routing (by strategy, not by field):
- Interactive form with values -> read the form fields.
- Everything else -> extract_flattened(): text layer + anchor mapping, OCR
  spans when the text yield is thin, region templates when few fields are
  confident.
- Still fewer than MIN_FIELDS_BEFORE_ESCALATION fields -> OCR text service,
  adopted only when it finds more.
- Anything blows up -> OCR text service as the last resort, else empty.

`import_pdf()` never raises. Every result is token-scrubbed and carries a
ConfidenceScore per field.
"""

import asyncio
import io
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from pypdf import PdfReader

from fieldimport.config import ImportSettings, settings as default_settings
from fieldimport.errors import OCREngineUnavailable
from fieldimport.models.schemas import (
    ConfidenceScore,
    FieldDescriptor,
    ImportResult,
    MappingResult,
    PDFDiagnostics,
    TextSpan,
    ValueSource,
)
from fieldimport.services.confidence import ConfidenceScorer
from fieldimport.services.diagnostics import diagnose_pdf
from fieldimport.services.form_fields import form_fields_to_data, read_form_fields
from fieldimport.services.label_mapper import is_token, map_by_anchors, token_inner_pat
from fieldimport.services.ocr_engine import OCREngine
from fieldimport.services.ocr_extract import extract_ocr_spans
from fieldimport.services.ocr_fallback import OCRServiceClient, extract_with_ocr_fallback
from fieldimport.services.parse_pdf import extract_text_spans
from fieldimport.services.regions import find_matching_template, map_by_regions, merge_results_prefer
from fieldimport.services.validate import scrub_values
from fieldimport.util.logger import get_logger


@dataclass
class FlattenedResult:
    """What extract_flattened() hands back: the mapping plus what it was built from."""

    mapping: MappingResult
    strategy: str
    text_spans: List[TextSpan] = field(default_factory=list)
    ocr_spans: List[TextSpan] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def read_form_data(pdf_bytes: bytes, descriptors: Sequence[FieldDescriptor] = ()) -> Dict[str, str]:
    reader = PdfReader(io.BytesIO(pdf_bytes))
    return form_fields_to_data(read_form_fields(reader), descriptors)


def anchor_token_names(spans: Sequence[TextSpan]) -> List[str]:
    """'{{Company Name}}' spans -> ['Company Name']."""
    out: List[str] = []
    for s in spans:
        if not is_token(s):
            continue
        m = token_inner_pat.match(s.text.strip())
        if m and m.group(1).strip():
            out.append(m.group(1).strip())
    return out


class PDFImporter:
    """
    One importer per process is enough; it owns the OCR engine and reuses it.

    Args:
        settings: thresholds and OCR options (module settings by default)
        engine: OCREngine to use for scanned pages (created lazily-ready if omitted)
        ocr_client: client for the OCR text service fallback
        scorer: ConfidenceScorer for the per-field scores
    """

    def __init__(
        self,
        settings: Optional[ImportSettings] = None,
        engine: Optional[OCREngine] = None,
        ocr_client: Optional[OCRServiceClient] = None,
        scorer: Optional[ConfidenceScorer] = None,
    ):
        self.settings = settings or default_settings
        self.engine = engine or OCREngine(lang=self.settings.OCR_LANGUAGE)
        self.ocr_client = ocr_client or OCRServiceClient(settings=self.settings)
        self.scorer = scorer or ConfidenceScorer()
        self.logger = get_logger("importer")

    # ---------- public ----------
    async def import_pdf(
        self,
        pdf_bytes: bytes,
        descriptors: Sequence[FieldDescriptor] = (),
    ) -> ImportResult:
        original = bytes(pdf_bytes)
        descriptors = list(descriptors)
        diagnostics = PDFDiagnostics()
        self.logger.info(f"Import started: {len(original)} bytes, {len(descriptors)} descriptors")

        try:
            diagnostics = await asyncio.to_thread(diagnose_pdf, bytes(original))
            if diagnostics.has_acro_form and not diagnostics.is_flattened:
                result = await self._from_form(bytes(original), descriptors, diagnostics)
            else:
                flat = await self.extract_flattened(
                    bytes(original), descriptors, diagnostics, allow_ocr=self.settings.ALLOW_OCR
                )
                result = self._from_flattened(flat, descriptors, diagnostics)
            result = await self._escalate_if_thin(result, original, descriptors)
        except Exception as e:
            self.logger.exception(f"Import failed, trying OCR text fallback: {e}")
            data = await self._ocr_text(original, descriptors)
            result = self._finish(
                data, diagnostics, "ocr_text" if data else "none", ValueSource.OCR,
                warnings=[f"Import error: {e}"],
            )

        self.logger.info(
            f"Import done: strategy={result.strategy} fields={len(result.data)} warnings={len(result.warnings)}"
        )
        return result

    async def extract_flattened(
        self,
        pdf_bytes: bytes,
        descriptors: Sequence[FieldDescriptor],
        diagnostics: PDFDiagnostics,
        allow_ocr: bool = True,
    ) -> FlattenedResult:
        """
        Span-based extraction for anything that is not a filled-in form.

        Text layer first; OCR only when the text yield is below
        MIN_FIELDS_BEFORE_ESCALATION (or there is no text layer) and allowed;
        region templates only below MIN_CONFIDENT_FOR_REGIONS confident fields.
        """
        s = self.settings
        warnings: List[str] = []

        try:
            text_spans = await asyncio.to_thread(extract_text_spans, pdf_bytes)
        except Exception as e:
            self.logger.warning(f"Text layer unreadable: {e}")
            warnings.append(f"Text layer unreadable: {e}")
            text_spans = []

        mapping = map_by_anchors(text_spans, (), descriptors, s.CONFIDENT_THRESHOLD)
        strategy = "text"
        out = FlattenedResult(mapping=mapping, strategy=strategy, text_spans=text_spans, warnings=warnings)
        if mapping.confident_count >= s.MIN_CONFIDENT_FOR_REGIONS:
            return out

        thin = len(mapping.data) < s.MIN_FIELDS_BEFORE_ESCALATION or diagnostics.is_textless
        if thin and allow_ocr:
            ocr_spans = await self._ocr_spans(pdf_bytes, warnings)
            if ocr_spans:
                out.ocr_spans = ocr_spans
                out.mapping = map_by_anchors(text_spans, ocr_spans, descriptors, s.CONFIDENT_THRESHOLD)
                out.strategy = "ocr" if not text_spans else "text+ocr"
                self.logger.info(
                    f"Anchor mapping with OCR: {len(out.mapping.data)} fields "
                    f"({out.mapping.confident_count} confident)"
                )
        elif thin:
            self.logger.info("Text yield is thin and OCR is not allowed")
            warnings.append("OCR disabled; text layer yield is low")

        if out.mapping.confident_count >= s.MIN_CONFIDENT_FOR_REGIONS:
            return out

        all_spans = text_spans + out.ocr_spans
        template = find_matching_template(all_spans)
        if template is not None:
            region = map_by_regions(all_spans, template.name, s.CONFIDENT_THRESHOLD)
            if region.data:
                before = len(out.mapping.data)
                out.mapping = merge_results_prefer(out.mapping, region, s.CONFIDENT_THRESHOLD)
                if len(out.mapping.data) > before:
                    out.strategy = f"{out.strategy}+zonal"
                self.logger.info(f"Region template {template.name}: {len(out.mapping.data)} fields after merge")

        return out

    # ---------- strategies ----------
    async def _from_form(
        self,
        pdf_bytes: bytes,
        descriptors: Sequence[FieldDescriptor],
        diagnostics: PDFDiagnostics,
    ) -> ImportResult:
        data = await asyncio.to_thread(read_form_data, pdf_bytes, descriptors)
        self.logger.info(f"Form fields: {len(data)} values")
        return self._finish(data, diagnostics, "acroform", ValueSource.FORM)

    def _from_flattened(
        self,
        flat: FlattenedResult,
        descriptors: Sequence[FieldDescriptor],
        diagnostics: PDFDiagnostics,
    ) -> ImportResult:
        mapping = flat.mapping
        spans = flat.text_spans + flat.ocr_spans
        tokens = anchor_token_names(spans)
        data = scrub_values(mapping.data)

        scores: Dict[str, ConfidenceScore] = {}
        for key, value in data.items():
            source = self._source_for(mapping.provenance.get(key, {}), bool(flat.ocr_spans))
            scores[key] = self.scorer.calculate_confidence(key, value, source, spans, tokens)

        return ImportResult(
            data=data,
            diagnostics=diagnostics,
            strategy=flat.strategy if data else "none",
            per_field_confidence={k: mapping.per_field_confidence.get(k, 0.0) for k in data},
            scores=scores,
            warnings=list(flat.warnings),
        )

    async def _escalate_if_thin(
        self,
        result: ImportResult,
        pdf_bytes: bytes,
        descriptors: Sequence[FieldDescriptor],
    ) -> ImportResult:
        if len(result.data) >= self.settings.MIN_FIELDS_BEFORE_ESCALATION:
            return result
        self.logger.info(f"Only {len(result.data)} fields from {result.strategy}, trying OCR text fallback")
        data = await self._ocr_text(pdf_bytes, descriptors)
        if len(data) <= len(result.data):
            return result
        return self._finish(
            data, result.diagnostics, "ocr_text", ValueSource.OCR, warnings=result.warnings
        )

    # ---------- helpers ----------
    async def _ocr_spans(self, pdf_bytes: bytes, warnings: List[str]) -> List[TextSpan]:
        try:
            return await extract_ocr_spans(pdf_bytes, self.engine, self.settings)
        except OCREngineUnavailable as e:
            self.logger.warning(f"OCR engine unavailable, continuing text-only: {e}")
            warnings.append(str(e))
        except Exception as e:
            self.logger.error(f"OCR extraction failed, continuing text-only: {e}")
            warnings.append(f"OCR failed: {e}")
        return []

    async def _ocr_text(self, pdf_bytes: bytes, descriptors: Sequence[FieldDescriptor]) -> Dict[str, str]:
        try:
            return await extract_with_ocr_fallback(bytes(pdf_bytes), descriptors, self.ocr_client)
        except Exception as e:
            self.logger.error(f"OCR text fallback failed: {e}")
            return {}

    @staticmethod
    def _source_for(provenance: dict, used_ocr: bool) -> ValueSource:
        if provenance.get("token_label"):
            return ValueSource.ANCHOR
        src = provenance.get("source")
        if src == "ocr":
            return ValueSource.OCR
        if src == "text":
            return ValueSource.TEXT
        return ValueSource.OCR if used_ocr else ValueSource.TEXT

    def _finish(
        self,
        data: Dict[str, str],
        diagnostics: PDFDiagnostics,
        strategy: str,
        source: ValueSource,
        warnings: Optional[List[str]] = None,
    ) -> ImportResult:
        clean = scrub_values(data)
        scores = {k: self.scorer.calculate_confidence(k, v, source) for k, v in clean.items()}
        return ImportResult(
            data=clean,
            diagnostics=diagnostics,
            strategy=strategy if clean else "none",
            per_field_confidence={k: sc.score for k, sc in scores.items()},
            scores=scores,
            warnings=list(warnings or []),
        )


async def import_pdf(
    pdf_bytes: bytes,
    descriptors: Sequence[FieldDescriptor] = (),
    settings: Optional[ImportSettings] = None,
) -> ImportResult:
    """Convenience wrapper: one-off importer with default collaborators."""
    return await PDFImporter(settings=settings).import_pdf(pdf_bytes, descriptors)
