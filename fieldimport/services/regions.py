"""
Region templates: read values out of fixed page rectangles for layouts we
already know.

- A template applies only when every fingerprint string appears in page-1 text.
- Per field rectangle: intersecting spans, rows top-to-bottom (5pt row
  tolerance), left-to-right within a row, joined with a 10pt gap tolerance.
- Unfilled {{...}} token spans are never read as values.
- Confidence = 0.6 * area coverage + 0.4 * text quality.

Only used to top up a thin anchor result; anchor values always win.
"""

from functools import cmp_to_key
from typing import Dict, List, Optional, Sequence, Tuple

from extraction.region_templates import REGION_TEMPLATES
from fieldimport.config import settings
from fieldimport.models.schemas import MappingResult, RegionRect, RegionTemplate, TextSpan
from fieldimport.services.validate import is_token_text, scrub_mapping
from fieldimport.util.layout import concatenate_spans, intersection_area, intersects
from fieldimport.util.logger import get_logger

ROW_TOLERANCE = 5.0

_templates: Dict[str, RegionTemplate] = {
    name: RegionTemplate(name=name, **spec) for name, spec in REGION_TEMPLATES.items()
}


def register_region_template(template: RegionTemplate) -> None:
    _templates[template.name] = template


def get_region_template(name: str) -> Optional[RegionTemplate]:
    return _templates.get(name)


def region_template_names() -> List[str]:
    return list(_templates)


def matches_fingerprint(spans: Sequence[TextSpan], template: RegionTemplate) -> bool:
    page1 = " ".join(s.text for s in spans if s.page == 0).lower()
    return all(req.lower() in page1 for req in template.fingerprint)


def find_matching_template(spans: Sequence[TextSpan]) -> Optional[RegionTemplate]:
    for template in _templates.values():
        if matches_fingerprint(spans, template):
            return template
    return None


def _reading_order(a: TextSpan, b: TextSpan) -> int:
    if abs(a.y - b.y) > ROW_TOLERANCE:
        return -1 if a.y > b.y else 1
    return (a.x > b.x) - (a.x < b.x)


def region_coverage(spans: Sequence[TextSpan], rect: RegionRect) -> float:
    if not spans or rect.area <= 0:
        return 0.0
    covered = sum(intersection_area(s, rect) for s in spans)
    return min(covered / rect.area, 1.0)


def text_quality(spans: Sequence[TextSpan]) -> float:
    """Average OCR confidence on 0..1 (text layer counts as 100), halved when every span is a single char."""
    if not spans:
        return 0.0
    avg = sum(100.0 if s.confidence is None else s.confidence for s in spans) / len(spans)
    quality = avg / 100.0
    if not any(len(s.text) >= 2 for s in spans):
        quality *= 0.5
    return min(quality, 1.0)


def read_region(spans: Sequence[TextSpan], rect: RegionRect) -> Optional[Tuple[str, float]]:
    hits = sorted((s for s in spans if intersects(s, rect)), key=cmp_to_key(_reading_order))
    if not hits:
        return None
    value = concatenate_spans(hits, 10)
    confidence = region_coverage(hits, rect) * 0.6 + text_quality(hits) * 0.4
    return value, confidence


def map_by_regions(
    spans: Sequence[TextSpan],
    template_name: str = "SAFE",
    confident_threshold: Optional[float] = None,
) -> MappingResult:
    logger = get_logger("regions")
    threshold = settings.CONFIDENT_THRESHOLD if confident_threshold is None else confident_threshold
    empty = MappingResult(source="zonal")

    template = get_region_template(template_name)
    if template is None:
        logger.warning(f"Unknown region template {template_name}")
        return empty
    if not spans:
        return empty
    if not matches_fingerprint(spans, template):
        logger.info(f"Document does not match {template_name} fingerprint")
        return empty

    data: Dict[str, str] = {}
    conf: Dict[str, float] = {}
    for page in template.pages:
        page_spans = [s for s in spans if s.page == page.number - 1 and not is_token_text(s.text)]
        for field, rect in page.fields.items():
            found = read_region(page_spans, rect)
            if not found or not found[0]:
                continue
            data[field], conf[field] = found
            logger.debug(f"[Region] {field} = {data[field]!r} ({conf[field]:.2f})")

    result = scrub_mapping(
        MappingResult(
            data=data,
            per_field_confidence=conf,
            source="zonal",
            provenance={k: {"rule": "region", "template": template_name} for k in data},
        ),
        threshold,
    )
    logger.info(f"Region mapping ({template_name}): {len(result.data)} fields, {result.confident_count} confident")
    return result


def merge_results_prefer(
    anchor: MappingResult,
    region: MappingResult,
    confident_threshold: Optional[float] = None,
) -> MappingResult:
    """Field-by-field merge; anchor values override region values."""
    threshold = settings.CONFIDENT_THRESHOLD if confident_threshold is None else confident_threshold
    data = dict(region.data)
    conf = dict(region.per_field_confidence)
    provenance = dict(region.provenance)
    for key, value in anchor.data.items():
        if not value:
            continue
        data[key] = value
        conf[key] = anchor.per_field_confidence.get(key, 0.0)
        if key in anchor.provenance:
            provenance[key] = anchor.provenance[key]
        else:
            provenance.pop(key, None)
    return MappingResult(
        data=data,
        per_field_confidence=conf,
        confident_count=sum(1 for k in data if conf.get(k, 0.0) >= threshold),
        source=anchor.source,
        provenance=provenance,
    )
