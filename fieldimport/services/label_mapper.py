"""
Label-anchor mapping: find each field's label on the page, then read the
value next to it.

Flow per field (run separately over text-layer spans and OCR spans):
1) Label: best span against the field's labels (exact 1.0, containment 0.8,
   Jaro-Winkler >= 0.82). Adjacent label fragments are merged first. Nothing
   >= 0.5? Try unfilled tokens ("{{Company Name}}") as the label instead.
2) Value, first rule that gives a valid value wins:
   same-line-right -> below-box -> flexible -> text after the label's colon.
3) Validation: no tokens, no labels, type-aware checks from the key name.
4) Confidence: match base + rule bonus - distance penalty, clamped to [0, 1].

Text and OCR results are compared per field; higher confidence wins, text on ties.

Pure functions over TextSpans. Same input, same output.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from rapidfuzz.distance import JaroWinkler

from extraction.patterns import (
    DATE_KEY_HINTS,
    DATE_NUMERIC_REGEX,
    DATE_WORDY_REGEX,
    DEFAULT_FIELD_SYNONYMS,
    EMAIL_KEY_HINTS,
    EMAIL_VALUE_REGEX,
    GENERIC_LABEL_WORDS,
    MONEY_KEY_HINTS,
    MONEY_VALUE_REGEX,
    PHONE_KEY_HINTS,
    PHONE_VALUE_REGEX,
    PUNCT_ONLY_REGEX,
    TOKEN_REGEX,
)
from fieldimport.config import settings
from fieldimport.models.schemas import FieldDescriptor, MappingResult, TextSpan
from fieldimport.services.validate import scrub_mapping
from fieldimport.util.layout import concatenate_spans, is_adjacent, merge_spans
from fieldimport.util.logger import get_logger

# ---------- regexes / thresholds ----------
token_pat = re.compile(TOKEN_REGEX, re.DOTALL)
token_inner_pat = re.compile(r"^\{\{(.*)\}\}$", re.DOTALL)
punct_only_pat = re.compile(PUNCT_ONLY_REGEX)
symbols_only_pat = re.compile(r"^[^\w\s]+$")
money_pat = re.compile(MONEY_VALUE_REGEX)
date_numeric_pat = re.compile(DATE_NUMERIC_REGEX)
date_wordy_pat = re.compile(DATE_WORDY_REGEX)
email_pat = re.compile(EMAIL_VALUE_REGEX)
phone_pat = re.compile(PHONE_VALUE_REGEX)

FUZZY_ACCEPT = 0.82
LABEL_ACCEPT = 0.5
LABEL_LIKE_SIMILARITY = 0.7

RULE_BONUS = {"same-line": 0.6, "below": 0.5, "colon": 0.4}
OTHER_RULE_BONUS = 0.3
MAX_DISTANCE_PENALTY = 0.2


@dataclass(frozen=True)
class ValueHit:
    value: str
    rule: str
    distance: float


@dataclass(frozen=True)
class FieldHit:
    value: str
    confidence: float
    rule: str
    source: str
    label: str
    match_score: float
    token_label: bool = False


NO_VALUE = ValueHit(value="", rule="none", distance=float("inf"))


# ---------- text helpers ----------
def normalize_text(text: str) -> str:
    s = re.sub(r"\s+", " ", text.lower())
    s = re.sub(r"[^\w\s]", "", s)
    return s.strip()


def is_token(span: TextSpan) -> bool:
    return bool(token_pat.match(span.text.strip()))


def default_descriptors() -> List[FieldDescriptor]:
    return [FieldDescriptor(key=k, synonyms=list(v)) for k, v in DEFAULT_FIELD_SYNONYMS.items()]


def label_keys(descriptors: Sequence[FieldDescriptor]) -> List[str]:
    """Normalised keys + original keys; what counts as 'a label' when descriptors are known."""
    out: List[str] = []
    for d in descriptors:
        for k in (d.key, d.original_key):
            nk = normalize_text(k or "")
            if nk and nk not in out:
                out.append(nk)
    return out


def looks_like_label(text: str, keys: Sequence[str] = ()) -> bool:
    """
    Does this read like a field label rather than a value?

    With known keys: containment either way or Jaro-Winkler > 0.7.
    Without: any generic label word inside.
    """
    normalized = normalize_text(text)
    if not normalized:
        return False
    if keys:
        return any(
            k in normalized or normalized in k or JaroWinkler.similarity(normalized, k) > LABEL_LIKE_SIMILARITY
            for k in keys
        )
    return any(word in normalized for word in GENERIC_LABEL_WORDS)


def _key_has(key_lower: str, hints: Sequence[str]) -> bool:
    return any(h in key_lower for h in hints)


def is_valid_field_value(text: str, field_key: str, keys: Sequence[str] = ()) -> bool:
    trimmed = (text or "").strip()
    if not trimmed:
        return False
    if punct_only_pat.match(trimmed):
        return False
    if token_pat.match(trimmed):
        return False
    if looks_like_label(trimmed, keys):
        return False

    key_lower = field_key.lower()
    if _key_has(key_lower, MONEY_KEY_HINTS):
        return bool(money_pat.match(trimmed))
    if _key_has(key_lower, DATE_KEY_HINTS):
        return bool(date_numeric_pat.match(trimmed) or date_wordy_pat.match(trimmed))
    if _key_has(key_lower, EMAIL_KEY_HINTS):
        return bool(email_pat.match(trimmed))
    if _key_has(key_lower, PHONE_KEY_HINTS):
        return bool(phone_pat.match(trimmed))

    return not symbols_only_pat.match(trimmed)


def merge_label_spans(spans: List[TextSpan], keys: Sequence[str] = ()) -> List[TextSpan]:
    """Collapse runs of adjacent label-looking fragments ("Investor" + "Name:") into one span."""
    merged: List[TextSpan] = []
    used = set()
    for i, span in enumerate(spans):
        if i in used:
            continue
        if not looks_like_label(span.text, keys):
            merged.append(span)
            continue
        group = [span]
        used.add(i)
        for j in range(i + 1, len(spans)):
            if j in used:
                continue
            nxt = spans[j]
            if not looks_like_label(nxt.text, keys):
                continue
            if is_adjacent(span, nxt):
                group.append(nxt)
                used.add(j)
        merged.append(merge_spans(group))
    return merged


# ---------- scoring ----------
def match_score(text: str, label: str) -> float:
    a = normalize_text(text)
    b = normalize_text(label)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.8
    sim = JaroWinkler.similarity(a, b)
    return sim if sim >= FUZZY_ACCEPT else 0.0


def token_match_score(text: str, label: str) -> float:
    m = token_inner_pat.match(text.strip())
    if not m:
        return 0.0
    return match_score(m.group(1).strip(), label)


def field_confidence(score: float, rule: str, distance: float) -> float:
    if score >= 0.8:
        conf = 0.6
    elif score >= 0.5:
        conf = 0.4
    else:
        conf = 0.3
    conf += RULE_BONUS.get(rule, OTHER_RULE_BONUS)
    conf -= min(max(distance / 100.0, 0.0), MAX_DISTANCE_PENALTY)
    return max(0.0, min(1.0, conf))


# ---------- value search ----------
def _excluded(span: TextSpan, label: TextSpan) -> bool:
    return span is label or span == label or ":" in span.text or "{{" in span.text


def find_value_near_label(
    value_spans: Sequence[TextSpan],
    label: TextSpan,
    field_key: str,
    keys: Sequence[str] = (),
) -> ValueHit:
    """Same-line-right, below-box, flexible, then colon-inline; first valid value wins."""
    same_line = sorted(
        (
            s for s in value_spans
            if s.page == label.page
            and abs(s.center_y - label.center_y) < label.h * 0.65
            and label.x - 10 <= s.x <= label.right + 50
            and not _excluded(s, label)
            and not looks_like_label(s.text, keys)
        ),
        key=lambda s: s.x,
    )
    if same_line:
        value = concatenate_spans(same_line, 10)
        if is_valid_field_value(value, field_key, keys):
            return ValueHit(value=value, rule="same-line", distance=same_line[0].x - label.right)

    below = sorted(
        (
            s for s in value_spans
            if s.page == label.page
            and label.x - 6 <= s.x <= label.right + 252
            and label.y - 65 <= s.y <= label.y - 2
            and not _excluded(s, label)
        ),
        key=lambda s: -s.y,
    )
    if below:
        value = concatenate_spans(below, 10)
        if is_valid_field_value(value, field_key, keys):
            return ValueHit(value=value, rule="below", distance=label.y - below[0].y)

    flexible = sorted(
        (
            s for s in value_spans
            if s.page == label.page
            and label.x - 50 <= s.x <= label.right + 400
            and label.y - 120 <= s.y <= label.y + 20
            and not _excluded(s, label)
            and s.text.strip()
        ),
        key=lambda s: abs(s.y - label.y),
    )
    if flexible:
        value = concatenate_spans(flexible[:3], 15)
        if is_valid_field_value(value, field_key, keys):
            return ValueHit(value=value, rule="flexible", distance=abs(flexible[0].y - label.y))

    if ":" in label.text:
        after = label.text.split(":", 1)[1].strip()
        if after and is_valid_field_value(after, field_key, keys):
            return ValueHit(value=after, rule="colon", distance=0.0)

    return NO_VALUE


def _best_label(
    value_spans: Sequence[TextSpan],
    token_spans: Sequence[TextSpan],
    labels: Sequence[str],
) -> Tuple[Optional[TextSpan], float, bool]:
    best: Optional[TextSpan] = None
    best_score = 0.0
    from_token = False
    for span in value_spans:
        for label in labels:
            score = match_score(span.text, label)
            if score > best_score:
                best, best_score = span, score

    if best_score < LABEL_ACCEPT:
        for span in token_spans:
            for label in labels:
                score = token_match_score(span.text, label)
                if score > best_score:
                    best, best_score, from_token = span, score, True

    if best is None or best_score < LABEL_ACCEPT:
        return None, best_score, False
    return best, best_score, from_token


def find_field_in_source(
    value_spans: Sequence[TextSpan],
    token_spans: Sequence[TextSpan],
    descriptor: FieldDescriptor,
    source: str,
    keys: Sequence[str] = (),
) -> Optional[FieldHit]:
    label, score, from_token = _best_label(value_spans, token_spans, descriptor.labels())
    if label is None:
        return None
    hit = find_value_near_label(value_spans, label, descriptor.key, keys)
    if not hit.value:
        return None
    return FieldHit(
        value=hit.value,
        confidence=field_confidence(score, hit.rule, hit.distance),
        rule=hit.rule,
        source=source,
        label=label.text,
        match_score=score,
        token_label=from_token,
    )


def pick_best(text_hit: Optional[FieldHit], ocr_hit: Optional[FieldHit]) -> Optional[FieldHit]:
    if text_hit and ocr_hit:
        return text_hit if text_hit.confidence >= ocr_hit.confidence else ocr_hit
    return text_hit or ocr_hit


def _split(spans: Sequence[TextSpan]) -> Tuple[List[TextSpan], List[TextSpan]]:
    values, tokens = [], []
    for s in spans:
        (tokens if is_token(s) else values).append(s)
    return values, tokens


# ---------- public ----------
def map_by_anchors(
    text_spans: Sequence[TextSpan],
    ocr_spans: Sequence[TextSpan] = (),
    descriptors: Sequence[FieldDescriptor] = (),
    confident_threshold: Optional[float] = None,
) -> MappingResult:
    """
    Map spans to fields by label proximity.

    Args:
        text_spans: text-layer spans (may be empty for scans)
        ocr_spans: OCR spans (may be empty)
        descriptors: target fields; empty -> built-in synonym table

    Returns:
        MappingResult with source "ocr" when only OCR spans were given, else "text".
    """
    logger = get_logger("label_mapper")
    threshold = settings.CONFIDENT_THRESHOLD if confident_threshold is None else confident_threshold

    fields = list(descriptors) or default_descriptors()
    keys = label_keys(descriptors)

    text_values, text_tokens = _split(text_spans)
    ocr_values, ocr_tokens = _split(ocr_spans)
    logger.info(
        f"Anchor mapping: text {len(text_values)} values/{len(text_tokens)} tokens, "
        f"ocr {len(ocr_values)} values/{len(ocr_tokens)} tokens, {len(fields)} fields"
    )

    merged_text = merge_label_spans(text_values, keys)
    merged_ocr = merge_label_spans(ocr_values, keys)

    data: Dict[str, str] = {}
    conf: Dict[str, float] = {}
    provenance: Dict[str, dict] = {}
    for d in fields:
        text_hit = find_field_in_source(merged_text, text_tokens, d, "text", keys)
        ocr_hit = find_field_in_source(merged_ocr, ocr_tokens, d, "ocr", keys)
        hit = pick_best(text_hit, ocr_hit)
        if hit is None or not is_valid_field_value(hit.value, d.key, keys):
            logger.debug(f"No value for {d.key}")
            continue
        data[d.key] = hit.value
        conf[d.key] = hit.confidence
        provenance[d.key] = {
            "rule": hit.rule,
            "source": hit.source,
            "label": hit.label,
            "match_score": round(hit.match_score, 3),
            "token_label": hit.token_label,
        }
        logger.debug(
            f"Field={d.key} value={hit.value!r} source={hit.source} rule={hit.rule} "
            f"token_label={hit.token_label} conf={hit.confidence:.2f}"
        )

    source = "ocr" if (ocr_spans and not text_spans) else "text"
    result = scrub_mapping(
        MappingResult(data=data, per_field_confidence=conf, source=source, provenance=provenance),
        threshold,
    )
    logger.info(f"Anchor mapping done: {len(result.data)} fields, {result.confident_count} confident")
    return result
