"""
Per-field confidence from four signals:

- anchor_match (0.3): does the key show up in the document's unfilled tokens?
- geometry_rule (0.25): is the value right of / below the key on the page?
- source (0.25): form > anchor > text > ocr
- text_quality (0.2): length, letters/digits, not too many odd characters

Independent of the mapper's inline score; the importer uses it to attach a
ConfidenceScore (with a readable explanation) to every returned field.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from rapidfuzz.distance import Levenshtein

from fieldimport.models.schemas import (
    ConfidenceFactors,
    ConfidenceScore,
    ExtractedValue,
    TextSpan,
    ValueSource,
)

SOURCE_SCORES = {
    ValueSource.FORM: 1.0,
    ValueSource.ANCHOR: 0.9,
    ValueSource.TEXT: 0.8,
    ValueSource.OCR: 0.6,
}

_filler_words = re.compile(r"\b(the|a|an|of|in|on|at|to|for|with|by)\b", re.IGNORECASE)
_odd_chars = re.compile(r"[^A-Za-z0-9\s.,-]")


@dataclass(frozen=True)
class ScorerWeights:
    anchor_match: float = 0.3
    geometry_rule: float = 0.25
    source: float = 0.25
    text_quality: float = 0.2


def key_variations(key: str) -> List[str]:
    variations = [
        key,
        re.sub(r"\s+", " ", key).strip(),
        key.lower(),
        key.upper(),
        re.sub(r"\s+", "_", key),
        re.sub(r"\s+", "-", key),
    ]
    without_filler = _filler_words.sub("", key).strip()
    if without_filler != key:
        variations.append(without_filler)
    out: List[str] = []
    for v in variations:
        if v not in out:
            out.append(v)
    return out


class ConfidenceScorer:
    def __init__(self, weights: Optional[ScorerWeights] = None):
        self.weights = weights or ScorerWeights()

    def calculate_confidence(
        self,
        key: str,
        value: str,
        source: Union[ValueSource, str],
        spans: Optional[Sequence[TextSpan]] = None,
        anchor_tokens: Optional[Sequence[str]] = None,
    ) -> ConfidenceScore:
        factors = ConfidenceFactors(
            anchor_match=self.anchor_match(key, anchor_tokens),
            geometry_rule=self.geometry_rule(key, value, spans),
            source=self.source_score(source),
            text_quality=self.text_quality(value),
        )
        w = self.weights
        score = (
            factors.anchor_match * w.anchor_match
            + factors.geometry_rule * w.geometry_rule
            + factors.source * w.source
            + factors.text_quality * w.text_quality
        )
        return ConfidenceScore(
            score=min(max(score, 0.0), 1.0),
            factors=factors,
            explanation=self.explain(factors),
        )

    def anchor_match(self, key: str, anchor_tokens: Optional[Sequence[str]]) -> float:
        if not anchor_tokens:
            return 0.5
        variations = [v.lower() for v in key_variations(key)]
        for token in anchor_tokens:
            t = token.lower()
            if any(v and v in t for v in variations):
                return 1.0
        for token in anchor_tokens:
            if Levenshtein.normalized_similarity(key.lower(), token.lower()) >= 0.8:
                return 0.8
        return 0.3

    def geometry_rule(self, key: str, value: str, spans: Optional[Sequence[TextSpan]]) -> float:
        if not spans:
            return 0.5
        k, v = key.lower(), value.lower()
        key_spans = [s for s in spans if k in s.text.lower()]
        value_spans = [s for s in spans if v in s.text.lower()]
        if not key_spans or not value_spans:
            return 0.3
        for ks in key_spans:
            for vs in value_spans:
                if abs(vs.y - ks.y) < 20 and vs.x > ks.x:
                    return 1.0
        for ks in key_spans:
            for vs in value_spans:
                if vs.y < ks.y and abs(vs.x - ks.x) < 50:
                    return 0.8
        return 0.5

    def source_score(self, source: Union[ValueSource, str]) -> float:
        try:
            return SOURCE_SCORES[ValueSource(source)]
        except ValueError:
            return 0.5

    def text_quality(self, value: str) -> float:
        if not value or not value.strip():
            return 0.0
        score = 0.5
        if 2 <= len(value) <= 100:
            score += 0.2
        if re.search(r"[A-Za-z]", value):
            score += 0.1
        if re.search(r"\d", value):
            score += 0.1
        if len(_odd_chars.findall(value)) / len(value) < 0.3:
            score += 0.1
        return min(score, 1.0)

    @staticmethod
    def explain(factors: ConfidenceFactors) -> str:
        parts = []

        if factors.anchor_match >= 0.8:
            parts.append("Strong anchor token match")
        elif factors.anchor_match >= 0.5:
            parts.append("Partial anchor token match")
        else:
            parts.append("No anchor token match")

        if factors.geometry_rule >= 0.8:
            parts.append("Good text positioning")
        elif factors.geometry_rule >= 0.5:
            parts.append("Reasonable text positioning")
        else:
            parts.append("Poor text positioning")

        if factors.source >= 0.8:
            parts.append("High-quality source")
        elif factors.source >= 0.6:
            parts.append("Medium-quality source")
        else:
            parts.append("Lower-quality source")

        if factors.text_quality >= 0.8:
            parts.append("High text quality")
        elif factors.text_quality >= 0.6:
            parts.append("Medium text quality")
        else:
            parts.append("Lower text quality")

        return ", ".join(parts)


def filter_by_confidence(values: Sequence[ExtractedValue], threshold: float = 0.7) -> List[ExtractedValue]:
    return [v for v in values if v.confidence.score >= threshold]


def sort_by_confidence(values: Sequence[ExtractedValue]) -> List[ExtractedValue]:
    return sorted(values, key=lambda v: v.confidence.score, reverse=True)
