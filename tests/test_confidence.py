"""
Tests for the four-factor confidence scorer.
"""

import pytest

from fieldimport.models.schemas import ExtractedValue, TextSpan, ValueSource
from fieldimport.services.confidence import (
    ConfidenceScorer,
    ScorerWeights,
    filter_by_confidence,
    key_variations,
    sort_by_confidence,
)


def span(text, x, y):
    return TextSpan(text=text, x=x, y=y, w=80, h=12)


def extracted(key, score):
    scorer = ConfidenceScorer()
    conf = scorer.calculate_confidence(key, "value", ValueSource.TEXT)
    return ExtractedValue(key=key, value="value", confidence=conf.model_copy(update={"score": score}), source=ValueSource.TEXT)


class TestFactors:
    """Test each factor in isolation."""

    def setup_method(self):
        self.scorer = ConfidenceScorer()

    def test_source_ranking(self):
        """form > anchor > text > ocr; unknown sources get 0.5."""
        scores = [self.scorer.source_score(s) for s in (ValueSource.FORM, ValueSource.ANCHOR, ValueSource.TEXT, ValueSource.OCR)]
        assert scores == sorted(scores, reverse=True)
        assert self.scorer.source_score("form") == 1.0
        assert self.scorer.source_score("carrier pigeon") == 0.5

    def test_anchor_match(self):
        """Exact variant in a token is strong; nothing to compare is neutral; no match is weak."""
        assert self.scorer.anchor_match("Investor Name", ["{{Investor Name}}"]) == 1.0
        assert self.scorer.anchor_match("Investor Name", None) == 0.5
        assert self.scorer.anchor_match("Investor Name", ["Closing Date"]) == 0.3

    def test_geometry_rule(self):
        """Value right of the key scores highest, below scores next."""
        right = [span("Investor Name:", 72, 700), span("Jane Doe", 200, 700)]
        below = [span("Investor Name:", 72, 700), span("Jane Doe", 80, 680)]
        assert self.scorer.geometry_rule("Investor Name", "Jane Doe", right) == 1.0
        assert self.scorer.geometry_rule("Investor Name", "Jane Doe", below) == 0.8
        assert self.scorer.geometry_rule("Investor Name", "Jane Doe", None) == 0.5
        assert self.scorer.geometry_rule("Investor Name", "Jane Doe", [span("Other", 0, 0)]) == 0.3

    def test_text_quality(self):
        """Empty text is 0; mixed letters and digits score higher than symbols."""
        assert self.scorer.text_quality("") == 0.0
        assert self.scorer.text_quality("Unit 4, 12 Main St") == pytest.approx(1.0)
        assert self.scorer.text_quality("Jane Doe") < self.scorer.text_quality("Unit 4, 12 Main St")
        assert self.scorer.text_quality("@@##") < self.scorer.text_quality("Jane Doe")


class TestCalculateConfidence:
    """Test the weighted combination."""

    def test_bounded(self):
        """Score stays within [0, 1] for strong and weak inputs."""
        scorer = ConfidenceScorer()
        strong = scorer.calculate_confidence(
            "Investor Name", "Jane Doe", ValueSource.FORM,
            spans=[span("Investor Name:", 72, 700), span("Jane Doe", 200, 700)],
            anchor_tokens=["Investor Name"],
        )
        weak = scorer.calculate_confidence("Investor Name", "", ValueSource.OCR, anchor_tokens=["Nothing"])
        assert 0.0 <= weak.score < strong.score <= 1.0

    def test_weighted_sum(self):
        """Score is the weighted sum of the factors."""
        scorer = ConfidenceScorer(ScorerWeights(anchor_match=1.0, geometry_rule=0.0, source=0.0, text_quality=0.0))
        result = scorer.calculate_confidence("Investor Name", "Jane Doe", ValueSource.TEXT, anchor_tokens=["Investor Name"])
        assert result.score == pytest.approx(1.0)

    def test_explanation(self):
        """Every factor contributes a phrase."""
        result = ConfidenceScorer().calculate_confidence("Investor Name", "Jane Doe", ValueSource.FORM)
        assert "High-quality source" in result.explanation
        assert result.explanation.count(",") == 3


class TestHelpers:
    """Test key variations and list helpers."""

    def test_key_variations(self):
        """Case, separator and filler-word variants are generated without repeats."""
        variations = key_variations("Date of Safe")
        assert "date of safe" in variations
        assert "Date_of_Safe" in variations
        assert "Date  Safe" in variations
        assert len(variations) == len(set(variations))

    def test_filter_and_sort(self):
        """Filtering keeps scores at or above threshold; sorting is descending."""
        values = [extracted("a", 0.4), extracted("b", 0.9), extracted("c", 0.7)]
        assert [v.key for v in filter_by_confidence(values)] == ["b", "c"]
        assert [v.key for v in sort_by_confidence(values)] == ["b", "c", "a"]
