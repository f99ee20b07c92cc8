"""
Layout helpers (pure geometry on TextSpans).

- horizontal_gap / vertical_overlap: adjacency tests for label merging.
- intersects / intersection_area: region rectangle checks.
- concatenate_spans: join an ordered run of spans, stopping at the first big gap.
- merge_spans: collapse several spans into one bounding span.

Keeps coordinate math out of the matching code.
"""

from typing import List, Sequence

from fieldimport.models.schemas import RegionRect, TextSpan


def horizontal_gap(a: TextSpan, b: TextSpan) -> float:
    """Distance from the right edge of `a` to the left edge of `b` (negative if they overlap)."""
    return b.x - a.right


def vertical_overlap(a: TextSpan, b: TextSpan) -> float:
    return min(a.top, b.top) - max(a.y, b.y)


def is_adjacent(a: TextSpan, b: TextSpan, max_gap: float = 10.0, min_overlap_ratio: float = 0.7) -> bool:
    """Same line and close: small x-gap and strong y-overlap relative to the shorter span."""
    if a.page != b.page:
        return False
    min_h = min(a.h, b.h)
    return horizontal_gap(a, b) <= max_gap and vertical_overlap(a, b) >= min_h * min_overlap_ratio


def intersects(span: TextSpan, rect: RegionRect) -> bool:
    return (
        span.x < rect.x + rect.w
        and span.right > rect.x
        and span.y < rect.y + rect.h
        and span.top > rect.y
    )


def intersection_area(span: TextSpan, rect: RegionRect) -> float:
    x1 = max(span.x, rect.x)
    y1 = max(span.y, rect.y)
    x2 = min(span.right, rect.x + rect.w)
    y2 = min(span.top, rect.y + rect.h)
    if x2 <= x1 or y2 <= y1:
        return 0.0
    return (x2 - x1) * (y2 - y1)


def concatenate_spans(spans: Sequence[TextSpan], gap_tolerance: float) -> str:
    """Join spans in the given order; stop at the first horizontal gap above tolerance."""
    if not spans:
        return ""
    parts = [spans[0].text]
    last_x = spans[0].right
    for s in spans[1:]:
        if s.x - last_x > gap_tolerance:
            break
        parts.append(s.text)
        last_x = s.right
    return " ".join(parts).strip()


def merge_spans(spans: List[TextSpan]) -> TextSpan:
    if len(spans) == 1:
        return spans[0]
    ordered = sorted(spans, key=lambda s: s.x)
    first, last = ordered[0], ordered[-1]
    bottom = min(s.y for s in ordered)
    top = max(s.top for s in ordered)
    confs = [s.confidence for s in ordered if s.confidence is not None]
    return TextSpan(
        text=" ".join(s.text for s in ordered),
        x=first.x,
        y=bottom,
        w=last.right - first.x,
        h=top - bottom,
        page=first.page,
        confidence=(sum(confs) / len(ordered)) if confs else None,
    )
