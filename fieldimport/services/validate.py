"""
Boundary checks for extracted values.

- Token filter: nothing shaped like "{{...}}" ever leaves a strategy as a value.
- Scrub: trim values, drop empties, recount confident fields.
- Key matching: map loosely-keyed output (form field names, OCR text labels)
  onto the caller's descriptor keys.

Runs at the end of every strategy, not just once at the end, so an unfilled
template marker can never masquerade as an answer.
"""

import re
from typing import Dict, List, Optional, Sequence

from extraction.patterns import TOKEN_REGEX
from fieldimport.models.schemas import FieldDescriptor, MappingResult

token_pat = re.compile(TOKEN_REGEX, re.DOTALL)


def is_token_text(text: Optional[str]) -> bool:
    return bool(text) and bool(token_pat.match(text.strip()))


def scrub_values(data: Dict[str, str]) -> Dict[str, str]:
    """Trim, then drop empty and token-like values."""
    out: Dict[str, str] = {}
    for key, value in data.items():
        if value is None:
            continue
        v = str(value).strip()
        if not v or is_token_text(v):
            continue
        out[key] = v
    return out


def scrub_mapping(result: MappingResult, confident_threshold: float = 0.6) -> MappingResult:
    data = scrub_values(result.data)
    conf = {k: result.per_field_confidence.get(k, 0.0) for k in data}
    return MappingResult(
        data=data,
        per_field_confidence=conf,
        confident_count=sum(1 for c in conf.values() if c >= confident_threshold),
        source=result.source,
        provenance={k: v for k, v in result.provenance.items() if k in data},
    )


def normalize_key(name: str) -> str:
    """'Investor  Name:' -> 'investor name'."""
    s = re.sub(r"[^a-zA-Z0-9\s]", " ", name.strip().lower())
    return re.sub(r"\s+", " ", s).strip()


def title_case(name: str) -> str:
    return " ".join(w[:1].upper() + w[1:].lower() for w in name.split(" "))


def key_variants(name: str) -> List[str]:
    """Original, normalised, lowercase, title case, underscore form (de-duplicated, in that order)."""
    candidates = [
        name,
        normalize_key(name),
        name.lower(),
        title_case(name),
        normalize_key(title_case(name)),
        re.sub(r"\s+", "_", name).lower(),
    ]
    out: List[str] = []
    for c in candidates:
        if c and c not in out:
            out.append(c)
    return out


def find_source_key(extracted: Dict[str, str], descriptor: FieldDescriptor) -> Optional[str]:
    """Which key of `extracted` belongs to this descriptor: exact variants first, then loose containment."""
    original = descriptor.original_key or descriptor.key
    exact = [
        descriptor.key,
        original,
        descriptor.key.lower(),
        original.lower(),
        descriptor.key.replace("_", " "),
        original.replace("_", " "),
        normalize_key(descriptor.key),
        normalize_key(original),
    ]
    for k in exact:
        if k in extracted:
            return k

    target = normalize_key(descriptor.key)
    if not target:
        return None
    for k in extracted:
        nk = normalize_key(k)
        if nk and (nk == target or nk in target or target in nk):
            return k
    return None


def match_to_descriptors(
    extracted: Dict[str, str],
    descriptors: Sequence[FieldDescriptor],
    keep_unmatched: bool = False,
) -> Dict[str, str]:
    out: Dict[str, str] = {}
    used = set()
    for d in descriptors:
        src = find_source_key(extracted, d)
        if src is not None:
            out[d.key] = extracted[src]
            used.add(src)
    if keep_unmatched:
        for k, v in extracted.items():
            if k not in used and k not in out:
                out[k] = v
    return out
