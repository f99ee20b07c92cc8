"""
Data shapes for the import pipeline.

- TextSpan: one positioned run of text (text layer or OCR word).
- FieldDescriptor: a target field as the template parser describes it.
- MappingResult: what every span-based strategy returns (values + confidence).
- PDFDiagnostics: what kind of PDF we were handed; drives routing only.
- RegionTemplate: fixed page rectangles for a known layout.
- ConfidenceScore / ExtractedValue: scorer output for one field.
- FormField: one interactive form field, tagged by kind.
- ImportResult: final output handed back to the caller.

Coordinates are PDF points with the origin at the bottom-left of the page;
pages are 0-based everywhere except RegionPage.number (1-based, as people
count pages when writing templates).
"""

from enum import Enum
from typing import Dict, List, Optional, Literal, Any

from pydantic import BaseModel, ConfigDict, Field


class TextSpan(BaseModel):
    """
    Positioned run of text.

    - x, y: bottom-left corner in page space
    - w, h: width / height in points
    - page: 0-based page index
    - confidence: 0-100 for OCR words, None for the text layer
    """

    model_config = ConfigDict(frozen=True)

    text: str
    x: float
    y: float
    w: float
    h: float
    page: int = 0
    confidence: Optional[float] = None

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def top(self) -> float:
        return self.y + self.h

    @property
    def center_y(self) -> float:
        return self.y + self.h / 2.0


class FieldDescriptor(BaseModel):
    """
    One target field.

    - key: canonical identifier (what the output map is keyed by)
    - original_key: the label as written in the template
    - synonyms: other label strings we might see on the page, in priority order
    """

    model_config = ConfigDict(frozen=True)

    key: str
    original_key: str = ""
    synonyms: List[str] = Field(default_factory=list)

    def labels(self) -> List[str]:
        """key, original_key, then synonyms; blanks and repeats dropped."""
        out: List[str] = []
        for s in [self.key, self.original_key, *self.synonyms]:
            if s and s not in out:
                out.append(s)
        return out


MappingSource = Literal["text", "ocr", "zonal"]


class MappingResult(BaseModel):
    data: Dict[str, str] = Field(default_factory=dict)
    per_field_confidence: Dict[str, float] = Field(default_factory=dict)
    confident_count: int = 0
    source: MappingSource = "text"
    provenance: Dict[str, Any] = Field(default_factory=dict)


class PDFDiagnostics(BaseModel):
    model_config = ConfigDict(frozen=True)

    page_count: int = 0
    has_acro_form: bool = False
    field_count: int = 0
    is_flattened: bool = False
    is_textless: bool = False
    errors: List[str] = Field(default_factory=list)


class RegionRect(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    w: float
    h: float

    @property
    def area(self) -> float:
        return self.w * self.h


class RegionPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    fields: Dict[str, RegionRect]


class RegionTemplate(BaseModel):
    """Known layout: page-1 fingerprint strings + per-page field rectangles."""

    model_config = ConfigDict(frozen=True)

    name: str
    fingerprint: List[str]
    pages: List[RegionPage]
    units: str = "points"


class ValueSource(str, Enum):
    FORM = "form"
    ANCHOR = "anchor"
    TEXT = "text"
    OCR = "ocr"


class ConfidenceFactors(BaseModel):
    anchor_match: float
    geometry_rule: float
    source: float
    text_quality: float


class ConfidenceScore(BaseModel):
    score: float
    factors: ConfidenceFactors
    explanation: str


class ExtractedValue(BaseModel):
    key: str
    value: str
    confidence: ConfidenceScore
    source: ValueSource
    spans: List[TextSpan] = Field(default_factory=list)


class FormFieldKind(str, Enum):
    TEXT = "text"
    CHECKBOX = "checkbox"
    DROPDOWN = "dropdown"
    RADIO_GROUP = "radio_group"
    UNKNOWN = "unknown"


class FormField(BaseModel):
    """
    One interactive form field.

    `value` is already normalised per kind: text as-is, checkbox True/False,
    dropdown / radio the selected option (None when nothing is selected).
    """

    name: str
    kind: FormFieldKind
    value: Optional[Any] = None


class ImportResult(BaseModel):
    """
    Final output for one PDF.

    - data: field key -> extracted string (the only thing the filler needs)
    - diagnostics: for the UI to decide whether to warn
    - strategy: which path produced `data` (acroform, text, text+ocr, ocr, "+zonal"
      suffix when region templates added fields, ocr_text, none)
    - scores: per-field ConfidenceScore
    """

    data: Dict[str, str] = Field(default_factory=dict)
    diagnostics: PDFDiagnostics = Field(default_factory=PDFDiagnostics)
    strategy: str = "none"
    per_field_confidence: Dict[str, float] = Field(default_factory=dict)
    scores: Dict[str, ConfidenceScore] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
