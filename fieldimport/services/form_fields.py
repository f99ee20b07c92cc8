"""
Interactive (AcroForm) field reading.

- classify_field(): raw pypdf field dict -> FormFieldKind (closed set).
- read_form_fields(): every field in the document as a FormField with its
  value already normalised for its kind.
- form_fields_to_data(): FormFields -> {key: string} the way the filler wants
  it ("field_company_name" -> "company name", checked boxes -> "Yes").

One reader function per kind; anything we do not recognise goes through the
UNKNOWN reader, which only accepts a plain string value.
"""

import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from pypdf import PdfReader

from fieldimport.models.schemas import FieldDescriptor, FormField, FormFieldKind
from fieldimport.services.validate import match_to_descriptors
from fieldimport.util.logger import get_logger

# /Ff bits (PDF 32000-1, 12.7.4)
FF_RADIO = 1 << 15
FF_PUSHBUTTON = 1 << 16
FF_COMBO = 1 << 17

_OFF_STATES = {"", "off", "/off"}


def classify_field(field: Dict[str, Any]) -> FormFieldKind:
    ft = str(field.get("/FT") or "")
    flags = int(field.get("/Ff") or 0)
    if ft == "/Tx":
        return FormFieldKind.TEXT
    if ft == "/Ch":
        return FormFieldKind.DROPDOWN
    if ft == "/Btn":
        if flags & FF_PUSHBUTTON:
            return FormFieldKind.UNKNOWN
        if flags & FF_RADIO:
            return FormFieldKind.RADIO_GROUP
        return FormFieldKind.CHECKBOX
    return FormFieldKind.UNKNOWN


def _state_name(raw: Any) -> Optional[str]:
    """'/Choice1' -> 'Choice1'; Off/empty -> None."""
    if raw is None:
        return None
    s = str(raw).strip()
    if s.lower() in _OFF_STATES:
        return None
    return s[1:] if s.startswith("/") else s


def _read_text(field: Dict[str, Any]) -> Optional[str]:
    v = field.get("/V")
    return None if v is None else str(v)


def _read_checkbox(field: Dict[str, Any]) -> bool:
    return _state_name(field.get("/V")) is not None


def _read_dropdown(field: Dict[str, Any]) -> Optional[str]:
    v = field.get("/V")
    if isinstance(v, (list, tuple)):
        v = v[0] if v else None
    if v is None:
        return None
    s = str(v)
    return s or None


def _read_radio(field: Dict[str, Any]) -> Optional[str]:
    return _state_name(field.get("/V"))


def _read_unknown(field: Dict[str, Any]) -> Optional[str]:
    v = field.get("/V")
    return v if isinstance(v, str) else None


_READERS: Dict[FormFieldKind, Callable[[Dict[str, Any]], Any]] = {
    FormFieldKind.TEXT: _read_text,
    FormFieldKind.CHECKBOX: _read_checkbox,
    FormFieldKind.DROPDOWN: _read_dropdown,
    FormFieldKind.RADIO_GROUP: _read_radio,
    FormFieldKind.UNKNOWN: _read_unknown,
}


def read_form_fields(reader: PdfReader) -> List[FormField]:
    raw = reader.get_fields() or {}
    out: List[FormField] = []
    for name, field in raw.items():
        kind = classify_field(field)
        out.append(FormField(name=name, kind=kind, value=_READERS[kind](field)))
    return out


def has_value(field: FormField) -> bool:
    if field.value is None or field.value is False:
        return False
    if isinstance(field.value, str):
        return bool(field.value.strip())
    return True


def field_name_to_key(name: str) -> str:
    """'field_company_name' -> 'company name'."""
    key = name.replace("field_", "", 1).replace("_", " ").strip()
    key = re.sub(r"\s+", " ", key)
    # "service(s)" loses its parens when it becomes a field name
    if key == "service s":
        key = "service(s)"
    return key


def form_fields_to_data(fields: List[FormField], descriptors: Sequence[FieldDescriptor] = ()) -> Dict[str, str]:
    logger = get_logger("form_fields")
    data: Dict[str, str] = {}
    for f in fields:
        if not has_value(f):
            continue
        key = field_name_to_key(f.name)
        if f.value is True:
            data[key] = "Yes"
        else:
            data[key] = str(f.value).strip()
        logger.debug(f"Form field {f.name} ({f.kind.value}) -> {key} = {data[key]!r}")

    if descriptors:
        data = match_to_descriptors(data, descriptors, keep_unmatched=True)

    logger.info(f"Extracted {len(data)} fields from form")
    return data
