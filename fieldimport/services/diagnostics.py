"""
What kind of PDF is this?

- has_acro_form / field_count: interactive fields present at all
- is_flattened: fields exist but none of them carries a value
- is_textless: no page yields extractable text (scan, image-only export)

Only drives routing. Never raises: an unreadable document comes back as a
record with `errors` filled and conservative defaults.
"""

import io

from pypdf import PdfReader

from fieldimport.models.schemas import PDFDiagnostics
from fieldimport.services.form_fields import has_value, read_form_fields
from fieldimport.util.logger import get_logger


def _is_textless(reader: PdfReader) -> bool:
    for page in reader.pages:
        if (page.extract_text() or "").strip():
            return False
    return True


def diagnose_pdf(pdf_bytes: bytes) -> PDFDiagnostics:
    logger = get_logger("diagnostics")
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        page_count = len(reader.pages)
        fields = read_form_fields(reader)
        with_values = [f for f in fields if has_value(f)]
        diag = PDFDiagnostics(
            page_count=page_count,
            has_acro_form=bool(fields),
            field_count=len(fields),
            is_flattened=bool(fields) and not with_values,
            is_textless=_is_textless(reader),
        )
    except Exception as e:
        logger.warning(f"Could not open PDF for diagnostics: {e}")
        return PDFDiagnostics(errors=[f"{type(e).__name__}: {e}"])

    logger.info(
        f"Diagnostics: pages={diag.page_count} acroform={diag.has_acro_form} "
        f"fields={diag.field_count} flattened={diag.is_flattened} textless={diag.is_textless}"
    )
    return diag
