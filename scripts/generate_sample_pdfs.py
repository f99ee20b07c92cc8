"""
Sample PDFs for trying the importer by hand (and for the tests).

- labels.pdf: flattened "Label: value" lines, text layer only
- tokens.pdf: unfilled {{Token}} labels with values written underneath
- form.pdf: interactive AcroForm with filled text fields and a checkbox
- safe.pdf: SAFE cover page laid out to match the built-in region template

Run:
    python scripts/generate_sample_pdfs.py [out_dir]
"""

import io
import os
import sys
from typing import Dict, List, Optional, Tuple

from reportlab.lib.pagesizes import LETTER
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

FONT = "Helvetica"
SIZE = 11

DEFAULT_LABELS = [
    ("Investor Name:", "Jane Doe"),
    ("Company Name:", "Acme Pty Ltd"),
    ("Purchase Amount:", "$50,000"),
]


def _finish(c: canvas.Canvas, buf: io.BytesIO) -> bytes:
    c.showPage()
    c.save()
    return buf.getvalue()


def build_label_pdf(pairs: Optional[List[Tuple[str, str]]] = None, gap: float = 10) -> bytes:
    """One pair per line; value drawn `gap` points right of its label."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=LETTER)
    c.setFont(FONT, SIZE)
    y = 700
    for label, value in pairs or DEFAULT_LABELS:
        c.drawString(72, y, label)
        if value:
            c.drawString(72 + stringWidth(label, FONT, SIZE) + gap, y, value)
        y -= 40
    return _finish(c, buf)


def build_token_pdf(pairs: Optional[List[Tuple[str, str]]] = None) -> bytes:
    """'{{Key}}' on one line, the value 18 points below it."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=LETTER)
    c.setFont(FONT, SIZE)
    y = 700
    for key, value in pairs or [("Company Name", "Acme Pty Ltd")]:
        c.drawString(72, y, "{{" + key + "}}")
        c.drawString(72, y - 18, value)
        y -= 80
    return _finish(c, buf)


def build_form_pdf(values: Optional[Dict[str, str]] = None, checked: bool = True) -> bytes:
    """AcroForm text fields named field_<key> plus one checkbox."""
    values = values if values is not None else {
        "field_company_name": "Acme Pty Ltd",
        "field_investor_name": "Jane Doe",
    }
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=LETTER)
    c.setFont(FONT, SIZE)
    c.drawString(72, 740, "Subscription Form")
    form = c.acroForm
    y = 680
    for name, value in values.items():
        c.drawString(72, y + 6, name.replace("field_", "").replace("_", " ").title() + ":")
        form.textfield(name=name, x=250, y=y, width=250, height=20, value=value, forceBorder=True)
        y -= 40
    c.drawString(72, y + 6, "Accredited:")
    form.checkbox(name="field_accredited", x=250, y=y, size=16, checked=checked, buttonStyle="check")
    return _finish(c, buf)


def build_safe_pdf(values: Optional[Dict[str, Tuple[str, float, float]]] = None) -> bytes:
    """Cover page with the SAFE fingerprint; values sit inside the template rectangles."""
    values = values or {
        "Company Name": ("Acme Pty Ltd", 136, 586),
        "Investor Name": ("Jane Doe", 136, 546),
    }
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=LETTER)
    c.setFont(FONT, 14)
    c.drawString(72, 720, "SAFE (Simple Agreement for Future Equity)")
    c.setFont(FONT, SIZE)
    for _, (text, x, y) in values.items():
        c.drawString(x, y, text)
    c.drawString(72, 400, "Investor and Company agree as follows.")
    return _finish(c, buf)


SAMPLES = {
    "labels.pdf": build_label_pdf,
    "tokens.pdf": build_token_pdf,
    "form.pdf": build_form_pdf,
    "safe.pdf": build_safe_pdf,
}


if __name__ == "__main__":
    out_dir = sys.argv[1] if len(sys.argv) > 1 else os.path.join(os.path.dirname(__file__), "..", "data", "samples")
    os.makedirs(out_dir, exist_ok=True)
    for name, build in SAMPLES.items():
        path = os.path.join(out_dir, name)
        with open(path, "wb") as f:
            f.write(build())
        print(f"Created {path}")
