"""
Streamlit front-end for PDF field import.

- Accepts one or more uploaded PDFs and an optional list of target fields.
- Runs `PDFImporter.import_pdf()` per file (diagnostics -> strategy -> fields).
- Shows diagnostics, the extracted field map with per-field confidence and
  the scorer's explanation, and any warnings.
- Exposes CSV/JSON downloads (per doc and combined).

All processing happens locally, except the OCR text fallback, which calls the
configured OCR service (run `python -m fieldimport.ocr_server`).
"""

from __future__ import annotations

# --- ensure package imports work when launched directly ---
import sys, os
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

import asyncio
import hashlib
import json
from typing import List, Dict, Any

import pandas as pd
import streamlit as st

# --- Internal modules ---
from fieldimport.config import settings
from fieldimport.models.schemas import FieldDescriptor, ImportResult
from fieldimport.services.importer import PDFImporter

# ---------------------------- Page setup ----------------------------

st.set_page_config(page_title="PDF Field Import (Local)", layout="wide")
st.title("PDF Field Import (Local)")
st.caption("Fillable, flattened or scanned PDFs → field values with confidence.")

# ---------------------------- Sidebar help ----------------------------

with st.sidebar:
    st.header("How it works")
    st.markdown(
        "- Filled-in forms are read straight from their fields.\n"
        "- Otherwise labels are located on the page and the value next to each is read.\n"
        "- Scans go through OCR; known layouts use fixed page regions.\n"
        "- Last resort: the OCR text service."
    )
    st.divider()
    allow_ocr = st.checkbox("Allow local OCR", value=settings.ALLOW_OCR)
    st.markdown(f"OCR service: `{settings.OCR_SERVICE_URL}`")

# ---------------------------- Uploader & Controls ----------------------------

uploaded = st.file_uploader(
    "Upload one or more PDFs",
    type=["pdf"],
    accept_multiple_files=True,
)

fields_text = st.text_area(
    "Target fields (one per line, optional)",
    help="Leave empty to use the built-in field list. Use `key | synonym | synonym` to add label synonyms.",
)

run_btn = st.button("Run Import", type="primary")


# ---------------------------- Helpers ----------------------------

def file_hash(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()[:16]


def parse_descriptors(text: str) -> List[FieldDescriptor]:
    out: List[FieldDescriptor] = []
    for line in (text or "").splitlines():
        parts = [p.strip() for p in line.split("|") if p.strip()]
        if parts:
            out.append(FieldDescriptor(key=parts[0], original_key=parts[0], synonyms=parts[1:]))
    return out


def result_to_rows(doc_id: str, result: ImportResult) -> List[Dict[str, Any]]:
    rows = []
    for key, value in result.data.items():
        score = result.scores.get(key)
        rows.append({
            "document": doc_id,
            "field": key,
            "value": value,
            "confidence": round(result.per_field_confidence.get(key, 0.0), 3),
            "score": round(score.score, 3) if score else None,
            "explanation": score.explanation if score else "",
            "strategy": result.strategy,
        })
    return rows


def rows_to_dataframe(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    cols = ["document", "field", "value", "confidence", "score", "explanation", "strategy"]
    df = pd.DataFrame(rows)
    for c in cols:
        if c not in df.columns:
            df[c] = None
    return df[cols]


# ---------------------------- Main run ----------------------------

results: Dict[str, ImportResult] = {}

if run_btn and uploaded:
    importer = PDFImporter(settings=settings.model_copy(update={"ALLOW_OCR": allow_ocr}))
    descriptors = parse_descriptors(fields_text)
    for uf in uploaded:
        data = uf.read()
        doc_id = f"{uf.name}-{file_hash(data)}"
        with st.spinner(f"Importing {uf.name}..."):
            results[doc_id] = asyncio.run(importer.import_pdf(data, descriptors))

# ---------------------------- Display results ----------------------------

if not results:
    st.info("Upload PDFs and click **Run Import** to see results.")
else:
    tabs = st.tabs(list(results))
    all_rows: List[Dict[str, Any]] = []

    for tab, (doc_id, result) in zip(tabs, results.items()):
        with tab:
            diag = result.diagnostics
            c1, c2, c3, c4 = st.columns(4)
            c1.metric("Pages", diag.page_count)
            c2.metric("Form fields", diag.field_count)
            c3.metric("Strategy", result.strategy)
            c4.metric("Fields found", len(result.data))
            if diag.is_flattened:
                st.warning("Form fields exist but carry no values (flattened).")
            if diag.is_textless:
                st.warning("No text layer; values come from OCR.")
            for msg in diag.errors + result.warnings:
                st.error(msg)

            rows = result_to_rows(doc_id, result)
            df = rows_to_dataframe(rows)
            st.dataframe(df, use_container_width=True)

            col_dl1, col_dl2 = st.columns(2)
            with col_dl1:
                st.download_button(
                    "Download JSON (this doc)",
                    data=json.dumps(result.model_dump(mode="json"), indent=2),
                    file_name=f"{doc_id}.json",
                    mime="application/json",
                    use_container_width=True
                )
            with col_dl2:
                st.download_button(
                    "Download CSV (this doc)",
                    data=df.to_csv(index=False),
                    file_name=f"{doc_id}.csv",
                    mime="text/csv",
                    use_container_width=True
                )

            all_rows.extend(rows)

    st.markdown("## Combined Results (All Documents)")
    combined_df = rows_to_dataframe(all_rows)
    st.dataframe(combined_df, use_container_width=True)
    st.download_button(
        "Download CSV (combined)",
        data=combined_df.to_csv(index=False),
        file_name="fields_combined.csv",
        mime="text/csv",
    )
