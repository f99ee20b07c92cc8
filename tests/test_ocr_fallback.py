"""
Tests for the OCR text fallback: the line parser, descriptor matching and the
service client wiring.
"""

import pytest

from conftest import FakeOCRClient
from fieldimport.errors import OCRServiceError
from fieldimport.models.schemas import FieldDescriptor
from fieldimport.services.ocr_fallback import (
    extract_with_ocr_fallback,
    is_page_marker,
    is_section_header,
    is_valid_value,
    parse_ocr_text,
    split_field_line,
)


class TestSectionHeaders:
    """Test header detection used to skip non-value lines."""

    def test_known_headers(self):
        """Fixed header phrases are headers."""
        assert is_section_header("Investor Information")
        assert is_section_header("please complete")

    def test_short_single_words(self):
        """Short single words in title case or caps are headers."""
        assert is_section_header("Dates")
        assert is_section_header("INVESTOR")

    def test_numbers_and_abbreviations_are_not_headers(self):
        """Numbers and known abbreviations are values, not headers."""
        assert not is_section_header("500,000")
        assert not is_section_header("$1,234.56")
        assert not is_section_header("USA")
        assert not is_section_header("CEO")

    def test_multi_word_values(self):
        """Ordinary multi-word values are not headers."""
        assert not is_section_header("Jane Doe")
        assert not is_section_header("")


class TestLineHelpers:
    """Test line classification helpers."""

    def test_page_marker(self):
        """'--- Page N ---' lines are markers."""
        assert is_page_marker("--- Page 2 ---")
        assert not is_page_marker("Page 2")

    def test_split_field_line(self):
        """Label-only and label-value lines are split; other lines are not fields."""
        assert split_field_line("Investor Name:") == ("Investor Name", "")
        assert split_field_line("Investor Name: Jane Doe") == ("Investor Name", "Jane Doe")
        assert split_field_line("Jane Doe") == ("", "")

    def test_is_valid_value(self):
        """Tokens, headers and one-character strings are rejected."""
        assert is_valid_value("Jane Doe")
        assert is_valid_value("NY")
        assert not is_valid_value("{{Investor Name}}")
        assert not is_valid_value("Dates")
        assert not is_valid_value("x")
        assert not is_valid_value("!!")


class TestParseOCRText:
    """Test the line-oriented parser."""

    def test_skips_section_header(self):
        """A header between label and value is skipped."""
        result = parse_ocr_text("Investor Name:\nDates\nJane Doe\n")
        assert result["Investor Name"] == "Jane Doe"

    def test_same_line_value(self):
        """'Label: Value' lines give their value directly."""
        result = parse_ocr_text("--- Page 1 ---\nCompany Name: Acme Pty Ltd\n")
        assert result["Company Name"] == "Acme Pty Ltd"

    def test_key_variants_stored(self):
        """Values are stored under several spellings of the label."""
        result = parse_ocr_text("Investor Name:\nJane Doe\n")
        for key in ("Investor Name", "investor name", "investor_name"):
            assert result[key] == "Jane Doe"

    def test_stops_at_next_label(self):
        """A label followed directly by another label stays blank."""
        result = parse_ocr_text("Investor Name:\nCompany Name:\nAcme Pty Ltd\n")
        assert "Investor Name" not in result
        assert result["Company Name"] == "Acme Pty Ltd"

    def test_header_with_colon_is_skipped(self):
        """'Dates:' between a label and its value is treated as a header."""
        result = parse_ocr_text("Investor Name:\nDates:\nJane Doe\n")
        assert result["Investor Name"] == "Jane Doe"

    def test_stops_at_page_marker(self):
        """The search never crosses a page marker."""
        result = parse_ocr_text("Investor Name:\n--- Page 2 ---\nJane Doe\n")
        assert "Investor Name" not in result

    def test_lookahead_limit(self):
        """Values more than 15 lines away are not taken."""
        filler = "\n".join(["Details"] * 16)
        result = parse_ocr_text(f"Investor Name:\n{filler}\nJane Doe\n")
        assert "Investor Name" not in result

    def test_tokens_never_values(self):
        """Unfilled tokens are never taken as values."""
        result = parse_ocr_text("Investor Name: {{Investor Name}}\nCompany Name:\n{{Company Name}}\n")
        assert result == {}

    def test_empty_text(self):
        """Empty input gives an empty dict."""
        assert parse_ocr_text("") == {}
        assert parse_ocr_text("   \n  ") == {}


class TestExtractWithOCRFallback:
    """Test the client + parser + descriptor matching path."""

    @pytest.mark.asyncio
    async def test_matches_descriptors(self):
        """Parsed labels are remapped onto descriptor keys."""
        client = FakeOCRClient(text="--- Page 1 ---\nInvestor Name:\nJane Doe\nIssuer Company Name: Acme Pty Ltd\n")
        descriptors = [
            FieldDescriptor(key="investor_name", original_key="Investor Name"),
            FieldDescriptor(key="Company Name", original_key="Company Name"),
            FieldDescriptor(key="Purchase Amount", original_key="Purchase Amount"),
        ]
        data = await extract_with_ocr_fallback(b"%PDF-1.4", descriptors, client)
        assert data == {"investor_name": "Jane Doe", "Company Name": "Acme Pty Ltd"}
        assert client.calls == [b"%PDF-1.4"]

    @pytest.mark.asyncio
    async def test_no_descriptors_returns_all_keys(self):
        """Without descriptors every parsed key comes back."""
        client = FakeOCRClient(text="Investor Name: Jane Doe\n")
        data = await extract_with_ocr_fallback(b"%PDF", (), client)
        assert data["Investor Name"] == "Jane Doe"

    @pytest.mark.asyncio
    async def test_empty_text(self):
        """Blank service output gives an empty dict."""
        data = await extract_with_ocr_fallback(b"%PDF", (), FakeOCRClient(text="  "))
        assert data == {}

    @pytest.mark.asyncio
    async def test_service_error_propagates(self, failing_client):
        """Service errors reach the caller so the importer can degrade."""
        with pytest.raises(OCRServiceError):
            await extract_with_ocr_fallback(b"%PDF", (), failing_client)
