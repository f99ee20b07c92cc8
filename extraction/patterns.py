"""
Centralized patterns and lookups.

- TOKEN_REGEX: an unfilled template token like "{{Company Name}}".
- DEFAULT_FIELD_SYNONYMS: canonical field -> label strings we might see, used
  only when the caller supplies no field descriptors.
- GENERIC_LABEL_WORDS: words that make a span "look like a label" when we
  have no descriptors to compare against.
- *_KEY_HINTS: substrings of a field key that switch on type-aware value checks.
- SECTION_HEADERS / KNOWN_ABBREVIATIONS: OCR text dump heuristics.

These live here so the matching rules stay readable and we change tables in one place.
"""


# Whole string is a brace-delimited token (after trimming)
TOKEN_REGEX = r"^\{\{.*\}\}$"

# Empty-ish: braces, whitespace, light punctuation only
PUNCT_ONLY_REGEX = r"^[\{\}\s\.,;:!?\-_]+$"

# Canonical field -> synonyms. Order matters: earlier wins ties.
DEFAULT_FIELD_SYNONYMS = {
    "Investor Name": ["Investor Name", "Purchaser Name", "Subscriber Name", "INVESTOR NAME"],
    "Company Name": ["Company Name", "Issuer", "COMPANY NAME", "Company"],
    "Purchase Amount": ["Purchase Amount", "Investment Amount", "Consideration", "Amount"],
    "Date of Safe": ["Date of Safe", "Date", "Effective Date", "Safe Date"],
    "Company State of Incorporation": [
        "Company State of Incorporation", "State of Incorporation",
        "Jurisdiction of Incorporation", "State",
    ],
    "Governing Law Jurisdiction": [
        "Governing Law Jurisdiction", "Governing Law", "Governing Law State", "Jurisdiction",
    ],
    "Company Authorized Representative Name": [
        "Company Authorized Representative Name", "Authorized Signatory Name", "Representative Name",
    ],
    "Company Authorized Representative Title": [
        "Company Authorized Representative Title", "Authorized Signatory Title", "Representative Title",
    ],
}

# Not document-specific on purpose
GENERIC_LABEL_WORDS = [
    "name", "date", "amount", "address", "email", "phone", "title", "company",
    "signature", "agreement", "contract", "service", "fee", "term", "condition",
]

MONEY_KEY_HINTS = ["amount", "price", "cost", "fee", "rate"]
DATE_KEY_HINTS = ["date", "time"]
EMAIL_KEY_HINTS = ["email", "e-mail"]
PHONE_KEY_HINTS = ["phone", "telephone", "mobile"]

MONEY_VALUE_REGEX = r"^[\d\.,$€£¥\s]+$"
DATE_NUMERIC_REGEX = r"^[\d\s\-\/\.]+$"
DATE_WORDY_REGEX = r"^[A-Za-z\s\d\-\/\.,]+$"
EMAIL_VALUE_REGEX = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
PHONE_VALUE_REGEX = r"^[\d\s\-\+\(\)\.]+$"

# OCR text dump: lines that introduce a section rather than carry a value
SECTION_HEADERS = {
    "dates", "date", "investor information", "company information",
    "other information", "instructions", "investor", "company",
    "information", "details", "general", "personal", "contact",
    "address", "payment", "terms", "agreement", "signature",
    "please complete", "fill in", "required fields", "optional fields",
    "save this document", "return it",
}

SECTION_HEADER_WORDS_REGEX = r"^(information|details|general|instructions|section|header)$"

# Short all-caps values that are answers, not headings
KNOWN_ABBREVIATIONS = {
    "usa", "ca", "ny", "tx", "fl", "uk", "gb", "nsw", "vic", "qld", "wa", "sa", "nt", "act", "tas",
    "ceo", "cfo", "cto", "coo", "cmo", "cpo",
    "inc", "ltd", "llc", "corp", "llp", "pc", "plc",
    "canada", "australia", "nz",
}

# "--- Page 3 ---" separators in the OCR service output
PAGE_MARKER_REGEX = r"^---\s*Page\s+\d+\s*---$"
