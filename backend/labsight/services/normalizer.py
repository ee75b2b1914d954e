from __future__ import annotations

import re

# Typographic variants folded onto the ASCII forms the extractor expects
SYMBOL_EQUIVALENTS = str.maketrans(
    {
        "–": "-",  # en dash
        "—": "-",  # em dash
        "−": "-",  # minus sign
        "≤": "<=",
        "≥": ">=",
        "×": "x",  # multiplication sign in "x10^3/ul"
        "·": ".",
    }
)

WHITESPACE = re.compile(r"\s+")
SPACED_SLASH = re.compile(r" ?/ ?")
# Alphanumerics, the punctuation that carries structure in lab rows, and
# the unit symbols (percent, micro, exponent).
DISALLOWED = re.compile(r"[^0-9A-Za-z .,;:()\[\]{}\-/=<>%µμ^]")

# OCR confuses l/1 and o/0; only rewrite whole tokens, never letters inside words.
# A lone "l" is also the litre in "mmol / l", so it only becomes 1 beside a number.
ISOLATED_L = re.compile(r"(?:(?<=\d )|(?<!\S)(?=l \d))l(?!\S)")
ISOLATED_O = re.compile(r"(?<!\S)o(?!\S)")
NUMERIC_TOKEN = re.compile(r"(?<!\S)(?=[0-9ol.,]*\d)[0-9ol][0-9ol.,]*(?!\S)")
_DIGIT_FIX = str.maketrans({"l": "1", "o": "0"})


def _fix_numeric_token(m: re.Match[str]) -> str:
    return m.group(0).translate(_DIGIT_FIX)


def normalize(raw: str) -> str:
    """Return the canonical single-line, lower-case form of OCR/PDF text."""
    if not raw:
        return ""
    text = raw.translate(SYMBOL_EQUIVALENTS)
    text = WHITESPACE.sub(" ", text)
    text = DISALLOWED.sub("", text)
    # Removing characters can leave doubled spaces behind
    text = WHITESPACE.sub(" ", text)
    # "mmol / l" and "mmol/l" are the same unit
    text = SPACED_SLASH.sub("/", text)
    text = text.lower()
    text = ISOLATED_L.sub("1", text)
    text = ISOLATED_O.sub("0", text)
    text = NUMERIC_TOKEN.sub(_fix_numeric_token, text)
    return text.strip()
