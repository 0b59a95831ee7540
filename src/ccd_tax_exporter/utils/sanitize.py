"""Cleanup of free-text cells before they reach the CSV."""

import re
from typing import Optional

# Leading characters that make spreadsheet apps evaluate a cell ("|" is DDE)
_FORMULA_CHARS = ("=", "+", "-", "@", "|")

_WHITESPACE_RUN = re.compile(r"\s+")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_for_csv(value: Optional[str]) -> Optional[str]:
    """Make a sender-chosen text (description, memo) safe for one CSV cell.

    Memos are arbitrary text picked by whoever sent the transaction. Unpaired
    surrogates become "?", control characters are dropped, line breaks and whitespace runs become single
    spaces, and a value that would start with a formula character is
    prefixed with a single quote.

    Args:
        value: Text to clean, or None.

    Returns:
        Cleaned text, or None if input was None.
    """
    if value is None:
        return None

    # Lone surrogates are valid in JSON strings but cannot be encoded as UTF-8
    text = value.encode("utf-8", "replace").decode("utf-8")
    cleaned = _WHITESPACE_RUN.sub(" ", _CONTROL_CHARS.sub("", text)).strip()
    if cleaned.startswith(_FORMULA_CHARS):
        return "'" + cleaned
    return cleaned
