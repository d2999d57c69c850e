"""
Address utilities: zipcode derivation from free-text addresses.
"""

import re
from typing import Optional


# US zipcode: 5 digits, optionally ZIP+4. Only the 5-digit part is kept.
_ZIPCODE_RE = re.compile(r"\b(\d{5})(?:-\d{4})?\b", re.ASCII)
_ZIPCODE_FULL_RE = re.compile(r"[0-9]{5}")


def extract_zipcode(address: Optional[str]) -> str:
    """
    Derive a 5-digit zipcode from a free-text address.

    Returns the first 5-digit run (ZIP+4 suffix dropped) or "" when the
    address has none.

    Examples:
        "500 Main St, Houston, TX 77002"  -> "77002"
        "1 Elm St, Austin, TX 78701-1234" -> "78701"
        "Main St"                         -> ""
    """
    if not address:
        return ""
    match = _ZIPCODE_RE.search(address)
    if not match:
        return ""
    return match.group(1)


def is_valid_zipcode(value: Optional[str]) -> bool:
    """True for exactly five ASCII digits."""
    return bool(value) and bool(_ZIPCODE_FULL_RE.fullmatch(value))
