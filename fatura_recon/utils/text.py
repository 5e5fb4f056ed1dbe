"""
Description normalisation helpers shared by the scorer and the comparator.
"""

import re
import unicodedata
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_description(text: Optional[str]) -> str:
    """Trim and case-fold a description. Nothing else is altered."""
    return (text or "").strip().casefold()


def strip_accents(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def compact_key(text: Optional[str], length: Optional[int] = None) -> str:
    """
    Reduce a description to lowercase ASCII letters and digits.

    "Uber *Trip 1234" -> "ubertrip1234". ``length`` truncates the result.
    """
    cleaned = _NON_ALNUM.sub("", strip_accents(text or "").lower())
    if length is not None:
        return cleaned[:length]
    return cleaned


def descriptions_similar(first: Optional[str], second: Optional[str]) -> bool:
    """Equal or contained in one another after compaction. Empty never matches."""
    clean1 = compact_key(first)
    clean2 = compact_key(second)
    if not clean1 or not clean2:
        return False
    return clean1 in clean2 or clean2 in clean1
