"""Text normalisation helpers shared by matching and suspense handling."""

from typing import Optional
import re
import unicodedata

DEFAULT_REFERENCE_PATTERN = r"[^a-zA-Z0-9]"


def normalize_reference(
    reference: Optional[str], pattern: str = DEFAULT_REFERENCE_PATTERN
) -> Optional[str]:
    """Strip special characters and upper-case a reference code."""
    if not reference:
        return None
    normalized = re.sub(pattern, "", strip_accents(reference)).upper()
    return normalized or None


def strip_accents(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def infer_channel(
    description: Optional[str], keywords: dict[str, str], default: str
) -> str:
    """
    Infer a payment channel from a free-text bank description.

    Keywords are compared case- and accent-insensitively, in the order given.

    Args:
        description: Statement line description
        keywords: Mapping of keyword to channel
        default: Channel used when no keyword is present

    Returns:
        The inferred channel
    """
    if not description:
        return default

    text = strip_accents(description).upper()
    for keyword, channel in keywords.items():
        if strip_accents(keyword).upper() in text:
            return channel
    return default
