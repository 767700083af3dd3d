"""
Common utility functions and helpers.
"""
from typing import Any, Optional
import math
import re
import unicodedata


def collapse_whitespace(text: str) -> str:
    """
    Collapse every whitespace run to a single space.

    Args:
        text: Raw text string

    Returns:
        Text with single spaces (not trimmed)
    """
    return re.sub(r'\s+', ' ', text)


def strip_diacritics(text: str) -> str:
    """
    Remove accents and any character that has no ASCII decomposition.

    Args:
        text: Raw text string

    Returns:
        ASCII-only text
    """
    text = unicodedata.normalize('NFKD', text)
    return text.encode('ascii', 'ignore').decode('ascii')


def parse_number(value: Any) -> Optional[float]:
    """
    Read a leading number from an int, float or string such as ``"12px"``.

    Args:
        value: Anything

    Returns:
        The finite float, or None when no number can be read
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = re.match(r'\s*([-+]?(?:\d+\.?\d*|\.\d+))', value)
        if not match:
            return None
        number = float(match.group(1))
    else:
        return None
    return number if math.isfinite(number) else None


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp *value* into [lower, upper]."""
    return max(lower, min(upper, value))


def format_number(value: float) -> str:
    """Render 10.0 as ``"10"`` and 10.5 as ``"10.5"``."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.4f}".rstrip('0').rstrip('.')


def safe_filename(name: str, default: str = "download") -> str:
    """
    Replace everything except ASCII letters and digits with underscores.

    Args:
        name: Human-readable name
        default: Used when *name* is empty

    Returns:
        A name safe for Content-Disposition headers
    """
    cleaned = re.sub(r'[^a-z0-9]', '_', name or '', flags=re.IGNORECASE)
    return cleaned or default


def truncate_text(text: str, max_length: int = 200, suffix: str = "...") -> str:
    """
    Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
