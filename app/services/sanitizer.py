"""
HTML sanitisation for stored article content (bleach allowlist).
"""
from __future__ import annotations

import html
import logging
from typing import Any

import bleach
from bleach.css_sanitizer import CSSSanitizer

logger = logging.getLogger(__name__)

ALLOWED_TAGS = frozenset({
    "p", "div", "h1", "h2", "h3",
    "span", "b", "strong", "i", "em", "u", "font", "br",
    "a", "ul", "ol", "li",
})

_STYLED = ["style"]
ALLOWED_ATTRIBUTES = {
    "a": ["href", "name", "target"],
    "font": ["color", "face", "size"],
    "p": _STYLED + ["align"],
    "div": _STYLED + ["align"],
    "h1": _STYLED,
    "h2": _STYLED,
    "h3": _STYLED,
    "span": _STYLED,
    "b": _STYLED,
    "strong": _STYLED,
    "i": _STYLED,
    "em": _STYLED,
    "u": _STYLED,
}

ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto"})

_css_sanitizer = CSSSanitizer(
    allowed_css_properties=[
        "color",
        "font-weight",
        "font-style",
        "font-family",
        "font-size",
        "text-decoration",
        "text-align",
    ]
)


def sanitize_html(value: Any) -> Any:
    """Strip everything outside the article allowlist. Non-strings are returned unchanged."""
    if not isinstance(value, str):
        return value
    return bleach.clean(
        value,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        css_sanitizer=_css_sanitizer,
        strip=True,
        strip_comments=True,
    )


def sanitize_text(value: Any) -> Any:
    """Remove all markup from a plain-text field such as a title."""
    if not isinstance(value, str):
        return value
    return html.unescape(bleach.clean(value, tags=set(), strip=True)).strip()
