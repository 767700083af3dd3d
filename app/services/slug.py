"""
Slug assignment for articles.

A slug is the slugified title when free; otherwise a random base-36 suffix
is appended and re-probed, at most SLUG_MAX_ATTEMPTS times. When every
attempt collides the last candidate is returned anyway: the uniqueness
constraint in the database is the final arbiter.
"""
from __future__ import annotations

import logging
import random
import re
import string
from typing import Awaitable, Callable, Iterator, Optional

from app.config import settings
from app.utils.helpers import strip_diacritics

logger = logging.getLogger(__name__)

FALLBACK_SLUG = "article"
SUFFIX_LENGTH = 6
_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase


def slugify(title: str, max_length: Optional[int] = None) -> str:
    """
    Derive a URL-safe slug from a title.

    Lower-cases, strips diacritics and punctuation, joins words with ``-``
    and truncates to *max_length* (SLUG_MAX_LENGTH by default).
    """
    max_length = max_length or settings.SLUG_MAX_LENGTH
    text = strip_diacritics(str(title or "")).lower()
    text = re.sub(r"[^a-z0-9\s_-]", "", text)
    text = re.sub(r"[\s_-]+", "-", text).strip("-")
    text = text[:max_length].rstrip("-")
    return text or FALLBACK_SLUG


def _random_suffix(rng: random.Random) -> str:
    return "".join(rng.choice(_SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))


def slug_candidates(
    title: str,
    max_attempts: Optional[int] = None,
    max_length: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Iterator[str]:
    """Yield the plain slug, then up to *max_attempts* suffixed variants."""
    max_attempts = settings.SLUG_MAX_ATTEMPTS if max_attempts is None else max_attempts
    max_length = max_length or settings.SLUG_MAX_LENGTH
    rng = rng or random.Random()

    base = slugify(title, max_length)
    yield base

    # Leave room for "-<suffix>" inside max_length
    stem = base[: max(1, max_length - SUFFIX_LENGTH - 1)].rstrip("-") or FALLBACK_SLUG
    for _ in range(max_attempts):
        yield f"{stem}-{_random_suffix(rng)}"


def assign_unique_slug(
    title: str,
    exists: Callable[[str], bool],
    max_attempts: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Return the first candidate slug for which *exists* is False.

    Args:
        title: Article title
        exists: Uniqueness oracle
        max_attempts: Suffixed retries after the plain slug
        rng: Random source (tests pass a seeded one)

    Returns:
        A non-empty slug; the last candidate if all of them collided
    """
    candidate = FALLBACK_SLUG
    for candidate in slug_candidates(title, max_attempts, rng=rng):
        if not exists(candidate):
            return candidate
    logger.warning("Slug retries exhausted for %r; using %s", title, candidate)
    return candidate


async def assign_unique_slug_async(
    title: str,
    exists: Callable[[str], Awaitable[bool]],
    max_attempts: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Same as assign_unique_slug with an awaitable oracle (database lookups)."""
    candidate = FALLBACK_SLUG
    for candidate in slug_candidates(title, max_attempts, rng=rng):
        if not await exists(candidate):
            return candidate
    logger.warning("Slug retries exhausted for %r; using %s", title, candidate)
    return candidate
