"""Text helpers shared by slug generation and name matching."""
from __future__ import annotations

import re
import unicodedata

SLUG_MAX_LENGTH = 100

_NON_SLUG_RUN = re.compile(r"[^a-z0-9]+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def strip_diacritics(text: str) -> str:
    """Decompose to NFD and drop combining marks ("Café" -> "Cafe")."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def slugify(text: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """
    Build a URL-safe slug: lowercase ASCII letters, digits and single hyphens.

    Hyphens are trimmed again after truncation so that slugify(slugify(x))
    always equals slugify(x).
    """
    slug = strip_diacritics((text or "").lower())
    slug = _NON_SLUG_RUN.sub("-", slug).strip("-")
    return slug[:max_length].strip("-")


def normalize_name(name: str) -> str:
    """Comparison key for venue names: lowercase alphanumerics only."""
    return _NON_ALNUM.sub("", strip_diacritics((name or "").lower()))
