"""Plain-text cleanup for catalog values and LLM prose."""

import html
import re

TAG_PATTERN = re.compile(r"<[^>]*>")
WILDCARD_PATTERN = re.compile(r"[%*]")
WHITESPACE_PATTERN = re.compile(r"\s+")
COMPACT_PATTERN = re.compile(r"[\s\-]")

MIN_TERM_LENGTH = 3


def _normalize_once(value: str) -> str:
    value = TAG_PATTERN.sub("", value)
    value = html.unescape(value)
    return value.replace("\xa0", " ").strip()


def normalize_text(value: str) -> str:
    """
    Strip markup tags and decode HTML entities (named, decimal and hex).

    Decoding can surface new tags or entities (``&amp;lt;b&amp;gt;``), so the
    cleanup is repeated until the text stops changing. Every pass either
    shortens the string or leaves it untouched, which bounds the loop and
    makes the function idempotent.
    """
    if not isinstance(value, str):
        return value
    current = value
    while True:
        cleaned = _normalize_once(current)
        if cleaned == current:
            return cleaned
        current = cleaned


def normalize_search_term(value: str) -> str:
    """Canonical search term: wildcard markers removed, whitespace collapsed."""
    value = WILDCARD_PATTERN.sub("", str(value))
    return WHITESPACE_PATTERN.sub(" ", value).strip()


def compact_term(value: str) -> str:
    """Term with whitespace and hyphens removed ("PR-1422" -> "PR1422")."""
    return COMPACT_PATTERN.sub("", value)


def extract_search_terms(values: list) -> list[str]:
    """Normalize, drop short terms and de-duplicate case-insensitively, keeping order."""
    terms: list[str] = []
    seen: set[str] = set()
    for raw in values:
        if raw is None:
            continue
        term = normalize_search_term(raw)
        if len(term) < MIN_TERM_LENGTH or term.lower() in seen:
            continue
        seen.add(term.lower())
        terms.append(term)
    return terms
