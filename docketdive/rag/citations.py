"""Case-name and neutral-citation detection for South African law."""

from __future__ import annotations

import re
from collections.abc import Iterable

import structlog

from .models import ContextBundle

logger = structlog.get_logger(__name__)

# Lowercase particles that open Afrikaans and Dutch surnames (van, du, de ...)
_PARTICLES = r"(?:van|von|de|der|den|du|le|la|ver|te)\b"
_NAME_WORD = rf"(?:[A-Z][\w'&-]*|{_PARTICLES})"
_PARTY = rf"{_NAME_WORD}(?:\s+{_NAME_WORD})*"

# "Van Meyeren v Cloete", "S v Makwanyane", "Minister of Safety and Security v Van Duivenboden"
CASE_NAME_PATTERN = re.compile(
    rf"\b((?:[A-Z][\w'&-]*|{_PARTICLES}\s+[A-Z][\w'&-]*)(?:\s+(?:(?:of|and|for)\b|{_NAME_WORD}))*?)"
    rf"\s+v\.?\s+"
    rf"({_PARTY})"
)

# "smith v jones", "van meyeren v cloete": one party word either side of a bare v
CASUAL_CASE_NAME_PATTERN = re.compile(
    rf"\b(?:({_PARTICLES})\s+)?([a-z][a-z'&-]*)\s+v\.?\s+(?:({_PARTICLES})\s+)?([a-z][a-z'&-]*)\b",
    re.IGNORECASE,
)

# "[2020] ZASCA 100", "[1995] ZACC 3"
NEUTRAL_CITATION_PATTERN = re.compile(r"\[(\d{4})\]\s+ZA[A-Z]{2,8}\s+\d+")

# Minimum party-name length for a partial match to count
MIN_PARTY_CHARS = 4

_TRAILING_CONNECTORS = re.compile(r"(?:\s+(?:of|and|for))+$")

# Capitalised sentence openers that are not part of a party name
_LEADING_WORDS = frozenset(
    {
        "About", "According", "Did", "Discuss", "Does", "Explain", "How", "In",
        "Is", "Per", "See", "Summarise", "Summarize", "Tell", "The", "Under",
        "Was", "What", "Why",
    }
)


def normalize(text: str) -> str:
    """Lowercase, drop dots and collapse whitespace for containment checks."""
    return " ".join(text.lower().replace(".", "").split())


def find_case_name(text: str) -> str | None:
    """Return the first case name (``X v Y``) mentioned in text, if any.

    Properly capitalised names are matched in full. Queries typed without
    capitals fall back to the single party word on each side of ``v``.
    """
    match = CASE_NAME_PATTERN.search(text)
    if match is not None:
        return _clean_case_name(match.group(1), match.group(2))

    match = CASUAL_CASE_NAME_PATTERN.search(text)
    if match is None:
        return None
    first = _casual_party(match.group(1), match.group(2))
    second = _casual_party(match.group(3), match.group(4))
    return f"{first} v {second}"


def _casual_party(particle: str | None, word: str) -> str:
    name = word.capitalize()
    return f"{particle.lower()} {name}" if particle else name


def extract_case_names(text: str) -> list[str]:
    """All distinct case names in text, in order of first appearance."""
    names: list[str] = []
    for match in CASE_NAME_PATTERN.finditer(text):
        name = _clean_case_name(match.group(1), match.group(2))
        if name not in names:
            names.append(name)
    return names


def extract_neutral_citations(text: str) -> list[str]:
    """All distinct neutral citations in text, in order of first appearance."""
    citations: list[str] = []
    for match in NEUTRAL_CITATION_PATTERN.finditer(text):
        citation = " ".join(match.group(0).split())
        if citation not in citations:
            citations.append(citation)
    return citations


def _clean_case_name(first: str, second: str) -> str:
    words = _TRAILING_CONNECTORS.sub("", first.strip()).split()
    while len(words) > 1 and words[0] in _LEADING_WORDS:
        words.pop(0)
    second = _TRAILING_CONNECTORS.sub("", second.strip())
    return f"{' '.join(words)} v {second}"


def _bundle_texts(bundle: ContextBundle) -> list[str]:
    """Normalized title, citation and content of each bundled passage."""
    return [
        normalize(" ".join((p.metadata.title, p.metadata.citation, p.content)))
        for p in bundle.passages
    ]


def case_in_bundle(case_name: str, bundle: ContextBundle) -> bool:
    """Whether a case appears in the bundle.

    True when the full name occurs in a passage, or when every party name
    long enough to be distinctive occurs in the same passage.
    """
    texts = _bundle_texts(bundle)
    if not texts:
        return False

    full = normalize(case_name)
    if any(full in text for text in texts):
        return True

    parties = [p.strip() for p in full.split(" v ")]
    distinctive = [p for p in parties if len(p) >= MIN_PARTY_CHARS]
    if not distinctive:
        return False
    return any(all(p in text for p in distinctive) for text in texts)


def unverified_citations(answer: str, bundle: ContextBundle) -> list[str]:
    """Case names and neutral citations in an answer that no passage supports.

    Args:
        answer: Full generated answer text
        bundle: The context the answer was grounded on

    Returns:
        Citations the model produced without evidence, for the response metadata
    """
    texts = _bundle_texts(bundle)
    unverified = [name for name in extract_case_names(answer) if not case_in_bundle(name, bundle)]
    unverified.extend(
        citation
        for citation in extract_neutral_citations(answer)
        if not any(normalize(citation) in text for text in texts)
    )
    if unverified:
        logger.warning("unverified_citations_detected", count=len(unverified), citations=unverified)
    return unverified


def mentions_any(needles: Iterable[str], bundle: ContextBundle) -> bool:
    """Whether any of the given phrases occurs in a bundled passage."""
    texts = _bundle_texts(bundle)
    return any(normalize(n) in text for n in needles if n for text in texts)
