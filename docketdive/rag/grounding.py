"""Query-level checks that withdraw grounding before generation.

Retrieval similarity alone cannot tell that a passage about defamation is
not evidence for a specific, possibly invented, case. These checks compare
what the query asks for against what the bundle actually contains and,
where they disagree, replace the bundle with an explicitly empty one and
pick a canned refusal.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from config.prompts import CASE_NOT_FOUND, TOPIC_NOT_FOUND, UNRECOGNISED_CONCEPT

from .citations import case_in_bundle, find_case_name, mentions_any, normalize
from .models import ContextBundle

logger = structlog.get_logger(__name__)

CASE_NOT_IN_SOURCES = "case_not_in_sources"
UNRECOGNISED_CONCEPT_REASON = "unrecognised_concept"
TOPIC_NOT_IN_SOURCES = "topic_not_in_sources"

# Doctrines that do not exist in South African law but resemble real ones
FAKE_CONCEPT_PATTERN = re.compile(
    r"actio\s+de\s+(felinus|caninus|bovinus|equinus|serpentis)", re.IGNORECASE
)
TOPIC_QUERY_PATTERN = re.compile(
    r"what\s+(south\s+african\s+)?cases?\s+(deal|involve|concern|about)", re.IGNORECASE
)
TOPIC_EXTRACT_PATTERN = re.compile(
    r"cases?\s+(?:deal|involve|concern|about)\w*\s+(?:with\s+)?(.+?)(?:\?|$)", re.IGNORECASE
)

_TOPIC_STOPWORDS = frozenset({"the", "a", "an", "of", "in", "on", "to", "for", "and"})


@dataclass(frozen=True)
class GroundingResult:
    """Outcome of grounding verification for one query.

    Attributes:
        bundle: The bundle to prompt with (possibly replaced by an empty one)
        refusal: Canned answer to send instead of calling the model
        note: Short human-readable reason surfaced in response metadata
    """

    bundle: ContextBundle
    refusal: Optional[str] = None
    note: Optional[str] = None

    @property
    def refused(self) -> bool:
        return self.refusal is not None


def extract_topic(query: str) -> Optional[str]:
    """Pull the topic out of "what cases deal with X?" style queries."""
    if not TOPIC_QUERY_PATTERN.search(query):
        return None
    match = TOPIC_EXTRACT_PATTERN.search(query)
    if match is None:
        return None
    topic = match.group(1).strip().rstrip(".!")
    return topic or None


def _topic_in_bundle(topic: str, bundle: ContextBundle) -> bool:
    """The whole topic, or its first significant keyword, occurs in a passage."""
    needle = normalize(topic)
    keywords = [w for w in needle.split() if w not in _TOPIC_STOPWORDS and len(w) > 3]
    return mentions_any([needle, *keywords[:1]], bundle)


def verify_grounding(query: str, bundle: ContextBundle) -> GroundingResult:
    """Check that the bundle can support what the query asks about.

    Args:
        query: The user's question
        bundle: Context selected by the assembler

    Returns:
        GroundingResult with the bundle to use and, when the query has no
        supporting evidence and names a case, a fake doctrine or a case-law
        topic, a canned refusal.
    """
    case_name = find_case_name(query)
    fake_concept = FAKE_CONCEPT_PATTERN.search(query)
    topic = extract_topic(query)

    if fake_concept:
        logger.info("grounding_fake_concept", concept=fake_concept.group(0))
        bundle = ContextBundle.empty(UNRECOGNISED_CONCEPT_REASON, bundle.char_budget)
    elif case_name and not bundle.is_empty and not case_in_bundle(case_name, bundle):
        logger.info("grounding_case_not_in_sources", case_name=case_name)
        bundle = ContextBundle.empty(CASE_NOT_IN_SOURCES, bundle.char_budget)
    elif topic and not bundle.is_empty and not _topic_in_bundle(topic, bundle):
        logger.info("grounding_topic_not_in_sources", topic=topic)
        bundle = ContextBundle.empty(TOPIC_NOT_IN_SOURCES, bundle.char_budget)

    if not bundle.is_empty:
        return GroundingResult(bundle=bundle)

    if case_name:
        return GroundingResult(
            bundle=bundle,
            refusal=CASE_NOT_FOUND.format(case_name=case_name),
            note="Case not found in database",
        )
    if fake_concept:
        return GroundingResult(
            bundle=bundle,
            refusal=UNRECOGNISED_CONCEPT,
            note="Unrecognised legal concept",
        )
    if topic:
        return GroundingResult(
            bundle=bundle,
            refusal=TOPIC_NOT_FOUND,
            note="Topic not found in database",
        )
    # Nothing specific to refuse: the model answers under the ungrounded preamble
    return GroundingResult(bundle=bundle, note="No relevant sources found")
