"""Context-aware rewriting of follow-up questions before retrieval.

A short follow-up such as "what about the witnesses?" embeds poorly on its
own. When the recent conversation has an obvious legal topic, the topic (or
failing that, the Act under discussion) is appended to the text that gets
embedded. Grounding checks and the prompt still see the original question.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Sequence
from typing import Optional

import structlog

from .models import ConversationTurn

logger = structlog.get_logger(__name__)

RECENT_TURNS = 10
RECENT_CONTEXT_CHARS = 800
MAX_FOLLOW_UP_CHARS = 80

QUESTION_START_PATTERN = re.compile(
    r"^(what|how|when|where|who|why|which|can|could|should|would|is|are|does|do|did"
    r"|please|expand|explain|tell|more)",
    re.IGNORECASE,
)
LEGAL_ANCHOR_PATTERN = re.compile(
    r"\b(act|section|case|court|law|statute|constitution)", re.IGNORECASE
)

# Checked in order; the first group present in the context supplies the topic
TOPIC_PATTERNS = (
    re.compile(r"\b(will|wills|testament|testamentary|testate|intestate)\b", re.IGNORECASE),
    re.compile(r"\b(contract|contracts|agreement|breach|remedy|remedies)\b", re.IGNORECASE),
    re.compile(r"\b(marriage|divorce|matrimonial|spouse|marital)\b", re.IGNORECASE),
    re.compile(r"\b(property|estate|inheritance|heir|beneficiary)\b", re.IGNORECASE),
    re.compile(r"\b(witness|witnesses|testator|executor|commissioner)\b", re.IGNORECASE),
    re.compile(r"\b(tenant|landlord|lease|rental|housing)\b", re.IGNORECASE),
    re.compile(r"\b(delict|negligence|liability|damages)\b", re.IGNORECASE),
    re.compile(r"\b(criminal|crime|offense|sentence|conviction)\b", re.IGNORECASE),
)
ACT_NAME_PATTERN = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s+Act\b")


def conversation_context(history: Sequence[ConversationTurn]) -> str:
    """Render the most recent turns as ``User: ...`` / ``Assistant: ...`` lines."""
    lines = []
    for turn in list(history)[-RECENT_TURNS:]:
        speaker = "User" if turn.role == "user" else "Assistant"
        lines.append(f"{speaker}: {turn.content}")
    return "\n".join(lines)


def is_follow_up(text: str) -> bool:
    """Short questions that open with a question word or lack a legal anchor."""
    stripped = text.strip()
    if len(stripped) >= MAX_FOLLOW_UP_CHARS:
        return False
    return bool(QUESTION_START_PATTERN.match(stripped)) or not LEGAL_ANCHOR_PATTERN.search(
        stripped
    )


def main_topic(context: str) -> Optional[str]:
    """Most frequent term of the first topic group found in the context."""
    for pattern in TOPIC_PATTERNS:
        matches = [m.lower() for m in pattern.findall(context)]
        if matches:
            # Counter keeps first-seen order on ties
            return Counter(matches).most_common(1)[0][0]
    return None


def enrich_query(text: str, history: Sequence[ConversationTurn]) -> str:
    """Return the text to embed for a question asked within a conversation.

    Args:
        text: The user's question
        history: Prior turns, oldest first

    Returns:
        ``"<text> regarding <topic>"`` or ``"<text> under <Name> Act"`` for a
        follow-up question with a recognisable context, otherwise ``text``
        unchanged.
    """
    if not history or not is_follow_up(text):
        return text

    recent = conversation_context(history)[-RECENT_CONTEXT_CHARS:]

    topic = main_topic(recent)
    if topic is not None:
        logger.info("query_enriched", topic=topic)
        return f"{text} regarding {topic}"

    act = ACT_NAME_PATTERN.search(recent)
    if act is not None:
        logger.info("query_enriched", act=act.group(0))
        return f"{text} under {act.group(0)}"

    return text
