"""Compose the model prompt from guardrails, context and conversation."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date

import structlog

from config.prompts import (
    BASE_PREAMBLE,
    CONTEXT_TEMPLATE,
    DEFAULT_LANGUAGE,
    GROUNDED_INSTRUCTIONS,
    LANGUAGE_DIRECTIVES,
    LEGAL_AID_INSTRUCTIONS,
    UNGROUNDED_INSTRUCTIONS,
)

from .models import ChatMessage, ContextBundle, ConversationTurn, Prompt, Query, RetrievedPassage

logger = structlog.get_logger(__name__)


def format_passage(index: int, passage: RetrievedPassage) -> str:
    """Render one passage tagged with its citation metadata.

    Example:
        [Source 1] Van Meyeren v Cloete | [2020] ZASCA 100 | Supreme Court of Appeal | https://...
        <passage text>
    """
    meta = passage.metadata
    fields = [passage.label] + [f for f in (meta.citation, meta.court, meta.url) if f]
    # label falls back to the url, which must not be repeated
    fields = list(dict.fromkeys(fields))
    return f"[Source {index}] {' | '.join(fields)}\n{passage.content}"


def format_context(bundle: ContextBundle) -> str:
    """Serialize every passage of a bundle, numbered from 1."""
    return "\n\n".join(
        format_passage(i, passage) for i, passage in enumerate(bundle.passages, start=1)
    )


def resolve_language(language: str | None) -> str:
    """Map a requested language to a supported code, defaulting to English."""
    code = (language or "").strip().lower()
    if code in LANGUAGE_DIRECTIVES:
        return code
    return DEFAULT_LANGUAGE


class PromptBuilder:
    """Builds the prompt in a fixed order.

    System message:
    (a) preamble with the grounded or no-sources instructions
    (b) language directive (none for English)
    (c) legal-aid directive when requested
    (d) the numbered sources
    Then the conversation history, oldest first, and the current query last.
    """

    def __init__(
        self,
        max_history_turns: int = 10,
        history_char_budget: int = 5600,
        today: Callable[[], date] = date.today,
    ):
        self.max_history_turns = max_history_turns
        self.history_char_budget = history_char_budget
        self._today = today

    def build(
        self,
        query: str,
        history: Sequence[ConversationTurn],
        bundle: ContextBundle,
        language: str | None = DEFAULT_LANGUAGE,
        legal_aid: bool = False,
    ) -> Prompt:
        """Build a model-ready prompt.

        Args:
            query: Current user question
            history: Prior turns, oldest first
            bundle: Grounding context; an empty bundle selects the refusal preamble
            language: Requested response language code
            legal_aid: Whether legal-aid mode is on

        Returns:
            Prompt with system instruction and ordered messages
        """
        sections = [BASE_PREAMBLE.format(current_date=self._today().strftime("%d %B %Y"))]
        sections.append(UNGROUNDED_INSTRUCTIONS if bundle.is_empty else GROUNDED_INSTRUCTIONS)

        code = resolve_language(language)
        if code != DEFAULT_LANGUAGE:
            sections.append(LANGUAGE_DIRECTIVES[code])

        if legal_aid:
            sections.append(LEGAL_AID_INSTRUCTIONS)

        if not bundle.is_empty:
            sections.append(CONTEXT_TEMPLATE.format(formatted_passages=format_context(bundle)))

        messages = [
            ChatMessage(role=turn.role, content=turn.content)
            for turn in self.select_history(history)
        ]
        messages.append(ChatMessage(role="user", content=query.strip()))

        logger.debug(
            "prompt_built",
            grounded=not bundle.is_empty,
            language=code,
            legal_aid=legal_aid,
            history_turns=len(messages) - 1,
        )
        return Prompt(system="\n".join(s.strip("\n") for s in sections), messages=messages)

    def build_for(self, query: Query, bundle: ContextBundle) -> Prompt:
        """Build the prompt for a Query."""
        return self.build(
            query.text,
            query.history,
            bundle,
            language=query.language,
            legal_aid=query.legal_aid_mode,
        )

    def select_history(self, history: Sequence[ConversationTurn]) -> list[ConversationTurn]:
        """Keep the most recent turns that fit the turn and character limits.

        Oldest turns are dropped first; order is preserved.
        """
        if self.max_history_turns <= 0:
            return []
        recent = [t for t in history if t.content.strip()][-self.max_history_turns :]
        kept: list[ConversationTurn] = []
        used = 0
        for turn in reversed(recent):
            if used + len(turn.content) > self.history_char_budget:
                break
            kept.append(turn)
            used += len(turn.content)
        kept.reverse()
        return kept
