"""Select the passages that ground a prompt."""

from __future__ import annotations

import structlog

from .models import ContextBundle, RetrievedPassage

logger = structlog.get_logger(__name__)

NO_PASSAGES_ABOVE_THRESHOLD = "no_passages_above_threshold"


class RetrievalAssembler:
    """Filter, deduplicate and budget raw search hits into a ContextBundle.

    Steps:
    1. Drop passages scoring below ``min_similarity``.
    2. Keep only the highest-scoring passage per source document.
    3. Add passages in descending score order until ``max_passages`` is
       reached or the next passage would overflow ``char_budget``.
    4. If nothing survives, return an explicitly empty bundle.

    The result depends only on the input passages, so identical search
    results always produce identical bundles.
    """

    def __init__(
        self,
        min_similarity: float = 0.78,
        char_budget: int = 8000,
        max_passages: int = 4,
    ):
        if not 0.0 <= min_similarity <= 1.0:
            raise ValueError(f"min_similarity must be in [0, 1], got {min_similarity}")
        if char_budget < 1 or max_passages < 1:
            raise ValueError("char_budget and max_passages must be positive")
        self.min_similarity = min_similarity
        self.char_budget = char_budget
        self.max_passages = max_passages

    def assemble(self, passages: list[RetrievedPassage]) -> ContextBundle:
        """Build the context bundle for a set of search hits."""
        relevant = [p for p in passages if p.score >= self.min_similarity]
        unique = self._deduplicate(relevant)
        ranked = sorted(unique, key=lambda p: (-p.score, p.source_key))

        selected: list[RetrievedPassage] = []
        used = 0
        for passage in ranked:
            if len(selected) >= self.max_passages:
                break
            size = len(passage.content)
            if used + size > self.char_budget:
                if not selected:
                    # A single oversized passage is cut down rather than lost
                    passage = passage.model_copy(
                        update={"content": passage.content[: self.char_budget]}
                    )
                    selected.append(passage)
                break
            selected.append(passage)
            used += size

        logger.debug(
            "context_assembled",
            candidates=len(passages),
            above_threshold=len(relevant),
            unique_sources=len(unique),
            selected=len(selected),
        )

        if not selected:
            return ContextBundle.empty(NO_PASSAGES_ABOVE_THRESHOLD, self.char_budget)
        return ContextBundle(passages=tuple(selected), char_budget=self.char_budget)

    @staticmethod
    def _deduplicate(passages: list[RetrievedPassage]) -> list[RetrievedPassage]:
        """Keep the highest-scoring passage for each source."""
        best: dict[str, RetrievedPassage] = {}
        for passage in passages:
            current = best.get(passage.source_key)
            if current is None or passage.score > current.score:
                best[passage.source_key] = passage
        return list(best.values())
