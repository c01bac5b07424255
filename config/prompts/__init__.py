"""Centralized prompt management for DocketDive.

Prompts are organized by functional area:
- generation: System preamble, grounding rules, language and legal-aid directives
- refusals: Canned answers for queries with no supporting evidence

Usage:
    from config.prompts import BASE_PREAMBLE, LANGUAGE_DIRECTIVES
    from config.prompts.refusals import CASE_NOT_FOUND
"""

from __future__ import annotations

from .generation import (
    BASE_PREAMBLE,
    CONTEXT_TEMPLATE,
    DEFAULT_LANGUAGE,
    GROUNDED_INSTRUCTIONS,
    LANGUAGE_DIRECTIVES,
    LANGUAGE_NAMES,
    LEGAL_AID_INSTRUCTIONS,
    UNGROUNDED_INSTRUCTIONS,
)
from .refusals import CASE_NOT_FOUND, TOPIC_NOT_FOUND, UNRECOGNISED_CONCEPT

__all__ = [
    # Generation prompts
    "BASE_PREAMBLE",
    "GROUNDED_INSTRUCTIONS",
    "UNGROUNDED_INSTRUCTIONS",
    "CONTEXT_TEMPLATE",
    "LEGAL_AID_INSTRUCTIONS",
    "LANGUAGE_DIRECTIVES",
    "LANGUAGE_NAMES",
    "DEFAULT_LANGUAGE",
    # Refusals
    "CASE_NOT_FOUND",
    "UNRECOGNISED_CONCEPT",
    "TOPIC_NOT_FOUND",
]
