"""Retrieval-augmented chat: assembly, grounding, prompting and streaming."""

from .assembler import NO_PASSAGES_ABOVE_THRESHOLD, RetrievalAssembler
from .followup import enrich_query
from .grounding import GroundingResult, verify_grounding
from .models import (
    ContextBundle,
    ConversationTurn,
    PassageMetadata,
    Prompt,
    ProviderConfig,
    ProviderName,
    Query,
    RetrievedPassage,
    StreamEvent,
    encode_event,
)
from .pipeline import ChatPipeline, PreparedChat
from .prompt_builder import PromptBuilder
from .streamer import ResponseStreamer

__all__ = [
    # Models
    "Query",
    "ConversationTurn",
    "RetrievedPassage",
    "PassageMetadata",
    "ContextBundle",
    "Prompt",
    "ProviderName",
    "ProviderConfig",
    "StreamEvent",
    "encode_event",
    # Pipeline stages
    "RetrievalAssembler",
    "NO_PASSAGES_ABOVE_THRESHOLD",
    "enrich_query",
    "GroundingResult",
    "verify_grounding",
    "PromptBuilder",
    "ResponseStreamer",
    "ChatPipeline",
    "PreparedChat",
]
