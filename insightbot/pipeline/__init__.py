"""
Pipeline package for InsightBot.

Contains the fast-path classifier, the conversation context and the
LangGraph orchestrator (insightbot.pipeline.orchestrator) that connects
all agents into a complete pipeline.
"""

from insightbot.pipeline.fast_path import FastPathCategory, FastPathClassifier, FastPathMatch
from insightbot.pipeline.session_context import (
    ContextualReferences,
    ConversationContext,
    extract_references,
)

__all__ = [
    "ContextualReferences",
    "ConversationContext",
    "FastPathCategory",
    "FastPathClassifier",
    "FastPathMatch",
    "extract_references",
]
