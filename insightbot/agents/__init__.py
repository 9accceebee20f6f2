"""
InsightBot Agents Module

LLM-backed pipeline stages. Each agent declares a fallback value and
returns it when the LLM fails or answers with unusable output.

Available Agents:
    - BaseAgent: Abstract base class for all agents
    - IntentAgent: Request interpretation over the discovered catalog
    - QueryAgent: SQL drafting and execution through the QueryExecutor
    - AnalystAgent: Quantitative insights from query results
    - FormatterAgent: Chat-ready response text

Usage:
    from insightbot.agents import IntentAgent

    agent = IntentAgent(schema_cache, context, llm_provider=provider)
    output = await agent(IntentAgentInput(query="quantos leads temos?"))
"""

from insightbot.agents.analyst import AnalystAgent
from insightbot.agents.base import BaseAgent
from insightbot.agents.formatter import FormatterAgent
from insightbot.agents.intent import IntentAgent
from insightbot.agents.query import QueryAgent

__all__ = [
    "AnalystAgent",
    "BaseAgent",
    "FormatterAgent",
    "IntentAgent",
    "QueryAgent",
]
