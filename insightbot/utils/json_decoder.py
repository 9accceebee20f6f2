"""
Defensive JSON Decoder

LLM responses that should be JSON often arrive wrapped in markdown fences,
surrounded by prose, written with single quotes or annotated with comments.
decode_llm_json() runs a fixed sequence of cleanup tiers and returns the
caller's fallback when none of them yields a JSON object. It never raises.

Usage:
    from insightbot.utils.json_decoder import decode_llm_json, decode_model

    payload = decode_llm_json(response.content, fallback={})
    strategy = decode_model(response.content, QueryStrategy, fallback=None)
"""

import json
import logging
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*")
_LINE_COMMENT_PATTERN = re.compile(r"(?m)(?<![:\"'])//.*$")
_BLOCK_COMMENT_PATTERN = re.compile(r"/\*[\s\S]*?\*/")


def _strip_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text).strip()


def _slice_object(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text


def _normalize_quotes(text: str) -> str:
    return text.replace("'", '"')


def _strip_comments(text: str) -> str:
    text = _BLOCK_COMMENT_PATTERN.sub("", text)
    return _LINE_COMMENT_PATTERN.sub("", text)


def _loads_object(candidate: str) -> dict[str, Any] | None:
    try:
        payload = json.loads(candidate)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    if isinstance(payload, dict):
        return payload
    return None


def decode_llm_json(text: Any, fallback: Any = None) -> Any:
    """
    Decode a JSON object from raw LLM output.

    Tiers, in order:
        1. strip code fences, slice first '{' to last '}', parse
        2. same text with single quotes replaced by double quotes
        3. same text with // and /* */ comments removed
        4. comments removed and quotes normalized

    Args:
        text: Raw model output (non-strings are treated as undecodable)
        fallback: Value returned unchanged when every tier fails

    Returns:
        The decoded dict, or ``fallback``
    """
    if not isinstance(text, str) or not text.strip():
        logger.debug("Nothing to decode, using fallback", extra={"input_type": type(text).__name__})
        return fallback

    cleaned = _slice_object(_strip_fences(text.strip()))
    uncommented = _strip_comments(cleaned)
    tiers = (
        ("raw", cleaned),
        ("quotes", _normalize_quotes(cleaned)),
        ("comments", uncommented),
        ("comments+quotes", _normalize_quotes(uncommented)),
    )

    for tier, candidate in tiers:
        payload = _loads_object(candidate)
        if payload is not None:
            if tier != "raw":
                logger.debug("Decoded LLM JSON after cleanup", extra={"tier": tier})
            return payload

    logger.warning(
        "Could not decode LLM JSON, using fallback",
        extra={"preview": text[:200]},
    )
    return fallback


def decode_model(text: Any, model_cls: type[ModelT], fallback: Any = None) -> ModelT | Any:
    """
    Decode LLM output and validate it against a pydantic model.

    Returns ``fallback`` when decoding or validation fails.
    """
    payload = decode_llm_json(text, None)
    if payload is None:
        return fallback
    try:
        return model_cls.model_validate(payload)
    except ValidationError as e:
        logger.warning(
            f"LLM JSON does not match {model_cls.__name__}, using fallback",
            extra={"errors": e.errors(include_url=False)[:5]},
        )
        return fallback
