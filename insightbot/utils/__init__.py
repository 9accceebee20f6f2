"""Shared helpers."""

from insightbot.utils.json_decoder import decode_llm_json, decode_model

__all__ = ["decode_llm_json", "decode_model"]
