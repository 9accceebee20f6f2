"""Unit tests for the defensive LLM JSON decoder."""

import pytest

from insightbot.models import Intent, QueryStrategy
from insightbot.utils.json_decoder import decode_llm_json, decode_model

CANONICAL = '{"analysis_type": "count", "tables_needed": ["qualified_leads"], "confidence": 0.9}'
EXPECTED = {"analysis_type": "count", "tables_needed": ["qualified_leads"], "confidence": 0.9}


class TestDecodeLLMJson:
    """Each cleanup tier yields the same object as the canonical JSON."""

    def test_plain_json(self):
        assert decode_llm_json(CANONICAL) == EXPECTED

    def test_fenced_json(self):
        assert decode_llm_json(f"```json\n{CANONICAL}\n```") == EXPECTED

    def test_fenced_without_language(self):
        assert decode_llm_json(f"```\n{CANONICAL}\n```") == EXPECTED

    def test_prose_around_object(self):
        text = f"Claro! Aqui está a análise:\n{CANONICAL}\nEspero ter ajudado."
        assert decode_llm_json(text) == EXPECTED

    def test_single_quotes(self):
        text = "{'analysis_type': 'count', 'tables_needed': ['qualified_leads'], 'confidence': 0.9}"
        assert decode_llm_json(text) == EXPECTED

    def test_line_and_block_comments(self):
        text = """{
          "analysis_type": "count", // contagem
          /* tabela detectada */
          "tables_needed": ["qualified_leads"],
          "confidence": 0.9
        }"""
        assert decode_llm_json(text) == EXPECTED

    def test_comments_and_single_quotes(self):
        text = """{
          'analysis_type': 'count', // contagem
          'tables_needed': ['qualified_leads'],
          'confidence': 0.9
        }"""
        assert decode_llm_json(text) == EXPECTED

    def test_urls_inside_strings_survive_comment_stripping(self):
        text = '{"source": "https://example.com/x", "n": 1}'
        assert decode_llm_json(text) == {"source": "https://example.com/x", "n": 1}

    @pytest.mark.parametrize("text", [None, "", "   ", 42, ["a"], "not json at all", "[1, 2, 3]"])
    def test_returns_fallback_when_undecodable(self, text):
        fallback = {"fallback": True}
        assert decode_llm_json(text, fallback) is fallback

    def test_default_fallback_is_none(self):
        assert decode_llm_json("{broken") is None


class TestDecodeModel:
    def test_validates_against_model(self):
        intent = decode_model(CANONICAL, Intent)

        assert isinstance(intent, Intent)
        assert intent.analysis_type == "count"
        assert intent.tables_needed == ["qualified_leads"]

    def test_validation_failure_returns_fallback(self):
        sentinel = object()
        assert decode_model('{"tables_needed": []}', Intent, sentinel) is sentinel

    def test_aliases_are_accepted(self):
        strategy = decode_model(
            '```json\n{"sql_query": "SELECT COUNT(*) FROM aula_views;", "query_type": "simple_count"}\n```',
            QueryStrategy,
        )

        assert strategy.query_text == "SELECT COUNT(*) FROM aula_views"
        assert strategy.query_kind == "simple_count"
