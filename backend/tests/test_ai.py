"""
Tests for the AI proxy: output cleanup, summarization, image analysis with its
raw-text fallback and audit rows, and the HTTP surface.
"""

import asyncio
import json

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from factories import create_test_user, register_user
from notesai.config import get_settings
from notesai.core.dependencies import get_llm
from notesai.core.exceptions import UpstreamError
from notesai.core.llm_provider import create_llm, extract_text
from notesai.features.ai.prompts import build_summarize_prompt
from notesai.features.ai.service import AIService, clean_model_output
from notesai.main import app

LONG_TEXT = "Python is a programming language that lets you work quickly and integrate systems. " * 2
SUMMARY = {"originalLength": len(LONG_TEXT), "summary": "Python is fast to work with.", "keyPoints": ["fast"], "summaryLength": "short"}


class BrokenModel:
    async def ainvoke(self, messages):
        raise RuntimeError("quota exceeded")


def fenced(payload: dict) -> str:
    return f"```json\n{json.dumps(payload)}\n```"


# -- Output helpers --

class TestOutputCleanup:
    def test_strips_json_fence(self):
        assert clean_model_output('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_bare_fence(self):
        assert clean_model_output('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_collapses_whitespace(self):
        assert clean_model_output('{"a":\n\n   1}', collapse_whitespace=True) == '{"a": 1}'

    def test_plain_text_untouched(self):
        assert clean_model_output("  hello  ") == "hello"

    def test_extract_text_drops_thinking_parts(self):
        content = [{"type": "thinking", "thinking": "hmm"}, {"type": "text", "text": "answer"}, " more"]
        assert extract_text(content) == "answer more"

    def test_unknown_provider(self):
        settings = get_settings().model_copy(update={"LLM_PROVIDER": "bogus"})
        with pytest.raises(ValueError):
            create_llm(settings)

    def test_summarize_prompt_mentions_length_and_text(self):
        prompt = build_summarize_prompt(LONG_TEXT, "long")
        assert "2-3 paragraphs" in prompt
        assert LONG_TEXT in prompt
        assert f'"originalLength": {len(LONG_TEXT)}' in prompt


# -- Service --

class TestSummarize:
    def test_parses_fenced_json(self):
        service = AIService(FakeListChatModel(responses=[fenced(SUMMARY)]))
        assert asyncio.run(service.summarize_text(LONG_TEXT, "short")) == SUMMARY

    def test_non_json_answer_is_upstream_error(self):
        service = AIService(FakeListChatModel(responses=["Sorry, I can't help with that."]))
        with pytest.raises(UpstreamError):
            asyncio.run(service.summarize_text(LONG_TEXT))

    def test_provider_failure_is_upstream_error(self):
        service = AIService(BrokenModel())
        with pytest.raises(UpstreamError) as exc:
            asyncio.run(service.summarize_text(LONG_TEXT))
        assert exc.value.detail == "quota exceeded"


class TestAnalyzeImage:
    def test_json_answer_is_returned_and_recorded(self, fake_db, png_bytes):
        user_id = create_test_user(fake_db)
        analysis = {"description": "A red square", "objects": ["square"]}
        service = AIService(FakeListChatModel(responses=[fenced(analysis)]), fake_db)

        result = asyncio.run(service.analyze_image(user_id, png_bytes, "image/png", "What is it?", "red.png"))

        assert result == analysis
        rows = fake_db.rows("analyzed_images")
        assert len(rows) == 1
        assert rows[0]["user_id"] == user_id
        assert rows[0]["original_name"] == "red.png"
        assert rows[0]["file_size"] == len(png_bytes)
        assert rows[0]["analysis_result"] == analysis

    def test_non_json_answer_falls_back_to_raw_text(self, fake_db, png_bytes):
        user_id = create_test_user(fake_db)
        service = AIService(FakeListChatModel(responses=["It is a\n\nred   square."]), fake_db)

        result = asyncio.run(service.analyze_image(user_id, png_bytes, "image/png", "What is it?"))

        assert result == {"raw_text": "It is a red square."}
        assert fake_db.rows("analyzed_images")[0]["original_name"] == "image"

    def test_history_is_per_user(self, fake_db, png_bytes):
        ada = create_test_user(fake_db, "ada@example.com")
        grace = create_test_user(fake_db, "grace@example.com")
        service = AIService(FakeListChatModel(responses=['{"n": 1}', '{"n": 2}', '{"n": 3}']), fake_db)
        for user_id in (ada, ada, grace):
            asyncio.run(service.analyze_image(user_id, png_bytes, "image/png", "?"))

        history, total = service.analysis_history(ada, 1, 10)
        assert total == 2
        assert {row["user_id"] for row in history} == {ada}


# -- HTTP --

@pytest.fixture
def with_llm():
    def install(responses):
        app.dependency_overrides[get_llm] = lambda: FakeListChatModel(responses=responses)
    return install


class TestAIRoutes:
    def test_summarize(self, client, with_llm):
        user = register_user(client)
        with_llm([fenced(SUMMARY)])

        response = client.post("/api/ai/summarize-text", headers=user["headers"], json={"text": LONG_TEXT, "summary_length": "short"})

        assert response.status_code == 200
        assert response.json()["data"]["summary"] == SUMMARY["summary"]

    def test_short_text_is_rejected(self, client, with_llm):
        user = register_user(client)
        with_llm([fenced(SUMMARY)])

        response = client.post("/api/ai/summarize-text", headers=user["headers"], json={"text": "too short"})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "text"

    def test_unknown_length_tier(self, client, with_llm):
        user = register_user(client)
        with_llm([fenced(SUMMARY)])
        response = client.post("/api/ai/summarize-text", headers=user["headers"], json={"text": LONG_TEXT, "summary_length": "huge"})
        assert response.status_code == 400

    def test_unparseable_summary_is_bad_gateway(self, client, with_llm):
        user = register_user(client)
        with_llm(["not json"])
        response = client.post("/api/ai/summarize-text", headers=user["headers"], json={"text": LONG_TEXT})
        assert response.status_code == 502
        assert response.json()["success"] is False

    def test_unconfigured_model_is_bad_gateway(self, client):
        user = register_user(client)
        response = client.post("/api/ai/summarize-text", headers=user["headers"], json={"text": LONG_TEXT})
        assert response.status_code == 502

    def test_requires_login(self, client, with_llm):
        with_llm([fenced(SUMMARY)])
        assert client.post("/api/ai/summarize-text", json={"text": LONG_TEXT}).status_code == 401

    def test_analyze_image_and_history(self, client, with_llm, png_bytes):
        user = register_user(client)
        with_llm([fenced({"description": "A red square"})])

        response = client.post(
            "/api/ai/analyze-image",
            headers=user["headers"],
            files={"image": ("red.png", png_bytes, "image/png")},
            data={"user_prompt": "Describe it"},
        )
        assert response.status_code == 200
        assert response.json()["data"] == {"description": "A red square"}

        history = client.get("/api/ai/analysis-history", headers=user["headers"]).json()["data"]
        assert history["pagination"]["total"] == 1
        assert history["analyses"][0]["user_prompt"] == "Describe it"

    def test_analyze_image_rejects_oversized_file(self, client, with_llm):
        user = register_user(client)
        with_llm(["{}"])
        response = client.post(
            "/api/ai/analyze-image",
            headers=user["headers"],
            files={"image": ("big.png", b"0" * (5 * 1024 * 1024 + 1), "image/png")},
        )
        assert response.status_code == 400
        assert "too large" in response.json()["message"]
