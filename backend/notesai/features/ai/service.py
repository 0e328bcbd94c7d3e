"""
AI feature: Service layer for text summarization and image analysis.

Both calls are single round-trips to the configured chat model with no retries.
A summary that is not valid JSON is an upstream error; an image analysis that is
not valid JSON is returned as raw text instead.
"""

import base64
import json
import logging
import re
from datetime import datetime, timezone

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from supabase import Client

from notesai.core.exceptions import UpstreamError
from notesai.core.llm_provider import extract_text
from notesai.features.ai.prompts import build_image_analysis_prompt, build_summarize_prompt

logger = logging.getLogger(__name__)

ANALYZED_IMAGES_TABLE = "analyzed_images"

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")


def clean_model_output(raw: str, collapse_whitespace: bool = False) -> str:
    """Strip a ```json ... ``` wrapper (and optionally squash whitespace)."""
    text = _FENCE_START.sub("", raw.strip())
    text = _FENCE_END.sub("", text)
    if collapse_whitespace:
        text = re.sub(r"\s+", " ", text)
    return text.strip()


class AIService:
    """Thin proxy to the chat model, plus the image analysis audit trail."""

    def __init__(self, llm: BaseChatModel | None, db: Client | None = None):
        self.llm = llm
        self.db = db

    async def _ask(self, content: str | list[dict]) -> str:
        try:
            response = await self.llm.ainvoke([HumanMessage(content=content)])
        except Exception as e:
            logger.error(f"AI request failed: {e}")
            raise UpstreamError("AI service request failed", detail=str(e))
        return extract_text(response.content)

    async def summarize_text(self, text: str, summary_length: str = "medium") -> dict:
        """Summarize text into {summary, keyPoints, ...}.

        Raises:
            UpstreamError: If the model fails or its answer is not JSON.
        """
        raw = await self._ask(build_summarize_prompt(text, summary_length))
        cleaned = clean_model_output(raw)
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error(f"Could not parse summary JSON: {e}")
            raise UpstreamError("AI response could not be processed")

    async def analyze_image(
        self,
        user_id: str,
        image_bytes: bytes,
        mime_type: str,
        user_prompt: str,
        original_name: str | None = None,
    ) -> dict:
        """Describe an image in answer to the user's prompt and record the analysis."""
        encoded = base64.b64encode(image_bytes).decode("ascii")
        content = [
            {"type": "text", "text": build_image_analysis_prompt(user_prompt)},
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
        ]

        raw = await self._ask(content)
        cleaned = clean_model_output(raw, collapse_whitespace=True)
        try:
            analysis = json.loads(cleaned)
        except json.JSONDecodeError:
            analysis = {"raw_text": cleaned}

        self._record_analysis(user_id, original_name, len(image_bytes), mime_type, user_prompt, analysis)
        return analysis

    def _record_analysis(
        self,
        user_id: str,
        original_name: str | None,
        file_size: int,
        mime_type: str,
        user_prompt: str,
        analysis: dict,
    ) -> None:
        if self.db is None:
            return
        try:
            self.db.table(ANALYZED_IMAGES_TABLE).insert({
                "user_id": user_id,
                "original_name": original_name or "image",
                "file_size": file_size,
                "mime_type": mime_type,
                "user_prompt": user_prompt,
                "analysis_result": analysis,
                "analyzed_at": datetime.now(timezone.utc).isoformat(),
            }).execute()
        except Exception as e:
            logger.warning(f"Could not record image analysis for {user_id}: {e}")

    def analysis_history(self, user_id: str, page: int, page_size: int) -> tuple[list[dict], int]:
        """A user's past image analyses, newest first."""
        offset = (page - 1) * page_size
        result = (
            self.db.table(ANALYZED_IMAGES_TABLE)
            .select("*", count="exact")
            .eq("user_id", user_id)
            .order("analyzed_at", desc=True)
            .range(offset, offset + page_size - 1)
            .execute()
        )
        return result.data, result.count or 0
