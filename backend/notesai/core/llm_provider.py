"""
Chat model used by the AI summarize/analyze endpoints.

The provider is picked from settings (LLM_PROVIDER=gemini | openai | groq).
Each request is a single round trip: provider-side retries are turned off, and
failures surface to the caller as UpstreamError (see features/ai/service.py).
"""

from langchain_core.language_models import BaseChatModel

from notesai.config import Settings, get_settings

SUPPORTED_PROVIDERS = ("gemini", "openai", "groq")


def create_llm(settings: Settings | None = None) -> BaseChatModel:
    """Build the configured chat model. Must support image input for analyze-image.

    Raises:
        ValueError: If LLM_PROVIDER is not one of SUPPORTED_PROVIDERS.
    """
    settings = settings or get_settings()
    common = {
        "model": settings.LLM_MODEL,
        "temperature": settings.LLM_TEMPERATURE,
        "max_retries": 0,
    }

    match settings.LLM_PROVIDER:
        case "gemini":
            from langchain_google_genai import ChatGoogleGenerativeAI

            return ChatGoogleGenerativeAI(google_api_key=settings.LLM_API_KEY, **common)

        case "openai":
            from langchain_openai import ChatOpenAI

            return ChatOpenAI(api_key=settings.LLM_API_KEY, **common)

        case "groq":
            from langchain_groq import ChatGroq

            return ChatGroq(api_key=settings.LLM_API_KEY, **common)

        case other:
            raise ValueError(
                f"Unknown LLM provider '{other}'; expected one of {', '.join(SUPPORTED_PROVIDERS)}"
            )


def extract_text(content) -> str:
    """Flatten a chat model's message content into plain text.

    Gemini may return a list of parts (text / thinking blocks) instead of a string;
    thinking parts are dropped.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict):
                if item.get("type") == "thinking":
                    continue
                if "text" in item:
                    parts.append(item["text"])
            elif isinstance(item, str):
                parts.append(item)
        return "".join(parts)
    return str(content)
