"""
Chat model factory for the study agent.

The provider is picked from settings (LLM_PROVIDER / LLM_MODEL / LLM_API_KEY),
with per-call overrides so a caller can pin a different model for one graph.
Provider packages are imported lazily; only langchain-google-genai is a hard
dependency, the others come with the `openai` / `groq` extras.
"""

import logging

from langchain_core.language_models import BaseChatModel

from studyhub.config import get_settings

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("gemini", "openai", "groq")


def create_llm(
    provider: str | None = None,
    model: str | None = None,
    temperature: float | None = None,
) -> BaseChatModel:
    """Create the chat model the agent graph binds its tools to.

    Raises:
        ValueError: If the provider is not one of SUPPORTED_PROVIDERS.
    """
    settings = get_settings()
    provider = (provider or settings.LLM_PROVIDER).lower()
    model = model or settings.LLM_MODEL
    temperature = settings.LLM_TEMPERATURE if temperature is None else temperature

    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unknown LLM provider: '{provider}'. Supported: {', '.join(SUPPORTED_PROVIDERS)}"
        )

    logger.info(f"Creating chat model {provider}/{model}")

    if provider == "gemini":
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=settings.LLM_API_KEY,
            temperature=temperature,
        )

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=model, api_key=settings.LLM_API_KEY, temperature=temperature)

    from langchain_groq import ChatGroq

    return ChatGroq(model=model, api_key=settings.LLM_API_KEY, temperature=temperature)
