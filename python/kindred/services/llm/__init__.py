"""Model provider layer.

One capability interface (LLMAdapter.generate) with an implementation per
provider, selected by name through LLMRouter:

    from kindred.services.llm import LLMRouter, LLMRequest, Turn

    router = LLMRouter(httpx_client)
    request = LLMRequest(
        model_name="gpt-3.5-turbo",
        messages=[Turn(role="user", content="Hello!")],
        max_tokens=200,
    )
    response = await router.generate("openai", request, api_key="sk-...")

- Adapters are async using httpx.AsyncClient
- No retries inside adapters
- No DB access inside adapters
- No logging of request/response bodies
"""

from kindred.services.llm.adapter import LLMAdapter
from kindred.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from kindred.services.llm.gemini_adapter import GeminiAdapter
from kindred.services.llm.openai_adapter import OpenAIAdapter
from kindred.services.llm.prompt import MAX_HISTORY_TURNS, build_system_prompt, render_prompt
from kindred.services.llm.router import DEFAULT_TIMEOUT_S, LLMRouter
from kindred.services.llm.types import LLMRequest, LLMResponse, LLMUsage, Turn

__all__ = [
    # Core types
    "Turn",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
    # Adapters
    "LLMAdapter",
    "OpenAIAdapter",
    "GeminiAdapter",
    # Router
    "LLMRouter",
    "DEFAULT_TIMEOUT_S",
    # Errors
    "LLMError",
    "LLMErrorClass",
    "classify_provider_error",
    # Prompt rendering
    "build_system_prompt",
    "render_prompt",
    "MAX_HISTORY_TURNS",
]
