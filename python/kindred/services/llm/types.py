"""Shared type definitions for the model provider layer.

- Turn: Provider-agnostic conversation turn
- LLMRequest: Request to a provider adapter
- LLMUsage: Token usage from provider response
- LLMResponse: Complete reply from a provider
"""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class Turn:
    """Provider-agnostic conversation turn.

    Attributes:
        role: One of "system", "user", or "assistant"
        content: The text content of the turn
    """

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class LLMUsage:
    """Token usage from provider response.

    All fields are optional as not all providers return all metrics.
    """

    prompt_tokens: int | None
    completion_tokens: int | None
    total_tokens: int | None


@dataclass(frozen=True)
class LLMRequest:
    """Request to a provider adapter.

    Attributes:
        model_name: The model identifier (e.g., "gpt-3.5-turbo", "gemini-1.5-flash")
        messages: List of Turn objects (system turn first if present)
        max_tokens: Maximum tokens in the completion
        temperature: Sampling temperature, None uses provider default
    """

    model_name: str
    messages: list[Turn]
    max_tokens: int
    temperature: float | None = None


@dataclass(frozen=True)
class LLMResponse:
    """Complete reply from a provider.

    Attributes:
        text: The generated text content (never empty)
        usage: Token usage information (None if provider doesn't return it)
        provider_request_id: Provider's request ID for debugging (may be None)
        finish_reason: Why generation stopped, as reported by the provider
        model: Model id reported by the provider (falls back to the requested one)
    """

    text: str
    usage: LLMUsage | None
    provider_request_id: str | None
    finish_reason: str | None = None
    model: str | None = None
