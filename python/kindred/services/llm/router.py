"""Provider router for adapter selection and error normalization.

- Resolves the adapter for a provider name
- Wraps adapter calls with error normalization (one place, not per adapter)
- Emits llm.request.started / llm.request.finished / llm.request.failed events

Events carry sizes, ids and token counts only, never message text.

Error handling:
- Provider 401/403 → E_LLM_INVALID_KEY
- Provider 429 → E_LLM_RATE_LIMIT
- Timeout → E_LLM_TIMEOUT
- Unusable reply shape → E_LLM_INVALID_RESPONSE
- Other → E_LLM_PROVIDER_DOWN
"""

import time

import httpx

from kindred.logging import get_logger
from kindred.services.llm.adapter import LLMAdapter
from kindred.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from kindred.services.llm.gemini_adapter import GeminiAdapter
from kindred.services.llm.openai_adapter import OpenAIAdapter
from kindred.services.llm.types import LLMRequest, LLMResponse

logger = get_logger(__name__)

# Default timeout for provider requests in seconds
DEFAULT_TIMEOUT_S = 45


class LLMRouter:
    """Routes requests to the appropriate provider adapter."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        adapters: dict[str, LLMAdapter] | None = None,
    ):
        """Initialize router with shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
            adapters: Optional adapter overrides keyed by provider name.
        """
        self._client = client
        self._adapters: dict[str, LLMAdapter] = adapters or {
            "openai": OpenAIAdapter(client),
            "gemini": GeminiAdapter(client),
        }

    @property
    def providers(self) -> list[str]:
        return sorted(self._adapters)

    def resolve_adapter(self, provider: str) -> LLMAdapter:
        """Get adapter for provider.

        Raises:
            LLMError: If provider is unknown.
        """
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise LLMError(
                LLMErrorClass.MODEL_NOT_AVAILABLE,
                f"Unknown provider: {provider}",
                provider=provider,
            )
        return adapter

    async def generate(
        self,
        provider: str,
        req: LLMRequest,
        api_key: str,
        *,
        timeout_s: int = DEFAULT_TIMEOUT_S,
    ) -> LLMResponse:
        """Generate a reply with error normalization.

        Args:
            provider: Provider name ("openai" or "gemini").
            req: The provider request.
            api_key: API key for the provider.
            timeout_s: Request timeout in seconds (default 45).

        Returns:
            LLMResponse with generated text and usage info.

        Raises:
            LLMError: With normalized error class on failure.
        """
        adapter = self.resolve_adapter(provider)
        base = {"provider": provider, "model_name": req.model_name}

        logger.info(
            "llm.request.started",
            **base,
            num_turns=len(req.messages),
            message_chars=sum(len(m.content) for m in req.messages),
        )

        start = time.monotonic()

        try:
            response = await adapter.generate(req, api_key=api_key, timeout_s=timeout_s)

        except httpx.TimeoutException as e:
            self._log_failure(base, LLMErrorClass.TIMEOUT, start)
            raise LLMError(
                LLMErrorClass.TIMEOUT,
                "Request timed out",
                provider=provider,
            ) from e

        except httpx.HTTPStatusError as e:
            json_body = self._safe_parse_json(e.response)
            error_class = classify_provider_error(provider, e.response.status_code, json_body)
            self._log_failure(
                base,
                error_class,
                start,
                status_code=e.response.status_code,
                provider_request_id=e.response.headers.get("x-request-id"),
            )
            message = self._provider_message(json_body)
            raise LLMError(
                error_class,
                message or f"Provider returned HTTP {e.response.status_code}",
                provider=provider,
            ) from e

        except httpx.HTTPError as e:
            self._log_failure(base, LLMErrorClass.PROVIDER_DOWN, start)
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                "Network error",
                provider=provider,
            ) from e

        except LLMError as e:
            # Shape validation failures raised by the adapter itself
            self._log_failure(base, e.error_class, start)
            raise

        except (ValueError, KeyError, TypeError) as e:
            # Non-JSON or structurally unexpected 2xx body
            self._log_failure(base, LLMErrorClass.INVALID_RESPONSE, start)
            raise LLMError(
                LLMErrorClass.INVALID_RESPONSE,
                f"Unexpected response: {type(e).__name__}",
                provider=provider,
            ) from e

        usage = response.usage
        logger.info(
            "llm.request.finished",
            **base,
            outcome="success",
            latency_ms=int((time.monotonic() - start) * 1000),
            tokens_input=usage.prompt_tokens if usage else None,
            tokens_output=usage.completion_tokens if usage else None,
            tokens_total=usage.total_tokens if usage else None,
            finish_reason=response.finish_reason,
            provider_request_id=response.provider_request_id,
        )
        return response

    def _log_failure(
        self, base: dict, error_class: LLMErrorClass, start: float, **extra
    ) -> None:
        logger.error(
            "llm.request.failed",
            **base,
            outcome="error",
            error_class=error_class.value,
            latency_ms=int((time.monotonic() - start) * 1000),
            **extra,
        )

    def _safe_parse_json(self, response: httpx.Response) -> dict | None:
        """Safely parse JSON from response, returning None on failure."""
        try:
            data = response.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    def _provider_message(self, json_body: dict | None) -> str | None:
        """Extract the provider's own error message, if it sent one."""
        if not json_body:
            return None
        error = json_body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        return None
