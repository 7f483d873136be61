"""Abstract base class for provider adapters.

- Async adapters with httpx.AsyncClient
- No retries inside adapters
- No DB access
- No logging of request/response bodies
- Raw HTTP errors bubble up to the router for classification
- Each adapter handles Turn → provider format conversion and validates
  the reply shape itself
"""

from abc import ABC, abstractmethod

import httpx

from kindred.services.llm.types import LLMRequest, LLMResponse


class LLMAdapter(ABC):
    """Abstract base class for model provider adapters."""

    provider: str

    def __init__(self, client: httpx.AsyncClient):
        """Initialize adapter with shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
        """
        self._client = client

    @abstractmethod
    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> LLMResponse:
        """Generate one complete reply.

        Args:
            req: The request containing model, messages, and parameters.
            api_key: The API key for authentication.
            timeout_s: Request timeout in seconds.

        Returns:
            LLMResponse with non-empty text.

        Raises:
            httpx.HTTPStatusError: On non-2xx HTTP response.
            httpx.TimeoutException: On request timeout.
            httpx.NetworkError: On network failure.
            LLMError(INVALID_RESPONSE): On a 2xx reply without usable text.
        """
        pass
