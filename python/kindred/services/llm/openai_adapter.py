"""OpenAI chat completions adapter.

- Endpoint: POST https://api.openai.com/v1/chat/completions
- Headers: Authorization: Bearer <key>, Content-Type: application/json

Request body:
{
  "model": "<model_name>",
  "messages": [
    {"role": "system", "content": "..."},
    {"role": "user", "content": "..."},
    {"role": "assistant", "content": "..."}
  ],
  "max_tokens": 200,
  "temperature": 0.7
}

Response - extract:
{
  "id": "chatcmpl-...",
  "model": "gpt-3.5-turbo-0125",
  "choices": [{"message": {"content": "<output_text>"}, "finish_reason": "stop"}],
  "usage": {"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150}
}
"""

import httpx

from kindred.services.llm.adapter import LLMAdapter
from kindred.services.llm.errors import LLMError, LLMErrorClass
from kindred.services.llm.types import LLMRequest, LLMResponse, LLMUsage, Turn

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIAdapter(LLMAdapter):
    """OpenAI API adapter for chat completions."""

    provider = "openai"

    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> LLMResponse:
        headers = self._build_headers(api_key)
        body = self._build_request_body(req)

        response = await self._client.post(
            OPENAI_CHAT_URL,
            headers=headers,
            json=body,
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        )
        response.raise_for_status()

        return self._parse_response(response.json(), response.headers, req.model_name)

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest) -> dict:
        body: dict = {
            "model": req.model_name,
            "messages": [self._turn_to_message(turn) for turn in req.messages],
            "max_tokens": req.max_tokens,
        }

        if req.temperature is not None:
            body["temperature"] = req.temperature

        return body

    def _turn_to_message(self, turn: Turn) -> dict[str, str]:
        # OpenAI uses the same role names as Turn
        return {
            "role": turn.role,
            "content": turn.content,
        }

    def _parse_response(
        self, data: dict, headers: httpx.Headers, requested_model: str
    ) -> LLMResponse:
        choices = data.get("choices") or []
        if not choices:
            raise LLMError(
                LLMErrorClass.INVALID_RESPONSE,
                "Invalid response from OpenAI API: no choices returned",
                provider=self.provider,
            )

        choice = choices[0]
        text = ((choice.get("message") or {}).get("content") or "").strip()
        if not text:
            raise LLMError(
                LLMErrorClass.INVALID_RESPONSE,
                "Empty response from OpenAI API",
                provider=self.provider,
            )

        usage = None
        usage_data = data.get("usage")
        if usage_data:
            usage = LLMUsage(
                prompt_tokens=usage_data.get("prompt_tokens"),
                completion_tokens=usage_data.get("completion_tokens"),
                total_tokens=usage_data.get("total_tokens"),
            )

        return LLMResponse(
            text=text,
            usage=usage,
            provider_request_id=headers.get("x-request-id") or data.get("id"),
            finish_reason=choice.get("finish_reason"),
            model=data.get("model") or requested_model,
        )
