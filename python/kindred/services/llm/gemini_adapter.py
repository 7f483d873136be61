"""Gemini generateContent adapter.

- Endpoint: POST https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent

Auth:
- Header: x-goog-api-key: <key>
- NEVER put key in query param

Turn conversion:
- System turn → systemInstruction.parts[0].text
- "assistant" role → "model" role in Gemini
- Each turn's content → parts: [{"text": "..."}]

Response:
{
  "candidates": [{
    "content": {"parts": [{"text": "<output_text>"}]},
    "finishReason": "STOP"
  }],
  "usageMetadata": {
    "promptTokenCount": 100,
    "candidatesTokenCount": 50,
    "totalTokenCount": 150
  },
  "modelVersion": "gemini-1.5-flash-002"
}

- text = concatenate candidates[0].content.parts[].text
- provider_request_id = None (Gemini doesn't return one)
"""

import httpx

from kindred.services.llm.adapter import LLMAdapter
from kindred.services.llm.errors import LLMError, LLMErrorClass
from kindred.services.llm.types import LLMRequest, LLMResponse, LLMUsage, Turn

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiAdapter(LLMAdapter):
    """Google Gemini API adapter.

    Maps assistant turns to the "model" role and lifts the system turn
    into the systemInstruction field.
    """

    provider = "gemini"

    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> LLMResponse:
        url = f"{GEMINI_BASE_URL}/{req.model_name}:generateContent"

        response = await self._client.post(
            url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        )
        response.raise_for_status()

        return self._parse_response(response.json(), req.model_name)

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest) -> dict:
        system_prompt = None
        contents = []

        for turn in req.messages:
            if turn.role == "system":
                system_prompt = turn.content
            else:
                contents.append(self._turn_to_content(turn))

        body: dict = {
            "contents": contents,
            "generationConfig": {
                "maxOutputTokens": req.max_tokens,
            },
        }

        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        if req.temperature is not None:
            body["generationConfig"]["temperature"] = req.temperature

        return body

    def _turn_to_content(self, turn: Turn) -> dict:
        role = "model" if turn.role == "assistant" else turn.role
        return {
            "role": role,
            "parts": [{"text": turn.content}],
        }

    def _parse_response(self, data: dict, requested_model: str) -> LLMResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            raise LLMError(
                LLMErrorClass.INVALID_RESPONSE,
                "Invalid response from Gemini API: no candidates returned",
                provider=self.provider,
            )

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts).strip()
        if not text:
            raise LLMError(
                LLMErrorClass.INVALID_RESPONSE,
                "Empty response from Gemini API",
                provider=self.provider,
            )

        usage = None
        usage_metadata = data.get("usageMetadata")
        if usage_metadata:
            usage = LLMUsage(
                prompt_tokens=usage_metadata.get("promptTokenCount"),
                completion_tokens=usage_metadata.get("candidatesTokenCount"),
                total_tokens=usage_metadata.get("totalTokenCount"),
            )

        return LLMResponse(
            text=text,
            usage=usage,
            provider_request_id=None,
            finish_reason=candidate.get("finishReason"),
            model=data.get("modelVersion") or requested_model,
        )
