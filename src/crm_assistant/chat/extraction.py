"""Intent extraction over the Gemini generateContent REST API."""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Protocol, Sequence

import httpx
from pydantic import ValidationError

from crm_assistant.chat.prompts import build_system_prompt
from crm_assistant.chat.schemas import RESPONSE_SCHEMA, ExtractionResponse
from crm_assistant.chat.state import ChatTurn
from crm_assistant.crm.workspace import WorkspaceSnapshot

logger = logging.getLogger(__name__)


class ExtractionServiceError(RuntimeError):
    """The extraction endpoint could not be reached or rejected the request."""


class ExtractionResponseError(RuntimeError):
    """The extraction endpoint answered with something that does not fit the schema."""


class IntentExtractor(Protocol):
    async def extract(
        self,
        transcript: Sequence[ChatTurn],
        snapshot: WorkspaceSnapshot,
    ) -> ExtractionResponse: ...


class GeminiIntentExtractor:
    """Structured intent extraction with one request per turn and no retry."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_s: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._client = http_client or httpx.AsyncClient(timeout=timeout_s)

    async def extract(
        self,
        transcript: Sequence[ChatTurn],
        snapshot: WorkspaceSnapshot,
    ) -> ExtractionResponse:
        if not self.api_key:
            raise ExtractionServiceError("GEMINI_API_KEY is missing")
        request_body = build_request_body(
            transcript,
            system_prompt=build_system_prompt(snapshot, today=date.today().isoformat()),
        )
        response_json = await self._request(request_body)
        return parse_extraction_response(response_json)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, request_body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            response = await self._client.post(
                url,
                json=request_body,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout_s,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            message = exc.response.text
            raise ExtractionServiceError(
                f"Extraction request failed with status {exc.response.status_code}: {message[:400]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionServiceError(f"Extraction request failed: {exc!r}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ExtractionResponseError("Extraction endpoint returned non-JSON response") from exc


def build_request_body(transcript: Sequence[ChatTurn], *, system_prompt: str) -> dict[str, Any]:
    return {
        "systemInstruction": {"parts": [{"text": system_prompt}]},
        "contents": [
            {
                "role": "model" if turn.role == "assistant" else "user",
                "parts": [{"text": turn.text}],
            }
            for turn in transcript
        ],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def parse_extraction_response(response_json: dict[str, Any]) -> ExtractionResponse:
    text = _first_candidate_text(response_json)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ExtractionResponseError("Extraction content was not valid JSON") from exc
    if not isinstance(parsed, dict):
        raise ExtractionResponseError("Extraction content must be a JSON object")

    try:
        return ExtractionResponse.model_validate(parsed)
    except ValidationError as exc:
        raise ExtractionResponseError(f"Extraction content did not match schema: {exc}") from exc


def _first_candidate_text(response_json: dict[str, Any]) -> str:
    candidates = response_json.get("candidates") if isinstance(response_json, dict) else None
    if not isinstance(candidates, list) or not candidates:
        raise ExtractionResponseError("Extraction response missing candidates")

    first = candidates[0] if isinstance(candidates[0], dict) else {}
    content = first.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not parts or not isinstance(parts[0], dict):
        raise ExtractionResponseError("Extraction response candidate has no parts")

    text = parts[0].get("text")
    if not isinstance(text, str) or not text.strip():
        raise ExtractionResponseError("Extraction response content is empty")
    return text.strip()
