"""Client helpers for the Gemini ``generateContent`` REST endpoint."""

from __future__ import annotations

import json
import logging
import socket
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib import error, parse, request

from ..config import DEFAULT_BASE_URL, DEFAULT_MODEL
from ..logging import log_call


logger = logging.getLogger(__name__)


GENERATE_PATH = "/v1beta/models/{model}:generateContent"
MISSING_API_KEY_MESSAGE = "API Key is missing. Please check your configuration."


class GeminiError(RuntimeError):
    """Base exception for Gemini client failures."""


class GeminiConfigurationError(GeminiError):
    """Raised when the client cannot build a request (e.g. no API key)."""


class GeminiConnectionError(GeminiError):
    """Raised when the service cannot be reached."""


class GeminiResponseError(GeminiError):
    """Raised when the service returns an error or an unusable response."""


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    """Sampling and output options sent as ``generationConfig``."""

    temperature: float | None = None
    max_output_tokens: int | None = None
    response_mime_type: str | None = None
    response_schema: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_output_tokens is not None:
            payload["maxOutputTokens"] = self.max_output_tokens
        if self.response_mime_type is not None:
            payload["responseMimeType"] = self.response_mime_type
        if self.response_schema is not None:
            payload["responseSchema"] = self.response_schema
        return payload


@dataclass(frozen=True)
class GenerationResponse:
    """Text of the first candidate plus the raw payload."""

    text: str
    finish_reason: str | None
    raw_response: dict[str, Any]


class GeminiClient:
    """Minimal HTTP client for the generative-language API."""

    @log_call(logger=logger, include_args=False)
    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        timeout: float | None = None,
        max_retries: int = 0,
        retry_backoff: float = 0.5,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/") or DEFAULT_BASE_URL
        self._model = model
        self.timeout = timeout
        self.max_retries = max(max_retries, 0)
        self.retry_backoff = retry_backoff

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "GeminiClient":
        """Build a client from a :class:`~assignment_solver.config.SolverSettings`."""

        options: dict[str, Any] = {
            "api_key": settings.api_key,
            "base_url": settings.base_url,
            "model": settings.model,
            "timeout": settings.request_timeout,
        }
        options.update(overrides)
        return cls(**options)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def model(self) -> str:
        return self._model

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    @log_call(logger=logger, include_args=False)
    def generate_content(
        self,
        parts: Sequence[Mapping[str, Any]],
        *,
        system_instruction: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResponse:
        """Send one ``generateContent`` request and return the first candidate."""

        if not self._api_key:
            raise GeminiConfigurationError(MISSING_API_KEY_MESSAGE)
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [dict(part) for part in parts]}],
        }
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if config is not None:
            generation_config = config.to_payload()
            if generation_config:
                payload["generationConfig"] = generation_config
        logger.info(
            "Dispatching generateContent request",
            extra={
                "model": self._model,
                "part_count": len(payload["contents"][0]["parts"]),
                "structured": bool(config and config.response_schema),
            },
        )
        path = GENERATE_PATH.format(model=parse.quote(self._model, safe="-._/"))
        data = self._request_json(path, payload)
        return self._parse_response(data)

    def _request(self, path: str, payload: dict[str, Any]) -> bytes:
        url = f"{self._base_url}{path}"
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "x-goog-api-key": self._api_key or "",
        }
        body = json.dumps(payload).encode("utf-8")
        request_obj = request.Request(url, data=body, headers=headers, method="POST")
        last_error: GeminiError | None = None
        for attempt in range(self.max_retries + 1):
            try:
                logger.debug(
                    "Gemini request attempt",
                    extra={"url": url, "attempt": attempt + 1},
                )
                if self.timeout is None:
                    response_cm = request.urlopen(request_obj)
                else:
                    response_cm = request.urlopen(request_obj, timeout=self.timeout)
                with response_cm as response:
                    return response.read()
            except error.HTTPError as exc:
                message = self._build_http_error_message(exc.code, exc.read())
                last_error = GeminiResponseError(message)
                if not self._should_retry(exc.code):
                    break
            except error.URLError as exc:
                if isinstance(exc.reason, (TimeoutError, socket.timeout)):
                    last_error = GeminiConnectionError("Gemini request timed out")
                else:
                    last_error = GeminiConnectionError(
                        f"Unable to reach the Gemini service: {exc.reason}"
                    )
            except TimeoutError:
                last_error = GeminiConnectionError("Gemini request timed out")
            if attempt < self.max_retries:
                logger.warning(
                    "Gemini request failed, retrying",
                    extra={"url": url, "attempt": attempt + 1, "error": str(last_error)},
                )
                time.sleep(self.retry_backoff * (2**attempt))
        raise last_error or GeminiError("Unexpected Gemini request failure")

    def _request_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        body = self._request(path, payload)
        if not body:
            raise GeminiResponseError("Empty response from Gemini")
        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise GeminiResponseError("Invalid JSON from Gemini") from exc
        if not isinstance(data, dict):
            raise GeminiResponseError("Unexpected Gemini response shape")
        return data

    @staticmethod
    def _should_retry(status: int | None) -> bool:
        if status is None:
            return True
        return status in {408, 429, 500, 502, 503, 504}

    @staticmethod
    def _parse_response(data: dict[str, Any]) -> GenerationResponse:
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            feedback = data.get("promptFeedback")
            block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            if block_reason:
                raise GeminiResponseError(f"Request was blocked by the service ({block_reason})")
            raise GeminiResponseError("Gemini response contained no candidates")
        first = candidates[0]
        if not isinstance(first, dict):
            raise GeminiResponseError("Gemini response missing first candidate")
        finish_reason = first.get("finishReason")
        content = first.get("content")
        raw_parts = content.get("parts") if isinstance(content, dict) else None
        texts: list[str] = []
        if isinstance(raw_parts, Iterable):
            for part in raw_parts:
                if not isinstance(part, dict) or part.get("thought"):
                    continue
                text = part.get("text")
                if isinstance(text, str):
                    texts.append(text)
        return GenerationResponse(
            text="".join(texts),
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
            raw_response=data,
        )

    @staticmethod
    def _build_http_error_message(status: int | None, body: bytes | str | None) -> str:
        summary = GeminiClient._summarize_error_body(body)
        if status is not None:
            if summary:
                return f"Gemini returned HTTP {status}: {summary}"
            return f"Gemini returned HTTP {status}"
        return summary or "Gemini request failed"

    @staticmethod
    def _summarize_error_body(body: bytes | str | None) -> str:
        if body is None:
            return ""
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else str(body)
        text = text.strip()
        if not text:
            return ""
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return " ".join(text.split())
        if isinstance(data, dict):
            error_payload = data.get("error")
            bucket = error_payload if isinstance(error_payload, dict) else data
            message = bucket.get("message") or bucket.get("detail") or ""
            status = bucket.get("status")
            clean = " ".join(str(message).split())
            if clean and isinstance(status, str) and status:
                return f"{clean} ({status})"
            if clean:
                return clean
        return " ".join(text.split())


__all__ = [
    "GeminiClient",
    "GeminiConfigurationError",
    "GeminiConnectionError",
    "GeminiError",
    "GeminiResponseError",
    "GenerationConfig",
    "GenerationResponse",
    "MISSING_API_KEY_MESSAGE",
]
