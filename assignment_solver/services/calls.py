"""Shared wrapper that maps client failures onto :class:`ServiceCallError`."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from .errors import ServiceCallError
from .gemini_client import GeminiError, GenerationConfig, GenerationResponse
from .input_normalizer import RequestPart


logger = logging.getLogger(__name__)


class GenerativeClient(Protocol):
    """What the run needs from a generative-language client."""

    def generate_content(
        self,
        parts: Sequence[dict[str, Any]],
        *,
        system_instruction: str | None = None,
        config: GenerationConfig | None = None,
    ) -> GenerationResponse: ...


def call_service(
    client: GenerativeClient,
    context: Sequence[RequestPart],
    instruction: str,
    *,
    system_instruction: str | None = None,
    config: GenerationConfig | None = None,
) -> str:
    """Send ``context`` followed by ``instruction`` and return the response text."""

    payload = [part.to_payload() for part in context]
    payload.append({"text": instruction})
    try:
        response = client.generate_content(
            payload, system_instruction=system_instruction, config=config
        )
    except GeminiError as exc:
        logger.error("Service call failed", extra={"error": str(exc)})
        raise ServiceCallError(str(exc)) from exc
    return response.text


__all__ = ["GenerativeClient", "call_service"]
