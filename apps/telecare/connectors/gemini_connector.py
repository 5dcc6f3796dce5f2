"""Gemini client bound to a single API key (one credential slot).

Each instance owns its own `genai.Client`, so slots never share credentials
and calls on different slots run in parallel. Errors are classified into
`UpstreamTransientError` (5xx, 429, overload, network timeouts) and
`UpstreamPermanentError` (everything else) for the retry layer.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from telecare.core.exceptions import (
    UpstreamError,
    UpstreamPermanentError,
    UpstreamTransientError,
)
from telecare.schemas.chatbot import ChatTurn

logger = logging.getLogger(__name__)

_TRANSIENT_PATTERN = re.compile(r"503|overloaded|temporar", re.IGNORECASE)
_TRANSIENT_CODES = {408, 429}
_TRANSIENT_TYPES = (genai_errors.ServerError, httpx.TimeoutException, httpx.TransportError)

ANALYSIS_PLACEHOLDER = (
    "This is the analysis of the user's medical report. "
    "Please answer follow-up questions based on this context."
)


def classify_error(exc: Exception) -> UpstreamError:
    if isinstance(exc, UpstreamError):
        return exc
    message = str(exc) or exc.__class__.__name__
    code = getattr(exc, "code", None) if isinstance(exc, genai_errors.APIError) else None
    if (
        isinstance(exc, _TRANSIENT_TYPES)
        or code in _TRANSIENT_CODES
        or (isinstance(code, int) and code >= 500)
        or _TRANSIENT_PATTERN.search(message)
    ):
        return UpstreamTransientError(message)
    return UpstreamPermanentError(message)


def to_gemini_history(turns: Sequence[ChatTurn]) -> List[Dict[str, Any]]:
    """Map stored chat turns onto Gemini's user/model roles."""
    history: List[Dict[str, Any]] = []
    for turn in turns:
        text = turn.text if isinstance(turn.text, str) else ANALYSIS_PLACEHOLDER
        history.append(
            {"role": "user" if turn.sender == "user" else "model", "parts": [{"text": text}]}
        )
    return history


class GeminiClient:
    def __init__(self, api_key: str, model_name: str) -> None:
        self._model_name = model_name
        self._client = genai.Client(api_key=api_key)

    def generate_json(
        self,
        instructions: str,
        user_prompt: str,
        data: bytes,
        mime_type: str,
    ) -> Dict[str, Any]:
        contents: List[Any] = [
            instructions,
            f"User's specific question: {user_prompt or 'Please provide a general analysis.'}",
            types.Part.from_bytes(data=data, mime_type=mime_type),
        ]
        try:
            raw = self._client.models.generate_content(
                model=self._model_name,
                contents=contents,
                config=types.GenerateContentConfig(response_mime_type="application/json"),
            ).text
        except Exception as exc:
            raise classify_error(exc) from exc

        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.error("Gemini returned invalid JSON: %.500s", raw)
            raise UpstreamPermanentError("Invalid JSON response from Gemini.") from exc
        if not isinstance(parsed, dict):
            raise UpstreamPermanentError("Gemini analysis was not a JSON object.")
        return parsed

    def chat(
        self,
        history: Sequence[ChatTurn],
        message: str,
        system_instruction: str,
    ) -> str:
        try:
            session = self._client.chats.create(
                model=self._model_name,
                config=types.GenerateContentConfig(system_instruction=system_instruction),
                history=to_gemini_history(history),
            )
            text = session.send_message(message).text
        except Exception as exc:
            raise classify_error(exc) from exc
        if not text:
            raise UpstreamPermanentError("Gemini returned an empty reply.")
        return text


__all__ = ["GeminiClient", "classify_error", "to_gemini_history"]
