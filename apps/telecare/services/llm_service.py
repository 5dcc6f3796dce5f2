"""Retrying front door to the Gemini analysis service.

Credential slots are tried in order. Within a slot, transient failures
(5xx, overload) are retried with incremental backoff; any other failure, or a
slot that keeps failing transiently, moves on to the next slot. When every
slot is exhausted, or the overall time budget runs out, the caller gets an
`UpstreamPermanentError`.
"""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, TypeVar

from fastapi.concurrency import run_in_threadpool
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from telecare.connectors.gemini_connector import GeminiClient
from telecare.core.exceptions import (
    UpstreamError,
    UpstreamPermanentError,
    UpstreamTransientError,
)
from telecare.core.settings import settings
from telecare.prompts import load_prompt
from telecare.schemas.chatbot import ChatTurn

logger = logging.getLogger(__name__)

T = TypeVar("T")
ClientFactory = Callable[[str], GeminiClient]


class LLMService:
    def __init__(
        self,
        api_keys: Optional[Iterable[str]] = None,
        *,
        client_factory: Optional[ClientFactory] = None,
        max_attempts_per_key: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
        model_name: Optional[str] = None,
    ) -> None:
        keys = settings.gemini_api_keys if api_keys is None else api_keys
        self._api_keys = [k for k in keys if k]
        model = model_name or settings.gemini_model
        # One SDK client per credential slot, reused across calls.
        self._client_factory: ClientFactory = client_factory or lru_cache(maxsize=None)(
            lambda key: GeminiClient(key, model)
        )
        self._max_attempts = max_attempts_per_key or settings.llm_max_attempts_per_key
        self._backoff = (
            settings.llm_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self._timeout = timeout_seconds or settings.llm_timeout_seconds

    async def analyze_document(
        self, data: bytes, mime_type: str, user_prompt: Optional[str] = None
    ) -> Dict[str, Any]:
        """Return the structured JSON analysis of a medical report."""
        instructions = load_prompt("report_analysis.md")
        return await self._call(
            lambda client: client.generate_json(instructions, user_prompt or "", data, mime_type),
            operation="report analysis",
        )

    async def continue_chat(self, prior_turns: Sequence[ChatTurn], new_message: str) -> str:
        """Answer `new_message` given the conversation so far (excluding it)."""
        system_instruction = load_prompt("followup_chat.md")
        turns = list(prior_turns)
        return await self._call(
            lambda client: client.chat(turns, new_message, system_instruction),
            operation="chat",
        )

    async def _call(self, fn: Callable[[GeminiClient], T], *, operation: str) -> T:
        if not self._api_keys:
            raise UpstreamPermanentError(
                "No Gemini API keys are configured.", code="llm_not_configured"
            )
        try:
            return await asyncio.wait_for(
                self._try_slots(fn, operation=operation), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            logger.error("Gemini %s exceeded %.1fs", operation, self._timeout)
            raise UpstreamPermanentError(f"Gemini {operation} timed out.") from exc

    async def _try_slots(self, fn: Callable[[GeminiClient], T], *, operation: str) -> T:
        last_error: Optional[UpstreamError] = None
        for slot, api_key in enumerate(self._api_keys, start=1):
            client = self._client_factory(api_key)
            retrying = AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_incrementing(start=self._backoff, increment=self._backoff),
                retry=retry_if_exception_type(UpstreamTransientError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            )
            try:
                async for attempt in retrying:
                    with attempt:
                        return await run_in_threadpool(fn, client)
            except UpstreamError as exc:
                last_error = exc
                logger.warning("Gemini key slot %d failed for %s: %s", slot, operation, exc)

        raise UpstreamPermanentError(
            f"All Gemini API keys failed for {operation}."
        ) from last_error


__all__ = ["LLMService"]
