"""Patient-facing AI assistant: symptom chat and medical report analysis.

The assistant never fails a request because the LLM is unavailable. Any
`UpstreamError` is replaced by a fixed apologetic reply, which is recorded in
the session like any other AI turn.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

import httpx
from fastapi.concurrency import run_in_threadpool

from telecare.core.exceptions import (
    BlobStorageError,
    InvalidContentError,
    NotFoundError,
    UpstreamError,
)
from telecare.core.settings import settings
from telecare.core.utils import utcnow
from telecare.schemas.chatbot import ChatbotReply, ChatSession, ChatTurn, TurnText
from telecare.services.chat_history import DEFAULT_TITLE, ChatHistoryStore
from telecare.services.llm_service import LLMService

logger = logging.getLogger(__name__)

DEGRADED_REPLY = (
    "I apologize, but I am having trouble connecting to the medical assistant right now. "
    "Please try again in a moment."
)
TITLE_MAX_CHARS = 30
_ASIDE_PATTERN = re.compile(r"\s*\([^)]*\)\s*")


def strip_asides(text: str) -> str:
    """Drop parenthesised asides (model reasoning) from a reply."""
    return _ASIDE_PATTERN.sub(" ", text).strip()


def derive_title(candidate: Optional[str], fallback: str = DEFAULT_TITLE) -> str:
    text = (candidate or "").strip()
    if not text:
        return fallback
    if len(text) > TITLE_MAX_CHARS:
        return text[:TITLE_MAX_CHARS] + "..."
    return text


def _user_request(user_message: Optional[str]) -> str:
    return (user_message or "").strip() or "None"


class ChatbotService:
    def __init__(
        self,
        history: ChatHistoryStore,
        llm: LLMService,
        *,
        download_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._history = history
        self._llm = llm
        self._download_timeout = download_timeout or settings.shared_file_download_timeout
        self._transport = transport

    # --------------- Sessions ---------------
    async def create_chat(self, user_id: str) -> ChatSession:
        return await run_in_threadpool(self._history.create_chat, user_id)

    async def list_history(self, user_id: str) -> List[ChatSession]:
        return await run_in_threadpool(self._history.list_chats, user_id)

    async def get_chat(self, user_id: str, chat_id: str) -> ChatSession:
        chat = await run_in_threadpool(self._history.get_chat, chat_id, user_id)
        if chat is None:
            raise NotFoundError("Chat not found.")
        return chat

    async def delete_chat(self, user_id: str, chat_id: str) -> bool:
        return await run_in_threadpool(self._history.delete_chat, chat_id, user_id)

    # --------------- Symptom chat ---------------
    async def analyze_symptoms(self, user_id: str, chat_id: str, message: str) -> ChatbotReply:
        if not (message or "").strip():
            raise InvalidContentError("Message is required.")
        chat = await self.get_chat(user_id, chat_id)

        title = derive_title(message) if chat.title == DEFAULT_TITLE else None
        await run_in_threadpool(
            self._history.append_turns,
            chat.id,
            [ChatTurn(sender="user", text=message, created_at=utcnow())],
            title=title,
        )

        try:
            raw_reply = await self._llm.continue_chat(chat.messages, message)
        except UpstreamError as exc:
            logger.error("Symptom chat %s degraded: %s", chat.id, exc)
            raw_reply = DEGRADED_REPLY

        reply = strip_asides(raw_reply)
        await run_in_threadpool(
            self._history.append_turns,
            chat.id,
            [ChatTurn(sender="ai", text=reply, created_at=utcnow())],
        )
        return ChatbotReply(reply=reply, chat_id=chat.id)

    # --------------- Report analysis ---------------
    async def analyze_report(
        self,
        user_id: str,
        chat_id: Optional[str],
        data: bytes,
        mime_type: Optional[str],
        filename: str,
        user_message: Optional[str] = None,
    ) -> ChatbotReply:
        if not data:
            raise InvalidContentError("File is required.")
        chat = await self._resolve_report_chat(
            user_id, chat_id, f"Report: {filename[:20]}..."
        )
        user_text = f"File attached: {filename}. User request: {_user_request(user_message)}"
        return await self._record_analysis(
            chat,
            user_text=user_text,
            title_candidate=filename,
            data=data,
            mime_type=mime_type or "application/pdf",
            user_message=user_message,
        )

    async def analyze_shared_report(
        self,
        user_id: str,
        chat_id: Optional[str],
        file_url: str,
        *,
        file_name: Optional[str] = None,
        file_type: Optional[str] = None,
        public_id: Optional[str] = None,
        user_message: Optional[str] = None,
    ) -> ChatbotReply:
        """Analyze a file already held by the blob store, fetched by URL."""
        if not (file_url or "").strip():
            raise InvalidContentError("fileUrl is required.")
        data, mime_type = await self._download(file_url, fallback_type=file_type)

        label = file_name or public_id or "Report"
        new_title = f"Report: {file_name[:20]}..." if file_name else f"Report: {label}"
        chat = await self._resolve_report_chat(user_id, chat_id, new_title)
        user_text = f"Cloud file attached: {label}. User request: {_user_request(user_message)}"
        return await self._record_analysis(
            chat,
            user_text=user_text,
            title_candidate=label,
            data=data,
            mime_type=mime_type,
            user_message=user_message,
        )

    # --------------- helpers ---------------
    async def _resolve_report_chat(
        self, user_id: str, chat_id: Optional[str], new_title: str
    ) -> ChatSession:
        chat = None
        if chat_id and chat_id != "null":
            chat = await run_in_threadpool(self._history.get_chat, chat_id, user_id)
        if chat is None:
            chat = await run_in_threadpool(self._history.create_chat, user_id, new_title)
        return chat

    async def _record_analysis(
        self,
        chat: ChatSession,
        *,
        user_text: str,
        title_candidate: str,
        data: bytes,
        mime_type: str,
        user_message: Optional[str],
    ) -> ChatbotReply:
        analysis: TurnText
        try:
            analysis = await self._llm.analyze_document(data, mime_type, user_message)
        except UpstreamError as exc:
            logger.error("Report analysis for chat %s degraded: %s", chat.id, exc)
            analysis = DEGRADED_REPLY

        title = derive_title(title_candidate, chat.title) if chat.title == DEFAULT_TITLE else None
        now = utcnow()
        await run_in_threadpool(
            self._history.append_turns,
            chat.id,
            [
                ChatTurn(sender="user", text=user_text, created_at=now),
                ChatTurn(sender="ai", text=analysis, created_at=now),
            ],
            title=title,
        )
        return ChatbotReply(reply=analysis, chat_id=chat.id)

    async def _download(self, url: str, *, fallback_type: Optional[str]) -> tuple[bytes, str]:
        try:
            async with httpx.AsyncClient(
                timeout=self._download_timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Downloading shared file %s failed: %s", url, exc)
            raise BlobStorageError("Failed to download the stored file.") from exc

        content_type = resp.headers.get("content-type") or ""
        mime_type = content_type.split(";", 1)[0].strip() or fallback_type or "application/pdf"
        return resp.content, mime_type


__all__ = ["DEGRADED_REPLY", "ChatbotService", "derive_title", "strip_asides"]
