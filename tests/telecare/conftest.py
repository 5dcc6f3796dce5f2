"""In-memory stand-ins for the Mongo stores, blob store, LLM and notifier."""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest
from telecare.core.exceptions import (
    BlobStorageError,
    NotFoundError,
    StorageError,
    UpstreamPermanentError,
)
from telecare.schemas.chat import Conversation, Message, MessageContent
from telecare.schemas.chatbot import ChatSession, ChatTurn
from telecare.schemas.files import StoredBlob
from telecare.schemas.users import UserProfile
from telecare.services.conversation_store import participant_key
from telecare.services.messaging import MessageDispatcher

_EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)


class InMemoryConversationStore:
    """Mirrors `ConversationStore`; the lock plays the role of the unique index."""

    def __init__(self) -> None:
        self.conversations: Dict[str, Conversation] = {}
        self.messages: Dict[str, Message] = {}
        self.fail_append = False
        self.fail_delete = False
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _tick(self) -> datetime:
        return _EPOCH + timedelta(seconds=next(self._ids))

    def ensure_indexes(self) -> None:
        return None

    def find_conversation_by_participants(self, user_ids) -> Optional[Conversation]:
        participants, _ = participant_key(user_ids)
        for conv in self.conversations.values():
            if conv.participants == participants:
                return conv
        return None

    def get_or_create_conversation(self, user_ids) -> Tuple[Conversation, bool]:
        participants, _ = participant_key(user_ids)
        with self._lock:
            existing = self.find_conversation_by_participants(participants)
            if existing is not None:
                return existing, False
            conv = Conversation(
                id=f"conv-{len(self.conversations) + 1}",
                participants=participants,
                created_at=self._tick(),
            )
            self.conversations[conv.id] = conv
            return conv, True

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self.conversations.get(conversation_id)

    def list_conversations_for(self, user_id: str) -> List[Conversation]:
        found = [c for c in self.conversations.values() if user_id in c.participants]
        return sorted(found, key=lambda c: c.created_at, reverse=True)

    def append_message(
        self, conversation_id: str, sender_id: str, content: MessageContent
    ) -> Message:
        if self.fail_append:
            raise StorageError("Failed to save message.")
        created_at = self._tick()
        message = Message(
            id=f"msg-{len(self.messages) + 1}",
            conversation_id=conversation_id,
            sender_id=sender_id,
            text=content.text or "",
            file=content.file,
            created_at=created_at,
            updated_at=created_at,
        )
        self.messages[message.id] = message
        return message

    def list_messages(self, conversation_id: str) -> List[Message]:
        found = [m for m in self.messages.values() if m.conversation_id == conversation_id]
        return sorted(found, key=lambda m: (m.created_at, m.id))

    def find_message(self, message_id: str) -> Optional[Message]:
        return self.messages.get(message_id)

    def delete_message(self, message_id: str) -> bool:
        if self.fail_delete:
            raise StorageError("Failed to delete message.")
        return self.messages.pop(message_id, None) is not None


class RecordingNotifier:
    def __init__(self, *, fail_for: Sequence[str] = ()) -> None:
        self.events: List[Tuple[str, str, Any]] = []
        self.fail_for = set(fail_for)

    async def emit_to_user(self, user_id: str, event: str, payload: Any) -> int:
        if user_id in self.fail_for:
            raise RuntimeError(f"socket for {user_id} is gone")
        self.events.append((user_id, event, payload))
        return 1

    def recipients(self, event: str) -> List[str]:
        return [user for user, name, _ in self.events if name == event]


class FakeBlobStore:
    def __init__(self) -> None:
        self.uploads: List[Tuple[bytes, Optional[str], str]] = []
        self.deleted: List[Tuple[str, str]] = []
        self.stored: Dict[str, StoredBlob] = {}
        self.fail_upload = False

    def upload(self, data: bytes, mime_hint: Optional[str], filename: str) -> StoredBlob:
        if self.fail_upload:
            raise BlobStorageError("Cloudinary upload failed.")
        self.uploads.append((data, mime_hint, filename))
        resolved_type = "raw" if (mime_hint or "").endswith("pdf") else "image"
        blob = StoredBlob(
            url=f"https://files.example/{filename}",
            resolved_type=resolved_type,
            resolved_filename=filename,
            public_id=f"PDF-DOCS-IMGS/{filename}",
        )
        self.stored[blob.public_id] = blob
        return blob

    def resource(self, public_id: str) -> StoredBlob:
        try:
            return self.stored[public_id]
        except KeyError:
            raise NotFoundError("Stored file not found.") from None

    def list_files(self, *, max_results: int = 50) -> List[StoredBlob]:
        return list(self.stored.values())[:max_results]

    def delete(self, public_id: str, *, resource_type: str = "image") -> bool:
        self.deleted.append((public_id, resource_type))
        return self.stored.pop(public_id, None) is not None


class FakeUserDirectory:
    def __init__(self, profiles: Sequence[UserProfile] = ()) -> None:
        self.profiles = {p.id: p for p in profiles}

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        return self.profiles.get(user_id)

    def get_profiles(self, user_ids) -> Dict[str, UserProfile]:
        return {u: self.profiles[u] for u in user_ids if u in self.profiles}

    def list_doctors(self, verified: Optional[bool] = None) -> List[UserProfile]:
        doctors = [p for p in self.profiles.values() if p.role == "doctor"]
        if verified is not None:
            doctors = [d for d in doctors if d.is_verified is verified]
        return sorted(doctors, key=lambda d: d.name)


class FakeChatHistoryStore:
    def __init__(self) -> None:
        self.chats: Dict[str, ChatSession] = {}
        self._ids = itertools.count(1)

    def ensure_indexes(self) -> None:
        return None

    def create_chat(self, user_id: str, title: str = "New Chat") -> ChatSession:
        n = next(self._ids)
        chat = ChatSession(
            id=f"chat-{n}",
            user_id=user_id,
            title=title,
            created_at=_EPOCH + timedelta(minutes=n),
        )
        self.chats[chat.id] = chat
        return chat

    def list_chats(self, user_id: str) -> List[ChatSession]:
        owned = [c for c in self.chats.values() if c.user_id == user_id]
        return sorted(owned, key=lambda c: c.created_at, reverse=True)

    def get_chat(self, chat_id: str, user_id: str) -> Optional[ChatSession]:
        chat = self.chats.get(chat_id)
        if chat is None or chat.user_id != user_id:
            return None
        return chat.model_copy(deep=True)

    def delete_chat(self, chat_id: str, user_id: str) -> bool:
        if self.get_chat(chat_id, user_id) is None:
            return False
        del self.chats[chat_id]
        return True

    def append_turns(
        self,
        chat_id: str,
        turns: Sequence[ChatTurn],
        *,
        title: Optional[str] = None,
        model_type: str = "gemini",
    ) -> None:
        chat = self.chats.get(chat_id)
        if chat is None:
            return
        chat.messages.extend(turns)
        chat.model_type = model_type
        if title:
            chat.title = title


@dataclass
class FakeLLM:
    reply: str = "Stay hydrated and rest."
    analysis: Dict[str, Any] = field(
        default_factory=lambda: {"summary": "All values are within range.", "keyTakeaways": []}
    )
    fail: bool = False
    chat_calls: List[Tuple[List[ChatTurn], str]] = field(default_factory=list)
    document_calls: List[Tuple[bytes, str, Optional[str]]] = field(default_factory=list)

    async def continue_chat(self, prior_turns: Sequence[ChatTurn], new_message: str) -> str:
        self.chat_calls.append((list(prior_turns), new_message))
        if self.fail:
            raise UpstreamPermanentError("All Gemini API keys failed for chat.")
        return self.reply

    async def analyze_document(
        self, data: bytes, mime_type: str, user_prompt: Optional[str] = None
    ) -> Dict[str, Any]:
        self.document_calls.append((data, mime_type, user_prompt))
        if self.fail:
            raise UpstreamPermanentError("All Gemini API keys failed for report analysis.")
        return self.analysis


@pytest.fixture
def store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def users() -> FakeUserDirectory:
    return FakeUserDirectory(
        [
            UserProfile(id="patient-1", name="Pat", role="patient"),
            UserProfile(id="patient-2", name="Sam", role="patient"),
            UserProfile(
                id="doctor-1",
                name="Dr. Who",
                role="doctor",
                is_verified=True,
                specialization="Cardiology",
            ),
            UserProfile(id="doctor-2", name="Dr. New", role="doctor", is_verified=False),
            UserProfile(id="admin-1", name="Ada", role="admin"),
        ]
    )


@pytest.fixture
def dispatcher(store, notifier, blob_store, users) -> MessageDispatcher:
    return MessageDispatcher(store, notifier, blob_store=blob_store, users=users)


@pytest.fixture
def chat_history() -> FakeChatHistoryStore:
    return FakeChatHistoryStore()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()
