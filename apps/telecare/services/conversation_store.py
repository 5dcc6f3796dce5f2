"""Conversation and message storage (Mongo-backed).

Collections:
- conversations: one document per unordered participant pair
- messages: one document per message, totally ordered by `created_at`

Typical usage:
    store = ConversationStore(database=db)
    store.ensure_indexes()  # idempotent
    conversation, created = store.get_or_create_conversation(["a", "b"])
    message = store.append_message(conversation.id, "a", MessageContent(text="hi"))

Creation is race-free: `participants_key` carries a unique index, so two
concurrent first-contact requests cannot both insert. The loser of the race
gets a `DuplicateKeyError`, re-fetches, and returns the winner's document.

Any driver failure surfaces as `StorageError`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from telecare.connectors.mongo_connector import storage_errors
from telecare.core.exceptions import (
    ConversationNotFoundError,
    InvalidParticipantsError,
    StorageError,
)
from telecare.core.settings import settings
from telecare.core.utils import maybe_object_id, utcnow
from telecare.schemas.chat import Conversation, FileReference, Message, MessageContent

logger = logging.getLogger(__name__)


def participant_key(user_ids: Iterable[str]) -> Tuple[List[str], str]:
    """Return the sorted distinct participants and their unique key."""
    participants = sorted({str(u).strip() for u in user_ids if str(u).strip()})
    if len(participants) < 2:
        raise InvalidParticipantsError("A conversation needs two distinct participants.")
    return participants, "|".join(participants)


@dataclass
class ConversationStore:
    """Mongo-backed durable record of conversations and messages."""

    database: Database
    conversations_collection: str = settings.conversations_collection
    messages_collection: str = settings.messages_collection

    def __post_init__(self) -> None:
        self._conversations: Collection = self.database.get_collection(
            self.conversations_collection
        )
        self._messages: Collection = self.database.get_collection(self.messages_collection)

    # --------------- Indexes ---------------
    def ensure_indexes(self) -> None:
        with storage_errors("create conversation indexes"):
            self._conversations.create_index(
                [("participants_key", ASCENDING)], unique=True, name="uniq_participants"
            )
            self._conversations.create_index([("participants", ASCENDING)], name="participants")
            self._messages.create_index(
                [("conversation_id", ASCENDING), ("created_at", ASCENDING), ("_id", ASCENDING)],
                name="conversation_time",
            )

    # --------------- Conversations ---------------
    def find_conversation_by_participants(
        self, user_ids: Iterable[str]
    ) -> Optional[Conversation]:
        _, key = participant_key(user_ids)
        with storage_errors("find conversation"):
            doc = self._conversations.find_one({"participants_key": key})
        return self._to_conversation(doc) if doc else None

    def create_conversation(self, user_ids: Iterable[str]) -> Conversation:
        participants, key = participant_key(user_ids)
        now = utcnow()
        doc: Dict[str, Any] = {
            "participants": participants,
            "participants_key": key,
            "created_at": now,
            "updated_at": now,
        }
        with storage_errors("create conversation"):
            res = self._conversations.insert_one(doc)
        doc["_id"] = res.inserted_id
        return self._to_conversation(doc)

    def get_or_create_conversation(
        self, user_ids: Iterable[str]
    ) -> Tuple[Conversation, bool]:
        ids = list(user_ids)
        existing = self.find_conversation_by_participants(ids)
        if existing is not None:
            return existing, False
        try:
            return self.create_conversation(ids), True
        except DuplicateKeyError:
            logger.info("Concurrent conversation creation detected; reusing existing record")
            winner = self.find_conversation_by_participants(ids)
            if winner is None:
                raise StorageError("Conversation vanished after a duplicate insert.")
            return winner, False

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        oid = maybe_object_id(conversation_id)
        if oid is None:
            return None
        with storage_errors("load conversation"):
            doc = self._conversations.find_one({"_id": oid})
        return self._to_conversation(doc) if doc else None

    def list_conversations_for(self, user_id: str) -> List[Conversation]:
        with storage_errors("list conversations"):
            cursor = self._conversations.find({"participants": user_id}).sort(
                "created_at", DESCENDING
            )
            return [self._to_conversation(doc) for doc in cursor]

    # --------------- Messages ---------------
    def append_message(
        self, conversation_id: str, sender_id: str, content: MessageContent
    ) -> Message:
        oid = maybe_object_id(conversation_id)
        if oid is None:
            raise ConversationNotFoundError("Conversation not found.")
        now = utcnow()
        doc: Dict[str, Any] = {
            "conversation_id": oid,
            "sender_id": sender_id,
            "text": content.text or "",
            "is_read": False,
            "created_at": now,
            "updated_at": now,
        }
        if content.file is not None:
            doc["file_url"] = content.file.url
            doc["file_type"] = content.file.file_type
            doc["file_name"] = content.file.file_name
        with storage_errors("save message"):
            res = self._messages.insert_one(doc)
        doc["_id"] = res.inserted_id
        return self._to_message(doc)

    def list_messages(self, conversation_id: str) -> List[Message]:
        oid = maybe_object_id(conversation_id)
        if oid is None:
            return []
        with storage_errors("list messages"):
            cursor = self._messages.find({"conversation_id": oid}).sort(
                [("created_at", ASCENDING), ("_id", ASCENDING)]
            )
            return [self._to_message(doc) for doc in cursor]

    def find_message(self, message_id: str) -> Optional[Message]:
        oid = maybe_object_id(message_id)
        if oid is None:
            return None
        with storage_errors("load message"):
            doc = self._messages.find_one({"_id": oid})
        return self._to_message(doc) if doc else None

    def delete_message(self, message_id: str) -> bool:
        oid = maybe_object_id(message_id)
        if oid is None:
            return False
        with storage_errors("delete message"):
            res = self._messages.delete_one({"_id": oid})
        return res.deleted_count > 0

    # --------------- Serialization ---------------
    @staticmethod
    def _to_conversation(doc: Dict[str, Any]) -> Conversation:
        return Conversation(
            id=str(doc["_id"]),
            participants=[str(p) for p in doc.get("participants") or []],
            created_at=doc.get("created_at") or utcnow(),
            updated_at=doc.get("updated_at"),
        )

    @staticmethod
    def _to_message(doc: Dict[str, Any]) -> Message:
        file_ref = None
        if doc.get("file_url"):
            file_ref = FileReference(
                url=doc["file_url"],
                file_type=doc.get("file_type") or "",
                file_name=doc.get("file_name") or "",
            )
        return Message(
            id=str(doc["_id"]),
            conversation_id=str(doc["conversation_id"]),
            sender_id=str(doc.get("sender_id")),
            text=doc.get("text") or "",
            file=file_ref,
            is_read=bool(doc.get("is_read", False)),
            created_at=doc.get("created_at") or utcnow(),
            updated_at=doc.get("updated_at"),
        )


__all__ = ["ConversationStore", "participant_key"]
