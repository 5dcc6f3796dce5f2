"""AI chat sessions (Mongo-backed).

One document per session in the `chats` collection; turns are embedded in
`messages` in the order they were appended. Sessions are always scoped to
the owning user: a session id belonging to someone else behaves as absent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from telecare.connectors.mongo_connector import storage_errors
from telecare.core.settings import settings
from telecare.core.utils import maybe_object_id, utcnow
from telecare.schemas.chatbot import ChatSession, ChatTurn

DEFAULT_TITLE = "New Chat"


@dataclass
class ChatHistoryStore:
    database: Database
    collection_name: str = settings.chats_collection

    def __post_init__(self) -> None:
        self._chats: Collection = self.database.get_collection(self.collection_name)

    def ensure_indexes(self) -> None:
        with storage_errors("create chat indexes"):
            self._chats.create_index(
                [("user_id", ASCENDING), ("created_at", DESCENDING)], name="user_created"
            )

    def create_chat(self, user_id: str, title: str = DEFAULT_TITLE) -> ChatSession:
        now = utcnow()
        doc: Dict[str, Any] = {
            "user_id": user_id,
            "title": title or DEFAULT_TITLE,
            "messages": [],
            "model_type": "gemini",
            "created_at": now,
            "updated_at": now,
        }
        with storage_errors("create chat"):
            res = self._chats.insert_one(doc)
        doc["_id"] = res.inserted_id
        return self._to_session(doc)

    def list_chats(self, user_id: str) -> List[ChatSession]:
        with storage_errors("list chats"):
            cursor = self._chats.find({"user_id": user_id}).sort("created_at", DESCENDING)
            return [self._to_session(doc) for doc in cursor]

    def get_chat(self, chat_id: str, user_id: str) -> Optional[ChatSession]:
        oid = maybe_object_id(chat_id)
        if oid is None:
            return None
        with storage_errors("load chat"):
            doc = self._chats.find_one({"_id": oid, "user_id": user_id})
        return self._to_session(doc) if doc else None

    def delete_chat(self, chat_id: str, user_id: str) -> bool:
        oid = maybe_object_id(chat_id)
        if oid is None:
            return False
        with storage_errors("delete chat"):
            res = self._chats.delete_one({"_id": oid, "user_id": user_id})
        return res.deleted_count > 0

    def append_turns(
        self,
        chat_id: str,
        turns: Sequence[ChatTurn],
        *,
        title: Optional[str] = None,
        model_type: str = "gemini",
    ) -> None:
        oid = maybe_object_id(chat_id)
        if oid is None:
            return
        now = utcnow()
        fields: Dict[str, Any] = {"updated_at": now, "model_type": model_type}
        if title:
            fields["title"] = title
        pushed = [
            {"sender": t.sender, "text": t.text, "created_at": t.created_at or now}
            for t in turns
        ]
        with storage_errors("save chat turns"):
            self._chats.update_one(
                {"_id": oid},
                {"$push": {"messages": {"$each": pushed}}, "$set": fields},
            )

    @staticmethod
    def _to_session(doc: Dict[str, Any]) -> ChatSession:
        return ChatSession(
            id=str(doc["_id"]),
            user_id=str(doc.get("user_id")),
            title=doc.get("title") or DEFAULT_TITLE,
            messages=[
                ChatTurn(
                    sender=m.get("sender", "ai"),
                    text=m.get("text", ""),
                    created_at=m.get("created_at"),
                )
                for m in doc.get("messages") or []
            ],
            model_type=doc.get("model_type") or "gemini",
            created_at=doc.get("created_at") or utcnow(),
        )


__all__ = ["ChatHistoryStore", "DEFAULT_TITLE"]
