"""Schemas for patient/doctor conversations and their messages."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from telecare.schemas.users import UserProfile


class FileReference(BaseModel):
    """Pointer to a file held by the blob store."""

    url: str
    file_type: str
    file_name: str


class MessageContent(BaseModel):
    """Payload of a message: text XOR a file reference.

    Validation of that rule lives in the dispatcher so that a malformed
    request surfaces as `InvalidContentError` rather than a schema error.
    """

    text: Optional[str] = None
    file: Optional[FileReference] = None


class Message(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    conversation_id: str
    sender_id: str
    text: str = ""
    file: Optional[FileReference] = None
    is_read: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None


class Conversation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    participants: List[str]
    participant_profiles: List[UserProfile] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None

    def includes(self, user_id: str) -> bool:
        return user_id in self.participants


class ConversationCreateRequest(BaseModel):
    recipient_id: str = Field(..., min_length=1)


class MessageSendRequest(BaseModel):
    conversation_id: str = Field(..., min_length=1)
    text: Optional[str] = None


class SharedFileMessageRequest(BaseModel):
    """Re-share a previously stored blob; missing details are looked up by `public_id`."""

    conversation_id: str = Field(..., min_length=1)
    public_id: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None


class MessageDeletedResponse(BaseModel):
    message_id: str


__all__ = [
    "Conversation",
    "ConversationCreateRequest",
    "FileReference",
    "Message",
    "MessageContent",
    "MessageDeletedResponse",
    "MessageSendRequest",
    "SharedFileMessageRequest",
]
