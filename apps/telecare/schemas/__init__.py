"""Pydantic schemas shared across the app."""

from .chat import (
    Conversation,
    ConversationCreateRequest,
    FileReference,
    Message,
    MessageContent,
    MessageDeletedResponse,
    MessageSendRequest,
    SharedFileMessageRequest,
)
from .chatbot import ChatbotReply, ChatSession, ChatTurn
from .files import Report, StoredBlob
from .users import (
    DoctorDirectoryResponse,
    DoctorListResponse,
    DoctorStats,
    UserProfile,
    UserRole,
)

__all__ = [
    # Messaging
    "Conversation",
    "ConversationCreateRequest",
    "FileReference",
    "Message",
    "MessageContent",
    "MessageDeletedResponse",
    "MessageSendRequest",
    "SharedFileMessageRequest",
    # AI chat
    "ChatbotReply",
    "ChatSession",
    "ChatTurn",
    # Files
    "Report",
    "StoredBlob",
    # Identity
    "DoctorDirectoryResponse",
    "DoctorListResponse",
    "DoctorStats",
    "UserProfile",
    "UserRole",
]
