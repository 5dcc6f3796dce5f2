"""Central dependency providers.

These helpers keep heavy clients (Mongo, Cloudinary, Gemini) and the in-memory
presence registry process-scoped, so every request and every WebSocket sees
the same instances. Tests replace them with `app.dependency_overrides` or
clear the caches.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from pymongo.database import Database

if TYPE_CHECKING:
    from telecare.connectors.cloudinary_connector import CloudinaryBlobStore
    from telecare.connectors.mongo_connector import MongoConnector
    from telecare.services.chat_history import ChatHistoryStore
    from telecare.services.chatbot import ChatbotService
    from telecare.services.conversation_store import ConversationStore
    from telecare.services.llm_service import LLMService
    from telecare.services.messaging import MessageDispatcher
    from telecare.services.presence import PresenceRegistry
    from telecare.services.realtime import RealtimeRouter
    from telecare.services.reports import ReportService
    from telecare.services.users import UserDirectory


@lru_cache(maxsize=1)
def get_mongo_connector() -> MongoConnector:
    from telecare.connectors.mongo_connector import MongoConnector

    return MongoConnector()


@lru_cache(maxsize=1)
def get_mongo_database() -> Database:
    return get_mongo_connector().database


@lru_cache(maxsize=1)
def get_conversation_store() -> ConversationStore:
    from telecare.services.conversation_store import ConversationStore

    return ConversationStore(database=get_mongo_database())


@lru_cache(maxsize=1)
def get_chat_history_store() -> ChatHistoryStore:
    from telecare.services.chat_history import ChatHistoryStore

    return ChatHistoryStore(database=get_mongo_database())


@lru_cache(maxsize=1)
def get_user_directory() -> UserDirectory:
    from telecare.services.users import UserDirectory

    return UserDirectory(database=get_mongo_database())


@lru_cache(maxsize=1)
def get_presence_registry() -> PresenceRegistry:
    from telecare.services.presence import PresenceRegistry

    return PresenceRegistry()


@lru_cache(maxsize=1)
def get_realtime_router() -> RealtimeRouter:
    from telecare.services.realtime import RealtimeRouter

    return RealtimeRouter(registry=get_presence_registry())


@lru_cache(maxsize=1)
def get_blob_store() -> CloudinaryBlobStore:
    from telecare.connectors.cloudinary_connector import CloudinaryBlobStore

    return CloudinaryBlobStore()


@lru_cache(maxsize=1)
def get_llm_service() -> LLMService:
    from telecare.services.llm_service import LLMService

    return LLMService()


@lru_cache(maxsize=1)
def get_message_dispatcher() -> MessageDispatcher:
    from telecare.services.messaging import MessageDispatcher

    return MessageDispatcher(
        get_conversation_store(),
        get_realtime_router(),
        blob_store=get_blob_store(),
        users=get_user_directory(),
    )


@lru_cache(maxsize=1)
def get_chatbot_service() -> ChatbotService:
    from telecare.services.chatbot import ChatbotService

    return ChatbotService(get_chat_history_store(), get_llm_service())


@lru_cache(maxsize=1)
def get_report_service() -> ReportService:
    from telecare.services.reports import ReportService

    return ReportService(database=get_mongo_database(), blob_store=get_blob_store())


__all__ = [
    "get_blob_store",
    "get_chat_history_store",
    "get_chatbot_service",
    "get_conversation_store",
    "get_llm_service",
    "get_message_dispatcher",
    "get_mongo_connector",
    "get_mongo_database",
    "get_presence_registry",
    "get_realtime_router",
    "get_report_service",
    "get_user_directory",
]
