"""Service layer package.

Keep imports lazy to avoid initializing heavyweight dependencies at import time
(e.g., the Gemini SDK). Downstream code can still access common symbols from
`telecare.services` thanks to `__getattr__` proxies.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS = {
    "ChatbotService": "chatbot",
    "ChatHistoryStore": "chat_history",
    "ConversationStore": "conversation_store",
    "LLMService": "llm_service",
    "MessageDispatcher": "messaging",
    "PresenceRegistry": "presence",
    "RealtimeRouter": "realtime",
    "ReportService": "reports",
    "UserDirectory": "users",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:  # PEP 562 lazy attribute access
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(name)
    return getattr(import_module(f".{module_name}", __name__), name)
