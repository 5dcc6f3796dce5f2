from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# AI turns may carry a structured report analysis instead of plain text.
TurnText = Union[str, Dict[str, Any]]


class ChatTurn(BaseModel):
    sender: Literal["user", "ai"]
    text: TurnText
    created_at: Optional[datetime] = None


class ChatSession(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    title: str
    messages: List[ChatTurn] = Field(default_factory=list)
    model_type: str = "gemini"
    created_at: datetime


class SymptomAnalysisRequest(BaseModel):
    message: str
    chat_id: str

    @field_validator("message")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not (v or "").strip():
            raise ValueError("Message is required.")
        return v


class SharedReportAnalysisRequest(BaseModel):
    file_url: str = Field(..., min_length=1)
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    public_id: Optional[str] = None
    user_message: Optional[str] = None
    chat_id: Optional[str] = None


class ChatbotReply(BaseModel):
    reply: TurnText
    chat_id: str


class ChatCreatedResponse(BaseModel):
    chat_id: str


class ChatHistoryResponse(BaseModel):
    history: List[ChatSession]


__all__ = [
    "ChatCreatedResponse",
    "ChatHistoryResponse",
    "ChatSession",
    "ChatTurn",
    "ChatbotReply",
    "SharedReportAnalysisRequest",
    "SymptomAnalysisRequest",
    "TurnText",
]
