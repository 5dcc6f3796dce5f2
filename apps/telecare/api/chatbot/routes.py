from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from telecare.api.dependencies import require_user_id
from telecare.core.dependencies import get_chatbot_service
from telecare.core.exceptions import NotFoundError
from telecare.schemas.chatbot import (
    ChatbotReply,
    ChatCreatedResponse,
    ChatHistoryResponse,
    ChatSession,
    SharedReportAnalysisRequest,
    SymptomAnalysisRequest,
)
from telecare.services.chatbot import ChatbotService

router = APIRouter(prefix="/api/chatbot", tags=["chatbot"])


@router.post("/symptom-analysis", response_model=ChatbotReply)
async def analyze_symptoms(
    payload: SymptomAnalysisRequest,
    user_id: str = Depends(require_user_id),
    svc: ChatbotService = Depends(get_chatbot_service),
) -> ChatbotReply:
    return await svc.analyze_symptoms(user_id, payload.chat_id, payload.message)


@router.post("/report-analysis", response_model=ChatbotReply)
async def analyze_report(
    file: UploadFile = File(...),
    chat_id: Optional[str] = Form(default=None),
    user_message: Optional[str] = Form(default=None),
    user_id: str = Depends(require_user_id),
    svc: ChatbotService = Depends(get_chatbot_service),
) -> ChatbotReply:
    data = await file.read()
    return await svc.analyze_report(
        user_id,
        chat_id,
        data,
        file.content_type,
        file.filename or "report",
        user_message,
    )


@router.post("/report-analysis/shared", response_model=ChatbotReply)
async def analyze_shared_report(
    payload: SharedReportAnalysisRequest,
    user_id: str = Depends(require_user_id),
    svc: ChatbotService = Depends(get_chatbot_service),
) -> ChatbotReply:
    return await svc.analyze_shared_report(
        user_id,
        payload.chat_id,
        payload.file_url,
        file_name=payload.file_name,
        file_type=payload.file_type,
        public_id=payload.public_id,
        user_message=payload.user_message,
    )


@router.get("/history", response_model=ChatHistoryResponse)
async def list_history(
    user_id: str = Depends(require_user_id),
    svc: ChatbotService = Depends(get_chatbot_service),
) -> ChatHistoryResponse:
    return ChatHistoryResponse(history=await svc.list_history(user_id))


@router.post("/history", response_model=ChatCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_chat(
    user_id: str = Depends(require_user_id),
    svc: ChatbotService = Depends(get_chatbot_service),
) -> ChatCreatedResponse:
    chat = await svc.create_chat(user_id)
    return ChatCreatedResponse(chat_id=chat.id)


@router.get("/history/{chat_id}", response_model=ChatSession)
async def get_chat(
    chat_id: str,
    user_id: str = Depends(require_user_id),
    svc: ChatbotService = Depends(get_chatbot_service),
) -> ChatSession:
    return await svc.get_chat(user_id, chat_id)


@router.delete("/history/{chat_id}")
async def delete_chat(
    chat_id: str,
    user_id: str = Depends(require_user_id),
    svc: ChatbotService = Depends(get_chatbot_service),
) -> dict[str, str]:
    if not await svc.delete_chat(user_id, chat_id):
        raise NotFoundError("Chat not found.")
    return {"message": "Chat deleted successfully."}
