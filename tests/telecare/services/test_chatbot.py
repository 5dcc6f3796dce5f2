from __future__ import annotations

import asyncio

import httpx
import pytest
from telecare.core.exceptions import BlobStorageError, InvalidContentError, NotFoundError
from telecare.services.chatbot import (
    DEGRADED_REPLY,
    ChatbotService,
    derive_title,
    strip_asides,
)


@pytest.fixture
def chatbot(chat_history, fake_llm) -> ChatbotService:
    return ChatbotService(chat_history, fake_llm)


def _pdf_transport(body: bytes = b"%PDF-1.7", content_type: str = "application/pdf"):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("missing.pdf"):
            return httpx.Response(404)
        return httpx.Response(200, content=body, headers={"content-type": content_type})

    return httpx.MockTransport(handler)


def test_strip_asides_removes_parenthesised_text():
    assert strip_asides("Rest (as a precaution) and hydrate.") == "Rest and hydrate."
    assert strip_asides("  No asides here  ") == "No asides here"


def test_derive_title():
    assert derive_title("I have a mild headache") == "I have a mild headache"
    assert derive_title("x" * 31) == "x" * 30 + "..."
    assert derive_title("   ") == "New Chat"
    assert derive_title(None, "Report") == "Report"


def test_symptom_analysis_records_turns_and_titles_chat(chatbot, chat_history, fake_llm):
    chat = chat_history.create_chat("patient-1")
    fake_llm.reply = "Drink fluids (thinking: mild dehydration) and rest."

    reply = asyncio.run(chatbot.analyze_symptoms("patient-1", chat.id, "I feel dizzy"))

    assert reply.reply == "Drink fluids and rest."
    assert reply.chat_id == chat.id
    stored = chat_history.chats[chat.id]
    assert stored.title == "I feel dizzy"
    assert [(t.sender, t.text) for t in stored.messages] == [
        ("user", "I feel dizzy"),
        ("ai", "Drink fluids and rest."),
    ]
    assert stored.model_type == "gemini"


def test_symptom_analysis_sends_only_prior_turns(chatbot, chat_history, fake_llm):
    chat = chat_history.create_chat("patient-1")
    asyncio.run(chatbot.analyze_symptoms("patient-1", chat.id, "first"))
    asyncio.run(chatbot.analyze_symptoms("patient-1", chat.id, "second"))

    prior, message = fake_llm.chat_calls[-1]
    assert message == "second"
    assert [t.text for t in prior] == ["first", fake_llm.reply]
    assert chat_history.chats[chat.id].title == "first"


def test_symptom_analysis_degrades_when_llm_fails(chatbot, chat_history, fake_llm):
    chat = chat_history.create_chat("patient-1")
    fake_llm.fail = True

    reply = asyncio.run(chatbot.analyze_symptoms("patient-1", chat.id, "help"))

    assert reply.reply == DEGRADED_REPLY
    assert chat_history.chats[chat.id].messages[-1].text == DEGRADED_REPLY


def test_symptom_analysis_requires_own_chat(chatbot, chat_history):
    chat = chat_history.create_chat("patient-2")
    with pytest.raises(NotFoundError):
        asyncio.run(chatbot.analyze_symptoms("patient-1", chat.id, "hello"))


def test_symptom_analysis_requires_message(chatbot, chat_history):
    chat = chat_history.create_chat("patient-1")
    with pytest.raises(InvalidContentError):
        asyncio.run(chatbot.analyze_symptoms("patient-1", chat.id, "  "))


def test_report_analysis_creates_chat_and_stores_structured_reply(
    chatbot, chat_history, fake_llm
):
    reply = asyncio.run(
        chatbot.analyze_report(
            "patient-1", "null", b"%PDF", "application/pdf", "complete_blood_count_2025.pdf", None
        )
    )

    assert reply.reply == fake_llm.analysis
    chat = chat_history.chats[reply.chat_id]
    assert chat.title == "Report: complete_blood_count..."
    assert chat.messages[0].text == (
        "File attached: complete_blood_count_2025.pdf. User request: None"
    )
    assert chat.messages[1].text == fake_llm.analysis
    assert fake_llm.document_calls == [(b"%PDF", "application/pdf", None)]


def test_report_analysis_renames_default_chat(chatbot, chat_history):
    chat = chat_history.create_chat("patient-1")

    reply = asyncio.run(
        chatbot.analyze_report(
            "patient-1", chat.id, b"img", "image/png", "xray.png", "Is this fractured?"
        )
    )

    assert reply.chat_id == chat.id
    stored = chat_history.chats[chat.id]
    assert stored.title == "xray.png"
    assert stored.messages[0].text == "File attached: xray.png. User request: Is this fractured?"


def test_report_analysis_degrades_instead_of_failing(chatbot, chat_history, fake_llm):
    fake_llm.fail = True
    reply = asyncio.run(
        chatbot.analyze_report("patient-1", None, b"%PDF", "application/pdf", "labs.pdf")
    )
    assert reply.reply == DEGRADED_REPLY
    assert chat_history.chats[reply.chat_id].messages[-1].text == DEGRADED_REPLY


def test_report_analysis_requires_file(chatbot):
    with pytest.raises(InvalidContentError):
        asyncio.run(chatbot.analyze_report("patient-1", None, b"", "application/pdf", "x.pdf"))


def test_shared_report_is_downloaded_and_analyzed(chat_history, fake_llm):
    svc = ChatbotService(chat_history, fake_llm, transport=_pdf_transport())

    reply = asyncio.run(
        svc.analyze_shared_report(
            "patient-1",
            None,
            "https://res.cloudinary.com/demo/raw/upload/labs.pdf",
            file_name="labs.pdf",
            public_id="PDF-DOCS-IMGS/labs",
        )
    )

    assert reply.reply == fake_llm.analysis
    assert fake_llm.document_calls == [(b"%PDF-1.7", "application/pdf", None)]
    chat = chat_history.chats[reply.chat_id]
    assert chat.title == "Report: labs.pdf..."
    assert chat.messages[0].text == "Cloud file attached: labs.pdf. User request: None"


def test_shared_report_uses_hint_when_content_type_missing(chat_history, fake_llm):
    svc = ChatbotService(chat_history, fake_llm, transport=_pdf_transport(content_type=""))
    asyncio.run(
        svc.analyze_shared_report(
            "patient-1", None, "https://files.example/scan", file_type="image/jpeg"
        )
    )
    assert fake_llm.document_calls[0][1] == "image/jpeg"


def test_shared_report_download_failure(chat_history, fake_llm):
    svc = ChatbotService(chat_history, fake_llm, transport=_pdf_transport())
    with pytest.raises(BlobStorageError):
        asyncio.run(
            svc.analyze_shared_report("patient-1", None, "https://files.example/missing.pdf")
        )
    assert chat_history.chats == {}


def test_history_operations_are_scoped_to_owner(chatbot, chat_history):
    mine = asyncio.run(chatbot.create_chat("patient-1"))
    chat_history.create_chat("patient-2")

    assert [c.id for c in asyncio.run(chatbot.list_history("patient-1"))] == [mine.id]
    assert asyncio.run(chatbot.get_chat("patient-1", mine.id)).title == "New Chat"
    assert asyncio.run(chatbot.delete_chat("patient-2", mine.id)) is False
    assert asyncio.run(chatbot.delete_chat("patient-1", mine.id)) is True
    with pytest.raises(NotFoundError):
        asyncio.run(chatbot.get_chat("patient-1", mine.id))
