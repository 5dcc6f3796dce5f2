"""Message and deletion dispatch for patient/doctor conversations.

Every mutation follows the same shape: validate, persist, then fan out to the
live connections of each participant. Persistence strictly precedes fan-out
and its failures propagate to the caller; fan-out failures are logged and
dropped because the stored record stays reachable through a history fetch.

Store and blob-store calls are blocking driver calls and run in the
threadpool, so unrelated requests may interleave between those awaits. Two
concurrent sends to one conversation are ordered by the store's timestamps,
not by request arrival.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from fastapi.concurrency import run_in_threadpool

from telecare.connectors.cloudinary_connector import CloudinaryBlobStore
from telecare.core.exceptions import (
    ConfigurationError,
    ConversationNotFoundError,
    ForbiddenError,
    InvalidContentError,
    InvalidParticipantsError,
    NotFoundError,
)
from telecare.schemas.chat import Conversation, FileReference, Message, MessageContent
from telecare.schemas.users import UserRole
from telecare.services.conversation_store import ConversationStore
from telecare.services.realtime import MESSAGE_DELETED, RECEIVE_MESSAGE, Notifier
from telecare.services.users import UserDirectory

logger = logging.getLogger(__name__)


def validate_content(content: MessageContent) -> MessageContent:
    """Enforce text XOR a well-formed file reference."""
    has_text = bool((content.text or "").strip())
    file_ref = content.file
    if file_ref is not None:
        if not (file_ref.url.strip() and file_ref.file_type.strip() and file_ref.file_name.strip()):
            raise InvalidContentError("File reference needs a url, a type and a file name.")
        if has_text:
            raise InvalidContentError("A message carries either text or a file, not both.")
        return MessageContent(text="", file=file_ref)
    if not has_text:
        raise InvalidContentError("Message content and conversation ID are required.")
    return MessageContent(text=content.text, file=None)


class MessageDispatcher:
    """Canonical path for creating, sending and retracting chat messages."""

    def __init__(
        self,
        store: ConversationStore,
        notifier: Notifier,
        *,
        blob_store: Optional[CloudinaryBlobStore] = None,
        users: Optional[UserDirectory] = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._blob_store = blob_store
        self._users = users

    # --------------- Conversations ---------------
    async def create_or_get_conversation(
        self, requester_id: str, recipient_id: str
    ) -> tuple[Conversation, bool]:
        if not recipient_id or recipient_id == requester_id:
            raise InvalidParticipantsError("Choose someone else to start a conversation with.")

        if self._users is not None:
            recipient = await run_in_threadpool(self._users.get_user, recipient_id)
            if recipient is None:
                raise NotFoundError("Recipient not found.")
            if recipient.role == UserRole.doctor and not recipient.is_verified:
                raise ForbiddenError("This doctor has not been verified yet.")

        conversation, created = await run_in_threadpool(
            self._store.get_or_create_conversation, [requester_id, recipient_id]
        )
        if created:
            logger.info("Created conversation %s", conversation.id)
        [conversation] = await self._with_profiles([conversation])
        return conversation, created

    async def list_conversations(self, user_id: str) -> List[Conversation]:
        conversations = await run_in_threadpool(self._store.list_conversations_for, user_id)
        return await self._with_profiles(conversations)

    async def list_messages(self, conversation_id: str, requester_id: str) -> List[Message]:
        conversation = await self._require_conversation(conversation_id)
        if not conversation.includes(requester_id):
            raise ForbiddenError("You are not a participant of this conversation.")
        return await run_in_threadpool(self._store.list_messages, conversation.id)

    # --------------- Sending ---------------
    async def send_message(
        self, conversation_id: str, sender_id: str, content: MessageContent
    ) -> Message:
        content = validate_content(content)
        conversation = await self._require_participant(conversation_id, sender_id)
        return await self._persist_and_fan_out(conversation, sender_id, content)

    async def send_file_message(
        self,
        conversation_id: str,
        sender_id: str,
        data: bytes,
        content_type: Optional[str],
        filename: Optional[str],
    ) -> Message:
        if not data or not filename:
            raise InvalidContentError("File upload failed.")
        blob_store = self._require_blob_store()
        conversation = await self._require_participant(conversation_id, sender_id)

        blob = await run_in_threadpool(blob_store.upload, data, content_type, filename)
        content = validate_content(
            MessageContent(
                file=FileReference(
                    url=blob.url,
                    file_type=blob.resolved_type,
                    file_name=filename,
                )
            )
        )
        return await self._persist_and_fan_out(conversation, sender_id, content)

    async def share_stored_file(
        self,
        conversation_id: str,
        sender_id: str,
        *,
        public_id: Optional[str] = None,
        url: Optional[str] = None,
        file_type: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> Message:
        """Re-share a blob that is already stored; nothing is uploaded."""
        if not (url and file_type and file_name):
            if not public_id:
                raise InvalidContentError("Provide the stored file's details or its public id.")
            blob = await run_in_threadpool(self._require_blob_store().resource, public_id)
            url = url or blob.url
            file_type = file_type or blob.resolved_type
            file_name = file_name or blob.resolved_filename

        content = validate_content(
            MessageContent(file=FileReference(url=url, file_type=file_type, file_name=file_name))
        )
        conversation = await self._require_participant(conversation_id, sender_id)
        return await self._persist_and_fan_out(conversation, sender_id, content)

    # --------------- Deletion ---------------
    async def delete_message(self, message_id: str, requester_id: str) -> str:
        message = await run_in_threadpool(self._store.find_message, message_id)
        if message is None:
            raise NotFoundError("Message not found.")
        if message.sender_id != requester_id:
            raise ForbiddenError("You are not authorized to delete this message.")

        deleted = await run_in_threadpool(self._store.delete_message, message.id)
        if not deleted:
            raise NotFoundError("Message not found.")

        conversation = await run_in_threadpool(
            self._store.get_conversation, message.conversation_id
        )
        if conversation is None:
            logger.warning("Message %s deleted from a missing conversation", message.id)
            return message.id
        await self._fan_out(conversation.participants, MESSAGE_DELETED, message.id)
        return message.id

    # --------------- helpers ---------------
    async def _persist_and_fan_out(
        self, conversation: Conversation, sender_id: str, content: MessageContent
    ) -> Message:
        message = await run_in_threadpool(
            self._store.append_message, conversation.id, sender_id, content
        )
        await self._fan_out(
            conversation.participants, RECEIVE_MESSAGE, message.model_dump(mode="json")
        )
        return message

    async def _fan_out(self, participants: Iterable[str], event: str, payload: Any) -> None:
        for participant in dict.fromkeys(participants):
            try:
                await self._notifier.emit_to_user(participant, event, payload)
            except Exception:
                logger.exception("Fan-out of %s to %s failed", event, participant)

    async def _require_conversation(self, conversation_id: str) -> Conversation:
        conversation = await run_in_threadpool(self._store.get_conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFoundError("Conversation not found.")
        return conversation

    async def _require_participant(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = await self._require_conversation(conversation_id)
        if not conversation.includes(user_id):
            raise ForbiddenError("You are not a participant of this conversation.")
        return conversation

    def _require_blob_store(self) -> CloudinaryBlobStore:
        if self._blob_store is None:
            raise ConfigurationError("File messages need a blob store.")
        return self._blob_store

    async def _with_profiles(self, conversations: List[Conversation]) -> List[Conversation]:
        if self._users is None or not conversations:
            return conversations
        ids = [p for c in conversations for p in c.participants]
        profiles = await run_in_threadpool(self._users.get_profiles, ids)
        return [
            c.model_copy(
                update={
                    "participant_profiles": [profiles[p] for p in c.participants if p in profiles]
                }
            )
            for c in conversations
        ]


__all__ = ["MessageDispatcher", "validate_content"]
