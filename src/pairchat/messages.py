"""Append-only message logs and their live views."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from .config import CONVERSATIONS_COLLECTION, MESSAGES_SUBCOLLECTION
from .conversations import conversation_path
from .errors import Result, StoreUnavailable
from .live import Subscription
from .models import Conversation, Message, to_millis, utcnow
from .storage import DocumentStore, Query, StoredDocument

logger = logging.getLogger(__name__)


def messages_path(conv_id: str) -> str:
    return f"{conversation_path(conv_id)}/{MESSAGES_SUBCOLLECTION}"


def _to_messages(docs: list[StoredDocument]) -> list[Message]:
    return [Message.from_document(d.data) for d in docs]


def _to_conversations(docs: list[StoredDocument]) -> list[Conversation]:
    return [Conversation.from_document(d.data, d.id) for d in docs]


class MessageLog:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self._clock = clock

    async def append(
        self, conv_id: str, sender_id: str, receiver_id: str, content: str
    ) -> Result[None]:
        """Add a message to the log, then refresh the conversation preview.

        The two writes are not atomic. A message can be visible in the log
        shortly before the preview shows it, and if the preview write fails
        the message stays sent and the preview stays stale. Content is not
        validated here.
        """
        sent_at = self._clock()
        message = Message(sender=sender_id, receiver=receiver_id, content=content, sent_at=sent_at)
        try:
            await self.store.add(messages_path(conv_id), message.to_document())
        except StoreUnavailable as exc:
            logger.warning("Message to %s not sent: %s", conv_id, exc.message)
            return Result.failure(exc)

        try:
            await self.store.update(
                conversation_path(conv_id),
                {"lastMessageText": content, "lastMessageAt": to_millis(sent_at)},
            )
        except StoreUnavailable as exc:
            logger.warning("Message sent but preview of %s is stale: %s", conv_id, exc.message)

        logger.debug("Message sent in %s by %s", conv_id, sender_id)
        return Result.success()

    def _log_query(self, conv_id: str) -> Query:
        return Query(collection=messages_path(conv_id)).order_by("sentAt")

    async def live_log(self, conv_id: str) -> Subscription:
        """The whole log, oldest first, re-delivered on every new message."""
        return await self.store.subscribe(self._log_query(conv_id), _to_messages)

    async def read_log(self, conv_id: str) -> list[Message]:
        return _to_messages(await self.store.query(self._log_query(conv_id)))

    def _conversations_query(self, self_id: str) -> Query:
        return (
            Query(collection=CONVERSATIONS_COLLECTION)
            .where("participants", "array_contains", self_id)
            .order_by("lastMessageAt", descending=True)
        )

    async def live_conversations_for(self, self_id: str | None) -> Subscription:
        """Conversations including ``self_id``, most recent activity first.

        Conversations with no messages yet come last.
        """
        if self_id is None:
            return Subscription.of([])
        return await self.store.subscribe(self._conversations_query(self_id), _to_conversations)

    async def conversations_for(self, self_id: str) -> list[Conversation]:
        return _to_conversations(await self.store.query(self._conversations_query(self_id)))
