"""Create-or-fetch of pairwise conversation records."""

from __future__ import annotations

import logging

from .auth import LocalAuthProvider
from .config import CONVERSATIONS_COLLECTION
from .errors import NotAuthenticated, Result, StoreUnavailable
from .identity import conversation_id
from .models import Conversation
from .storage import DocumentStore

logger = logging.getLogger(__name__)


def conversation_path(conv_id: str) -> str:
    return f"{CONVERSATIONS_COLLECTION}/{conv_id}"


class ConversationRegistry:
    def __init__(self, store: DocumentStore, auth: LocalAuthProvider):
        self.store = store
        self.auth = auth

    async def get_or_create(self, self_id: str | None, other_id: str) -> Result[str]:
        """Return the id of the conversation between the two identities.

        The document is created on first contact. Two racing callers compute
        the same id and write the same content, so a duplicate create is
        harmless. ``self_id`` defaults to the signed-in identity.
        """
        if self_id is None:
            self_id = self.auth.current_user_id()
        if self_id is None:
            return Result.failure(NotAuthenticated())

        conv_id = conversation_id(self_id, other_id)
        try:
            if await self.store.get(conversation_path(conv_id)) is None:
                conv = Conversation(id=conv_id, participants=[self_id, other_id])
                await self.store.set(conversation_path(conv_id), conv.to_document())
                logger.info("Conversation created: %s", conv_id)
        except StoreUnavailable as exc:
            logger.warning("Could not open conversation %s: %s", conv_id, exc.message)
            return Result.failure(exc)

        return Result.success(conv_id)

    async def get(self, conv_id: str) -> Conversation | None:
        doc = await self.store.get(conversation_path(conv_id))
        if doc is None:
            return None
        return Conversation.from_document(doc, conv_id)
