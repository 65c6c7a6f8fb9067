"""Wires the stores, provider and components into one application."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from .auth import LocalAuthProvider
from .conversations import ConversationRegistry
from .messages import MessageLog
from .profiles import ProfileStore
from .session import SessionManager
from .session_cache import SessionCache
from .storage import DocumentStore


class ChatApp:
    def __init__(self, store: DocumentStore, auth: LocalAuthProvider, cache: SessionCache):
        self.store = store
        self.auth = auth
        self.cache = cache
        self.profiles = ProfileStore(store, auth)
        self.conversations = ConversationRegistry(store, auth)
        self.messages = MessageLog(store)
        self.session = SessionManager(auth, self.profiles, cache)

    @classmethod
    async def open(
        cls,
        store_path: Path,
        auth_path: Path,
        session_path: Path,
        id_factory: Callable[[], str] | None = None,
    ) -> ChatApp:
        app = cls(
            DocumentStore(store_path),
            LocalAuthProvider(auth_path, id_factory=id_factory),
            SessionCache(session_path),
        )
        await app.session.restore()
        return app

    async def open_conversation(self, other_id: str) -> str:
        """Conversation id with ``other_id`` for the signed-in user; raises on failure."""
        return (await self.conversations.get_or_create(self.session.current_identity, other_id)).unwrap()

    async def send(self, other_id: str, content: str) -> str:
        """Open (or create) the conversation with ``other_id`` and append to it."""
        conv_id = await self.open_conversation(other_id)
        (await self.messages.append(conv_id, self.session.current_identity, other_id, content)).unwrap()
        return conv_id

    def close(self):
        self.session.close()
        self.store.close()
        self.auth.close()
