"""Deterministic pairwise conversation ids."""

from __future__ import annotations

from .config import CONVERSATION_ID_SEPARATOR


def conversation_id(a: str, b: str) -> str:
    """Return the id shared by the unordered pair ``{a, b}``.

    Both identities are sorted before joining, so either participant
    computes the same id no matter who starts the conversation.
    """
    first, second = sorted((a, b))
    return f"{first}{CONVERSATION_ID_SEPARATOR}{second}"
