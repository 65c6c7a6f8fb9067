"""Profile documents and the live roster."""

from __future__ import annotations

import logging

from .auth import LocalAuthProvider
from .config import PROFILES_COLLECTION
from .errors import NotAuthenticated, Result, StoreUnavailable
from .live import Subscription
from .models import Profile, ProfilePatch
from .storage import SERVER_TIMESTAMP, DocumentStore, Query, StoredDocument

logger = logging.getLogger(__name__)


def profile_path(user_id: str) -> str:
    return f"{PROFILES_COLLECTION}/{user_id}"


class ProfileStore:
    """Reads and writes profile documents keyed by identity."""

    def __init__(self, store: DocumentStore, auth: LocalAuthProvider):
        self.store = store
        self.auth = auth
        # Most recent roster snapshot delivered by any live_roster view
        self.last_roster: list[Profile] = []

    async def live_roster(self, excluding: str | None) -> Subscription:
        """Every profile except ``excluding``, re-delivered on each change.

        Order follows the store (insertion order). Signed-out callers
        (``excluding`` is None) get a single empty snapshot.
        """
        if excluding is None:
            return Subscription.of([])

        def to_roster(docs: list[StoredDocument]) -> list[Profile]:
            profiles = [Profile.from_document({"id": d.id, **d.data}) for d in docs]
            roster = [p for p in profiles if p.id != excluding]
            self.last_roster = roster
            return roster

        return await self.store.subscribe(Query(collection=PROFILES_COLLECTION), to_roster)

    async def create(self, profile: Profile):
        await self.store.set(profile_path(profile.id), profile.to_document())

    async def get_by_id(self, user_id: str) -> Profile | None:
        doc = await self.store.get(profile_path(user_id))
        if doc is None:
            return None
        return Profile.from_document({"id": user_id, **doc})

    async def get_current(self) -> Profile | None:
        user_id = self.auth.current_user_id()
        if user_id is None:
            return None
        return await self.get_by_id(user_id)

    async def update_profile(self, user_id: str, patch: ProfilePatch) -> Result[None]:
        """Apply a partial update; omitted fields keep their stored value."""
        current = self.auth.current_user_id()
        if current is None:
            return Result.failure(NotAuthenticated())
        if current != user_id:
            return Result.failure(NotAuthenticated("You can only edit your own profile."))

        fields = patch.to_update()
        fields["updatedAt"] = SERVER_TIMESTAMP
        try:
            await self.store.update(profile_path(user_id), fields)
        except StoreUnavailable as exc:
            logger.warning("Profile update failed for %s: %s", user_id, exc.message)
            return Result.failure(exc)

        logger.info("Profile updated for %s (%s)", user_id, ", ".join(sorted(fields)))
        return Result.success()
