"""Session lifecycle: sign-up, login, logout and the cached profile."""

from __future__ import annotations

import logging

from .auth import LocalAuthProvider, ProviderError
from .config import SESSION_KEY
from .errors import AuthError, ChatError, NotAuthenticated, Result, StoreUnavailable
from .models import Profile, ProfilePatch
from .profiles import ProfileStore
from .session_cache import SessionCache

logger = logging.getLogger(__name__)


class SessionManager:
    """Keeps the cached profile in step with the provider's identity.

    The provider's identity-change events are the only source of truth for
    who is signed in; the listener is registered once, here.
    """

    def __init__(self, auth: LocalAuthProvider, profiles: ProfileStore, cache: SessionCache):
        self.auth = auth
        self.profiles = profiles
        self.cache = cache
        self.current_identity: str | None = None
        self.current_profile: Profile | None = None
        self.last_error: str | None = None
        self._remove_listener = auth.add_identity_listener(self._on_identity_changed)

    @property
    def is_authenticated(self) -> bool:
        return self.current_identity is not None

    async def restore(self):
        """Replay the provider's persisted identity into the cache."""
        await self._on_identity_changed(self.auth.current_user_id())

    async def _on_identity_changed(self, user_id: str | None):
        self.current_identity = user_id
        if user_id is None:
            self.current_profile = None
            return
        await self._load_profile(user_id)

    async def _load_profile(self, user_id: str):
        try:
            self.current_profile = await self.profiles.get_by_id(user_id)
        except StoreUnavailable as exc:
            logger.warning("Could not load profile for %s: %s", user_id, exc.message)
            self.current_profile = None

    async def refresh_profile(self) -> Profile | None:
        if self.current_identity is not None:
            await self._load_profile(self.current_identity)
        return self.current_profile

    def _fail(self, error: ChatError) -> Result[None]:
        self.last_error = error.message
        return Result.failure(error)

    def clear_error(self):
        self.last_error = None

    async def sign_up(self, email: str, password: str, display_name: str) -> Result[None]:
        """Create the account, its profile, then remember the session.

        A failure after the account exists leaves an account without a
        profile; nothing is rolled back.
        """
        self.last_error = None
        try:
            user_id = await self.auth.create_account(email, password)
        except ProviderError as exc:
            logger.info("Sign-up refused for %s: %s", email, exc.code)
            return self._fail(AuthError.from_code(exc.code, exc.message))

        profile = Profile(id=user_id, display_name=display_name, email=email)
        try:
            await self.profiles.create(profile)
            self.current_profile = profile
            self.cache.set(SESSION_KEY, user_id)
        except StoreUnavailable as exc:
            logger.error("Account %s created but sign-up did not complete: %s", user_id, exc.message)
            return self._fail(exc)

        logger.info("Signed up %s as %s", email, user_id)
        return Result.success()

    async def login(self, email: str, password: str) -> Result[None]:
        self.last_error = None
        try:
            user_id = await self.auth.authenticate(email, password)
        except ProviderError as exc:
            logger.info("Login refused for %s: %s", email, exc.code)
            return self._fail(AuthError.from_code(exc.code, exc.message))

        try:
            self.cache.set(SESSION_KEY, user_id)
        except StoreUnavailable as exc:
            return self._fail(exc)
        return Result.success()

    async def logout(self) -> Result[None]:
        """Sign out everywhere. Local state is cleared even if the provider fails."""
        failure: ChatError | None = None
        try:
            await self.auth.sign_out()
        except ProviderError as exc:
            logger.warning("Provider sign-out failed: %s", exc.message)
            failure = AuthError.from_code(exc.code, exc.message)

        try:
            self.cache.remove(SESSION_KEY)
        except StoreUnavailable as exc:
            logger.warning("Could not clear saved session: %s", exc.message)
            failure = failure or exc

        self.current_identity = None
        self.current_profile = None
        if failure is not None:
            return self._fail(failure)
        return Result.success()

    def get_saved_identity(self) -> str | None:
        """The locally remembered identity; it can outlive the provider's session."""
        try:
            return self.cache.get(SESSION_KEY)
        except StoreUnavailable as exc:
            logger.warning("Could not read saved session: %s", exc.message)
            return None

    async def update_profile(self, patch: ProfilePatch) -> Result[None]:
        if self.current_identity is None:
            return self._fail(NotAuthenticated())
        result = await self.profiles.update_profile(self.current_identity, patch)
        if not result.ok:
            return self._fail(result.error)
        await self.refresh_profile()
        return result

    def close(self):
        self._remove_listener()
