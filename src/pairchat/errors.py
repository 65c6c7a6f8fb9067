"""Error taxonomy and the result value returned by command operations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ChatError(Exception):
    """Base class for every failure surfaced by pairchat."""

    default_message = "Something went wrong."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAuthenticated(ChatError):
    default_message = "You are not signed in."


class StoreUnavailable(ChatError):
    default_message = "The message store could not be reached."


class PayloadTooLarge(ChatError):
    default_message = "The image is too large."


class AuthErrorKind(str, Enum):
    WEAK_PASSWORD = "weak-password"
    EMAIL_IN_USE = "email-already-in-use"
    USER_NOT_FOUND = "user-not-found"
    WRONG_PASSWORD = "wrong-password"
    INVALID_EMAIL = "invalid-email"
    USER_DISABLED = "user-disabled"
    TOO_MANY_REQUESTS = "too-many-requests"
    UNKNOWN = "unknown"


_AUTH_MESSAGES = {
    AuthErrorKind.WEAK_PASSWORD: "The password is too weak.",
    AuthErrorKind.EMAIL_IN_USE: "This email is already in use.",
    AuthErrorKind.USER_NOT_FOUND: "No user found with this email.",
    AuthErrorKind.WRONG_PASSWORD: "Incorrect password.",
    AuthErrorKind.INVALID_EMAIL: "Invalid email address.",
    AuthErrorKind.USER_DISABLED: "This account has been disabled.",
    AuthErrorKind.TOO_MANY_REQUESTS: "Too many attempts. Try again later.",
}


class AuthError(ChatError):
    """A failure reported by the authentication provider."""

    def __init__(self, kind: AuthErrorKind, provider_message: str | None = None):
        self.kind = kind
        self.provider_message = provider_message
        message = _AUTH_MESSAGES.get(kind)
        if message is None:
            message = f"Authentication error: {provider_message or 'unknown'}"
        super().__init__(message)

    @classmethod
    def from_code(cls, code: str, provider_message: str | None = None) -> AuthError:
        try:
            kind = AuthErrorKind(code)
        except ValueError:
            kind = AuthErrorKind.UNKNOWN
        return cls(kind, provider_message)


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of an operation: either a value or a ChatError, never both."""

    value: T | None = None
    error: ChatError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ChatError) -> Result[T]:
        return cls(error=error)

    def unwrap(self) -> T | None:
        if self.error is not None:
            raise self.error
        return self.value
