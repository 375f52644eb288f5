from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class ConflictError(AppError):
    pass


class ValidationError(AppError):
    pass


class CredentialError(AppError):
    """The ephemeral credential could not be obtained."""


class MediaAccessError(AppError):
    """The microphone is denied or unavailable."""


class NegotiationError(AppError):
    """The remote signaling endpoint rejected the offer."""

    def __init__(self, detail: str = "", details: str = "") -> None:
        self.details = details
        super().__init__(detail)


class SessionTimeoutError(AppError, TimeoutError):
    pass


class CaptureError(AppError):
    """A map snapshot could not be fetched or rendered."""


class ParseError(AppError):
    """An inbound channel message is not a valid event."""


class ChannelStateError(AppError):
    """An event was sent with no usable channel."""


class CredentialIssueError(AppError):
    """Upstream session issuance failed; carries the HTTP status to relay."""

    def __init__(self, detail: str, status_code: int = 500, details: str | None = None) -> None:
        self.status_code = status_code
        self.details = details
        super().__init__(detail)
