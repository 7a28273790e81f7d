"""SDK error types."""

from __future__ import annotations

from collections.abc import Sequence


class ImageUpdateError(RuntimeError):
    """Base SDK error."""

    label = "update error"


class ConfigurationError(ImageUpdateError):
    """A required setting or credential is missing."""

    label = "config error"


class TransportError(ImageUpdateError):
    """Remote could not be reached or answered with an infrastructure failure."""

    label = "transport error"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SessionAcquisitionError(ImageUpdateError):
    """Anti-forgery token or session cookies could not be obtained."""

    label = "session error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OrganizationNotFoundError(ImageUpdateError):
    """Organization slug did not resolve to an id."""

    label = "organization error"


class UpdateRejectedError(ImageUpdateError):
    """Settings form submission was declined by the remote."""

    label = "update rejected"

    def __init__(self, message: str, *, status_code: int, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MutationError(ImageUpdateError):
    """GraphQL mutation returned errors or no usable data."""

    label = "mutation error"

    def __init__(self, message: str, *, messages: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.messages = list(messages)
