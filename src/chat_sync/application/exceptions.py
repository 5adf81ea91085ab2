from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ForbiddenError(AppError):
    pass


class ValidationError(AppError):
    """Malformed input: a candidate message, a request body, an attachment."""


class RequestError(AppError):
    """A fetch or mutation against the chat API failed."""

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class ChannelError(AppError):
    """The live channel failed or was closed by the peer."""

    def __init__(self, detail: str = "", close_code: int | None = None) -> None:
        self.close_code = close_code
        super().__init__(detail)


class UploadError(AppError):
    """An attachment transfer to storage failed."""
