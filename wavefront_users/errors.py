from typing import Any


class WavefrontError(Exception):
    """
    Base Wavefront client error
    """


class ValidationError(WavefrontError):
    """A required field is empty. Raised before any request is issued."""


class TransportError(WavefrontError):
    def __init__(
        self,
        message: str = "Request failed",
        *,
        status: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.body = body


class NotFound(TransportError):
    def __init__(self, message: str = "Not Found", **kwargs: Any):
        super().__init__(message, **kwargs)


class ServerError(TransportError):
    def __init__(self, message: str = "Server Error", **kwargs: Any):
        super().__init__(message, **kwargs)


class DecodeError(WavefrontError):
    """Response body does not match the expected JSON shape."""
