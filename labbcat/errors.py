from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from labbcat.response import Response


class StoreException(Exception):
    """Base error for anything that goes wrong talking to a LaBB-CAT server."""


class ResponseException(StoreException):
    """The server answered, but the response envelope reports a failure.

    The message is derived from the envelope: all error strings joined by
    newlines if there are any, otherwise the response code, otherwise the HTTP
    status.
    """

    def __init__(self, response: "Response"):
        super().__init__(_message_for(response))
        self.response = response


class RequestCancelledException(StoreException):
    """A multipart upload was cancelled before the request body was sent."""

    def __init__(self, message: str = "request cancelled", request: Optional[object] = None):
        super().__init__(message)
        self.request = request


def _message_for(response: "Response") -> Optional[str]:
    if response.errors:
        return "\n".join(response.errors)
    if response.code > 0:
        return f"Response code {response.code}"
    if response.http_status > 0:
        return f"HTTP status {response.http_status}"
    return None
