from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from labbcat.client.http import HttpResponse
from labbcat.errors import ResponseException

log = logging.getLogger("labbcat.http")


class Response:
    """Standard LaBB-CAT response envelope.

    Every JSON endpoint answers with the same shape::

        {"title": ..., "version": ..., "code": 0,
         "errors": [...], "messages": [...], "model": ...}

    Parsing never raises; problems with the body itself (empty, not JSON) are
    reported as entries in ``errors`` so that :meth:`check_for_errors` can
    surface them.
    """

    def __init__(self, text: Optional[str] = None, *, http_status: int = -1):
        self.http_status = http_status
        self.title: Optional[str] = None
        self.version: Optional[str] = None
        self.code = -1
        self.errors: List[str] = []
        self.messages: List[str] = []
        self.model: Any = None
        self.raw: Optional[str] = None
        if text is not None:
            self.load(text)

    @classmethod
    def from_http(cls, http: HttpResponse) -> "Response":
        """Parse the envelope out of a raw HTTP response."""

        response = cls(http_status=http.status)
        if http.status != 200:
            log.debug("HTTP error: %s", http.status)
        return response.load(http.text())

    def load(self, text: str) -> "Response":
        self.raw = text
        if not text or not text.strip():
            self.errors = ["Empty response from server."]
            return self
        try:
            obj = json.loads(text)
        except ValueError:
            log.debug("response not JSON: %s", text[:200])
            self.errors = [f"Response not JSON: {text}"]
            return self
        if not isinstance(obj, dict):
            self.errors = [f"Response not JSON: {text}"]
            return self

        self.title = obj.get("title")
        self.version = obj.get("version")
        if obj.get("code") is not None:
            self.code = int(obj["code"])
        self.model = obj.get("model")
        self.messages = [str(m) for m in obj.get("messages") or []]
        self.errors = [str(e) for e in obj.get("errors") or []]
        return self

    def check_for_errors(self) -> "Response":
        """Raise :class:`ResponseException` if the response signals failure.

        Failure is any of: non-empty ``errors``, a positive ``code``, or an HTTP
        status other than 200.
        """

        if self.errors or self.code > 0 or (self.http_status > 0 and self.http_status != 200):
            raise ResponseException(self)
        return self

    def is_model_null(self) -> bool:
        return self.model is None

    def __repr__(self) -> str:
        return (
            f"Response(http_status={self.http_status}, code={self.code}, "
            f"version={self.version!r}, errors={self.errors!r})"
        )
