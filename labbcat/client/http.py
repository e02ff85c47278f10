from __future__ import annotations

import base64
import json
import logging
import mimetypes
import ssl
import uuid
from dataclasses import dataclass
from http.cookiejar import CookieJar
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union
from urllib.error import HTTPError, URLError
from urllib.parse import quote_plus
from urllib.request import HTTPCookieProcessor, HTTPSHandler, Request, build_opener

from labbcat.errors import RequestCancelledException, StoreException

log = logging.getLogger("labbcat.http")

USER_AGENT = "Python labbcat-client 0.1.0"
CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """HTTP response wrapper.

    Security notes:
    - Treat `body_bytes` as untrusted.

    """

    status: int
    headers: Mapping[str, str]
    body_bytes: bytes

    def json(self) -> Any:
        """Decode body as JSON."""

        return json.loads(self.body_bytes.decode("utf-8", errors="strict"))

    def text(self) -> str:
        return self.body_bytes.decode("utf-8", errors="replace")

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""

        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    def suggested_filename(self) -> Optional[str]:
        """File name from a `Content-Disposition: attachment; filename=...` header."""

        disp = self.header("Content-Disposition")
        if not disp or "=" not in disp:
            return None
        name = disp.split("=", 1)[1].strip('" ;')
        # never let the server choose a directory
        name = name.replace("\\", "/").rsplit("/", 1)[-1]
        return name or None

    def save_to(self, path: Union[str, Path]) -> Path:
        out = Path(path)
        out.write_bytes(self.body_bytes)
        return out


def encode_value(value: Any) -> str:
    """Encode a scalar parameter value the way the server expects it."""

    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _values(value: Any) -> List[Any]:
    """Flatten a parameter value: None is dropped, sequences repeat the parameter."""

    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return [v for v in value if v is not None]
    return [value]


def encode_params(params: Optional[Mapping[str, Any]]) -> str:
    """URL-encode parameters in insertion order.

    Sequence values repeat the parameter name once per item, and None values
    are skipped entirely.
    """

    if not params:
        return ""
    pairs = []
    for name, value in params.items():
        for item in _values(value):
            pairs.append(f"{quote_plus(str(name))}={quote_plus(encode_value(item))}")
    return "&".join(pairs)


def with_query(url: str, params: Optional[Mapping[str, Any]]) -> str:
    """Append a query string to `url`, respecting any query it already has."""

    query = encode_params(params)
    if not query:
        return url
    return url + ("&" if "?" in url else "?") + query


def basic_authorization(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class HttpSession:
    """Stdlib-only HTTP session for the LaBB-CAT API.

    All requests share one cookie jar, so the servlet session cookie set by the
    server on the first authenticated request is replayed on every later one.

    Security notes:
    - Does NOT disable TLS verification.
    - Never logs request bodies or the authorization value.

    """

    def __init__(
        self,
        *,
        user_agent: str = USER_AGENT,
        language: Optional[str] = None,
        timeout: float = 180.0,
        max_upload_bytes: int = 2 * 1024 * 1024 * 1024,
    ):
        self.user_agent = user_agent
        self.language = language
        self.timeout = float(timeout)
        self.max_upload_bytes = int(max_upload_bytes)
        self.authorization: Optional[str] = None
        self.cookies = CookieJar()
        self._opener = build_opener(
            HTTPCookieProcessor(self.cookies),
            HTTPSHandler(context=ssl.create_default_context()),
        )

    def get(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        headers: Optional[Mapping[str, str]] = None,
        method: str = "GET",
    ) -> HttpResponse:
        """HTTP GET (or another body-less method) with a query string."""

        return self.request(method, with_query(url, params), headers=headers)

    def post(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        headers: Optional[Mapping[str, str]] = None,
        method: str = "POST",
    ) -> HttpResponse:
        """HTTP POST with an application/x-www-form-urlencoded body."""

        body = encode_params(params).encode("utf-8")
        merged = {"Content-Type": "application/x-www-form-urlencoded"}
        merged.update(headers or {})
        return self.request(method, url, body=body, headers=merged)

    def put(self, url: str, params=None, *, headers=None) -> HttpResponse:
        return self.post(url, params, headers=headers, method="PUT")

    def delete(self, url: str, params=None, *, headers=None) -> HttpResponse:
        return self.post(url, params, headers=headers, method="DELETE")

    def send_json(
        self, url: str, obj: Any, *, method: str = "POST", headers=None
    ) -> HttpResponse:
        """Send `obj` as a JSON request body."""

        body = json.dumps(obj).encode("utf-8")
        merged = {"Content-Type": "application/json; charset=utf-8"}
        merged.update(headers or {})
        return self.request(method, url, body=body, headers=merged)

    def send_text(
        self,
        url: str,
        text: str,
        *,
        method: str = "PUT",
        content_type: str = "text/html; charset=utf-8",
        headers=None,
    ) -> HttpResponse:
        merged = {"Content-Type": content_type}
        merged.update(headers or {})
        return self.request(method, url, body=text.encode("utf-8"), headers=merged)

    def multipart(self, url: str, *, headers: Optional[Mapping[str, str]] = None) -> "MultipartRequest":
        return MultipartRequest(self, url, headers=headers)

    def request(
        self,
        method: str,
        url: str,
        *,
        body: Union[bytes, Iterator[bytes], None] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResponse:
        """Execute a request.

        HTTP error statuses are returned, not raised. Network failures raise
        StoreException.
        """

        req = Request(url=url, data=body, method=method)
        for key, value in self._default_headers().items():
            req.add_header(key, value)
        for key, value in (headers or {}).items():
            req.add_header(key, value)
        log.debug("%s %s", method, url)
        return self._do_request(req)

    def _default_headers(self) -> Dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if self.language:
            headers["Accept-Language"] = self.language
        if self.authorization:
            if self.authorization.startswith("Cookie "):
                headers["Cookie"] = self.authorization[len("Cookie ") :]
            else:
                headers["Authorization"] = self.authorization
        return headers

    def _do_request(self, req: Request) -> HttpResponse:
        """Execute a request.

        Security notes:
        - Uses default SSL context (verification ON).
        """

        try:
            with self._opener.open(req, timeout=self.timeout) as resp:
                body = resp.read()
                headers = {k: v for k, v in resp.headers.items()}
                return HttpResponse(status=int(resp.status), headers=headers, body_bytes=body)
        except HTTPError as e:
            body = e.read() if e.fp is not None else b""
            headers = dict(getattr(e, "headers", {}) or {})
            log.debug("HTTP %s from %s %s", e.code, req.get_method(), req.full_url)
            return HttpResponse(
                status=int(getattr(e, "code", 0) or 0), headers=headers, body_bytes=body
            )
        except (URLError, OSError) as e:
            raise StoreException("Could not get response.") from e


@dataclass(slots=True)
class _Part:
    name: str
    value: Optional[str] = None
    path: Optional[Path] = None
    filename: Optional[str] = None
    content_type: Optional[str] = None


class MultipartRequest:
    """A multipart/form-data POST that streams file parts and can be cancelled.

    Parts are sent in the order they were added. The body is produced lazily
    in chunks; :meth:`cancel` sets a flag that is checked before every chunk is
    handed to the connection, so a large upload stops promptly.

    Security notes:
    - A client-side cap on total file bytes is enforced before anything is sent.

    """

    def __init__(
        self, session: HttpSession, url: str, *, headers: Optional[Mapping[str, str]] = None
    ):
        self.session = session
        self.url = url
        self.headers = dict(headers or {})
        self.boundary = "----labbcat-" + uuid.uuid4().hex
        self._parts: List[_Part] = []
        self._cancelling = False

    def set_parameter(self, name: str, value: Any) -> "MultipartRequest":
        """Add a form field. `Path` values become file parts, sequences repeat."""

        for item in _values(value):
            if isinstance(item, Path):
                self.set_file(name, item)
            else:
                self._parts.append(_Part(name=name, value=encode_value(item)))
        return self

    def set_file(
        self,
        name: str,
        path: Union[str, Path],
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> "MultipartRequest":
        file_path = Path(path)
        fname = filename or file_path.name
        ctype = content_type or mimetypes.guess_type(fname)[0] or "application/octet-stream"
        self._parts.append(_Part(name=name, path=file_path, filename=fname, content_type=ctype))
        return self

    def cancel(self) -> None:
        self._cancelling = True

    def is_cancelling(self) -> bool:
        return self._cancelling

    def file_bytes(self) -> int:
        return sum(p.path.stat().st_size for p in self._parts if p.path is not None)

    def content_length(self) -> int:
        total = 0
        for segment in self._segments():
            total += segment.stat().st_size if isinstance(segment, Path) else len(segment)
        return total

    def body_chunks(self) -> Iterator[bytes]:
        """Yield the encoded body; raises RequestCancelledException once cancelled."""

        for segment in self._segments():
            if isinstance(segment, Path):
                with open(segment, "rb") as f:
                    while True:
                        self._check_cancelled()
                        chunk = f.read(CHUNK_SIZE)
                        if not chunk:
                            break
                        yield chunk
            else:
                self._check_cancelled()
                yield segment

    def post(self) -> HttpResponse:
        size = self.file_bytes()
        if size > self.session.max_upload_bytes:
            raise ValueError(
                f"upload too large for client upload cap: {size} > {self.session.max_upload_bytes}"
            )
        self._check_cancelled()
        headers = {
            "Content-Type": f"multipart/form-data; boundary={self.boundary}",
            "Content-Length": str(self.content_length()),
        }
        headers.update(self.headers)
        log.debug("%s", self)
        return self.session.request("POST", self.url, body=self.body_chunks(), headers=headers)

    def _segments(self) -> Iterator[Union[bytes, Path]]:
        crlf = b"\r\n"
        for part in self._parts:
            yield f"--{self.boundary}\r\n".encode("utf-8")
            if part.path is None:
                yield f'Content-Disposition: form-data; name="{part.name}"\r\n\r\n'.encode("utf-8")
                yield (part.value or "").encode("utf-8")
            else:
                yield (
                    f'Content-Disposition: form-data; name="{part.name}"; '
                    f'filename="{part.filename}"\r\n'
                    f"Content-Type: {part.content_type}\r\n\r\n"
                ).encode("utf-8")
                yield part.path
            yield crlf
        yield f"--{self.boundary}--\r\n".encode("utf-8")

    def _check_cancelled(self) -> None:
        if self._cancelling:
            raise RequestCancelledException(request=self)

    def __str__(self) -> str:
        names = " ".join(
            f"{p.name}={p.filename}" if p.path is not None else f"{p.name}={p.value}"
            for p in self._parts
        )
        return f"POST {self.url} : {names}"
