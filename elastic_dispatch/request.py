"""A single outbound HTTP request and its body encoding."""

import gzip
import io
import json
from base64 import b64encode
from typing import Any, Iterable, Iterator, Optional, Union

import httpx
from pydantic import BaseModel

from elastic_dispatch.config import USER_AGENT
from elastic_dispatch.errors import InvalidRequestError

Content = Union[bytes, Iterable[bytes]]

_STREAM_CHUNK_SIZE = 65536


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, (set, frozenset)):
        return list(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_json(value: Any) -> bytes:
    if isinstance(value, BaseModel):
        return value.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
    return json.dumps(value, default=_json_default, separators=(",", ":")).encode("utf-8")


def basic_auth_header(username: str, password: str) -> str:
    token = b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def _iter_reader(reader: Any) -> Iterator[bytes]:
    while True:
        chunk = reader.read(_STREAM_CHUNK_SIZE)
        if not chunk:
            break
        yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk


class Request:
    def __init__(self, method: str, url: str) -> None:
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidRequestError(f"invalid request url {url!r}: {e}") from e
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise InvalidRequestError(f"invalid request url {url!r}: missing scheme or host")

        self.method = method.upper()
        self.url = url
        self.headers = httpx.Headers({
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        self.content: Optional[Content] = None

    def set_basic_auth(self, username: str, password: str) -> None:
        self.headers["Authorization"] = basic_auth_header(username, password)

    def set_body(self, body: Any, compress: bool = False) -> None:
        """Attach a body.

        ``str`` and bytes-likes are sent verbatim, readers (anything with
        ``read()``) are streamed, everything else is JSON encoded. With
        ``compress`` the payload is gzipped and Content-Length is the
        compressed size. Readers of unknown length are sent chunked unless
        compressed.
        """
        data: bytes
        if isinstance(body, str):
            data = body.encode("utf-8")
        elif isinstance(body, (bytes, bytearray, memoryview)):
            data = bytes(body)
        elif isinstance(body, io.BytesIO):
            data = body.getvalue()
        elif hasattr(body, "read"):
            if compress:
                data = b"".join(_iter_reader(body))
            else:
                self.content = _iter_reader(body)
                if "Content-Length" in self.headers:
                    del self.headers["Content-Length"]
                return
        else:
            data = encode_json(body)

        if compress:
            data = gzip.compress(data)
            self.headers["Content-Encoding"] = "gzip"
        self.content = data
        self.headers["Content-Length"] = str(len(data))

    def build(
        self,
        client: httpx.Client,
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
    ) -> httpx.Request:
        """Turn this into an httpx request on ``client``, applying a per-call timeout."""
        return client.build_request(self.method, self.url, headers=self.headers, content=self.content, timeout=timeout)

    def dump(self) -> str:
        """Human-readable dump of request line, headers and (text) body."""
        lines = [f"{self.method} {self.url} HTTP/1.1"]
        for key, value in self.headers.items():
            if key.lower() == "authorization":
                value = "<redacted>"
            lines.append(f"{key}: {value}")
        lines.append("")
        if isinstance(self.content, bytes):
            if "Content-Encoding" in self.headers:
                lines.append(f"<{len(self.content)} compressed bytes>")
            else:
                lines.append(self.content.decode("utf-8", errors="replace"))
        elif self.content is not None:
            lines.append("<streamed body>")
        return "\n".join(lines)
