from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict


class Response(BaseModel):
    """A successful (or explicitly ignored) response.

    ``body`` keeps the raw bytes; ``data`` holds what the client's decoder
    made of them, or None for an empty body (e.g. HEAD).
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status_code: int
    headers: httpx.Headers
    body: bytes = b""
    data: Any = None

    def dump(self) -> str:
        lines = [f"HTTP/1.1 {self.status_code}"]
        for key, value in self.headers.items():
            lines.append(f"{key}: {value}")
        lines.append("")
        lines.append(self.body.decode("utf-8", errors="replace"))
        return "\n".join(lines)
