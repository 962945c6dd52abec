"""\
- Reader/writer lock guarding the dispatch client's configuration
- Path and query string helpers shared by the service functions
"""
import threading
from contextlib import contextmanager
from typing import Any, Generator, Iterable, Mapping, Optional, Union
from urllib.parse import quote, urlencode


class RWLock:
    """Many concurrent readers or a single writer.

    Writers are preferred: once a writer waits, new readers queue behind it,
    so a rare configuration change is not starved by steady request traffic.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Generator[None, None, None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Generator[None, None, None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(_query_value(v) for v in value)
    return str(value)


def build_query(params: Optional[Mapping[str, Any]]) -> str:
    """Percent-encode ``params``; None values are dropped."""
    if not params:
        return ""
    return urlencode([(key, _query_value(value)) for key, value in params.items() if value is not None])


def escape_segment(segment: Union[str, Iterable[str]]) -> str:
    """URL-escape one path segment; a list of names becomes a comma list."""
    if not isinstance(segment, str):
        segment = ",".join(segment)
    return quote(segment, safe=",*")


def build_path(*segments: Union[str, Iterable[str], None]) -> str:
    """Join escaped segments into an absolute path, skipping empty ones."""
    parts = []
    for segment in segments:
        if segment is None:
            continue
        escaped = escape_segment(segment)
        if escaped:
            parts.append(escaped)
    return "/" + "/".join(parts)
