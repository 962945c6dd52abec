"""A single backend node and its liveness probe."""

import sys
import threading
from datetime import datetime
from typing import Mapping, Optional

import httpx

from elastic_dispatch.config import LOCAL_TZ
from elastic_dispatch.logging.logger import LogSink, make_record
from elastic_dispatch.logging.schema import LogRecord


def emit_probe_record(log: Optional[LogSink], record: LogRecord) -> None:
    """Hand ``record`` to ``log``; a failing sink is reported on stderr and never stops probing."""
    if log is None:
        return
    try:
        log.emit(record)
    except Exception as e:  # pylint: disable=broad-except
        print(f"elastic-dispatch: log sink {type(log).__name__} failed ({e!r}): {record.message}", file=sys.stderr)


class Node:
    """One Elasticsearch/OpenSearch endpoint.

    The liveness flag is written under a per-node lock by the probe and read
    without locking by the pool, so a request may race a concurrent update.
    """

    def __init__(self, url: str, alive: bool = False) -> None:
        self.url = url.rstrip("/")
        self._lock = threading.Lock()
        self._alive = alive
        self.last_checked: Optional[datetime] = None

    def __repr__(self) -> str:
        state = "alive" if self._alive else "dead"
        return f"Node({self.url!r}, {state})"

    def is_alive(self) -> bool:
        return self._alive

    def mark_alive(self) -> None:
        self._set_alive(True)

    def mark_dead(self) -> None:
        self._set_alive(False)

    def _set_alive(self, alive: bool) -> None:
        with self._lock:
            self._alive = alive
            self.last_checked = datetime.now(LOCAL_TZ)

    def probe(
        self,
        transport: httpx.Client,
        timeout: float,
        headers: Optional[Mapping[str, str]] = None,
        log: Optional[LogSink] = None,
    ) -> bool:
        """HEAD the node's base URL and update the liveness flag.

        Any transport error or a status other than 200 marks the node dead.
        Failures are logged to ``log`` and never raised.
        """
        try:
            response = transport.head(
                self.url + "/",
                params={"timeout": "1"},
                headers=headers,
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            self.mark_dead()
            emit_probe_record(log, make_record("ERROR", f"node {self.url} is dead", source=__name__, error=e, url=self.url))
            return False

        if response.status_code != 200:
            self.mark_dead()
            emit_probe_record(log, make_record(
                "ERROR",
                f"node {self.url} is dead: HEAD returned {response.status_code}",
                source=__name__,
                url=self.url,
                status=response.status_code,
            ))
            return False

        self.mark_alive()
        return True
