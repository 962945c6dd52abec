"""Round-robin node selection and the periodic health check."""

import sys
import threading
from typing import List, Mapping, Optional, Sequence

import httpx

from elastic_dispatch.config import DEFAULT_URL
from elastic_dispatch.errors import NoClientError
from elastic_dispatch.logging.logger import LogSink, make_record
from elastic_dispatch.node import Node, emit_probe_record


class NodePool:
    """Ordered set of nodes plus a cursor shared by all callers.

    ``next_url`` scans at most once around the nodes, starting right after
    the node it returned last, and skips dead ones. The cursor lock is held
    only for that scan.
    """

    def __init__(self, urls: Sequence[str] = (), alive: bool = False) -> None:
        self._lock = threading.Lock()
        self._nodes: List[Node] = []
        self._index = -1

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        for url in urls or [DEFAULT_URL]:
            self.add(Node(url, alive=alive))

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    @property
    def nodes(self) -> List[Node]:
        with self._lock:
            return list(self._nodes)

    def add(self, node: Node) -> None:
        with self._lock:
            self._nodes.append(node)

    def next_url(self) -> str:
        """Base URL of the next live node.

        Raises:
            NoClientError: if no node is alive (or the pool is empty)
        """
        with self._lock:
            count = len(self._nodes)
            for _ in range(count):
                self._index = (self._index + 1) % count
                candidate = self._nodes[self._index]
                if candidate.is_alive():
                    return candidate.url
        raise NoClientError()

    def probe_all(
        self,
        transport: httpx.Client,
        timeout: float,
        headers: Optional[Mapping[str, str]] = None,
        log: Optional[LogSink] = None,
    ) -> None:
        """Probe every node once. A node whose probe raises is marked dead and the rest are still probed."""
        for node in self.nodes:
            try:
                node.probe(transport, timeout, headers=headers, log=log)
            except Exception as e:  # pylint: disable=broad-except
                node.mark_dead()
                emit_probe_record(log, make_record(
                    "ERROR", f"probe of node {node.url} failed", source=__name__, error=e, url=node.url,
                ))

    @property
    def healthcheck_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start_healthcheck(
        self,
        transport: httpx.Client,
        interval: float,
        timeout: float,
        headers: Optional[Mapping[str, str]] = None,
        log: Optional[LogSink] = None,
    ) -> None:
        """Start one background thread that re-probes every node each ``interval`` seconds."""
        if self.healthcheck_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._healthcheck_loop,
            args=(transport, interval, timeout, headers, log),
            name="elastic-dispatch-healthcheck",
            daemon=True,
        )
        self._thread.start()

    def stop_healthcheck(self, wait: Optional[float] = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(wait)
        self._thread = None

    def _healthcheck_loop(
        self,
        transport: httpx.Client,
        interval: float,
        timeout: float,
        headers: Optional[Mapping[str, str]],
        log: Optional[LogSink],
    ) -> None:
        while not self._stop.wait(interval):
            try:
                self.probe_all(transport, timeout, headers=headers, log=log)
            except Exception as e:  # pylint: disable=broad-except
                print(f"elastic-dispatch: health check round failed: {e!r}", file=sys.stderr)
