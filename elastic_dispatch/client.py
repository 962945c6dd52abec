"""The dispatch client every service function sends its requests through."""

import threading
import time
from typing import Any, Collection, Dict, Mapping, Optional, Tuple

import httpx

from elastic_dispatch.config import Config
from elastic_dispatch.decoder import Decoder, DefaultDecoder
from elastic_dispatch.errors import (ElasticError, RequestCanceledError,
                                     create_response_error)
from elastic_dispatch.logging.logger import LogSink, make_record
from elastic_dispatch.pool import NodePool
from elastic_dispatch.request import Request, basic_auth_header
from elastic_dispatch.response import Response
from elastic_dispatch.utils import RWLock, build_query


class Client:
    """Owns the node pool, the HTTP transport, the decoder and the log sinks.

    Create one per application and pass it to the service functions; it is
    safe to share between threads. Call :meth:`close` (or use it as a context
    manager) to stop the health check and release the transport.

    Args:
        config: Node URLs, credentials, gzip, health check settings
        transport: An ``httpx.Client`` to send requests with. When omitted the
            client creates (and later closes) its own.
        decoder: Turns response bodies into values; ``DefaultDecoder`` if omitted
        error_log: Receives probe failures and transport errors
        info_log: Receives one record per completed request
        trace_log: Receives full request and response dumps
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        transport: Optional[httpx.Client] = None,
        decoder: Optional[Decoder] = None,
        error_log: Optional[LogSink] = None,
        info_log: Optional[LogSink] = None,
        trace_log: Optional[LogSink] = None,
    ) -> None:
        if config is None:
            config = Config()

        self._mu = RWLock()
        self._config = config
        self._decoder: Decoder = decoder if decoder is not None else DefaultDecoder()
        self._error_log = error_log
        self._info_log = info_log
        self._trace_log = trace_log

        self._owns_transport = transport is None
        self._transport = transport if transport is not None else httpx.Client(timeout=config.request_timeout)

        self._pool = NodePool(config.urls, alive=not config.healthcheck)
        if config.healthcheck:
            self._pool.probe_all(
                self._transport,
                config.healthcheck_timeout,
                headers=self.auth_headers(),
                log=error_log,
            )
            self._pool.start_healthcheck(
                self._transport,
                interval=config.healthcheck_interval,
                timeout=config.healthcheck_timeout,
                headers=self.auth_headers(),
                log=error_log,
            )

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    def close(self) -> None:
        self._pool.stop_healthcheck()
        if self._owns_transport:
            self._transport.close()

    @property
    def config(self) -> Config:
        with self._mu.read():
            return self._config

    @property
    def pool(self) -> NodePool:
        return self._pool

    @property
    def transport(self) -> httpx.Client:
        return self._transport

    @property
    def decoder(self) -> Decoder:
        with self._mu.read():
            return self._decoder

    def set_decoder(self, decoder: Decoder) -> None:
        with self._mu.write():
            self._decoder = decoder

    def auth_headers(self) -> Dict[str, str]:
        with self._mu.read():
            username = self._config.username
            password = self._config.password
        if username is None:
            return {}
        return {"Authorization": basic_auth_header(username, password or "")}

    def perform_request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        *,
        result_type: Any = None,
        ignore_errors: Collection[int] = (),
        deadline: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Response:
        """Send one request to the next live node and decode its response.

        Args:
            method: HTTP method
            path: Absolute path, already escaped (see ``utils.build_path``)
            params: Query parameters, encoded with ``utils.build_query``
            body: str / bytes / reader sent verbatim, anything else as JSON
            headers: Extra headers overriding the defaults (e.g. Content-Type)
            result_type: What the decoder should produce; None for plain JSON
            ignore_errors: Non-2xx status codes this call treats as success
            deadline: Timeout in seconds for this call
            cancel: Set this event to abort the call. It is checked before
                sending and between body chunks; a server that stalls before
                sending response headers is only cut off by ``deadline``.

        Returns:
            The response; ``data`` is decoded exactly once when the body is non-empty.

        Raises:
            NoClientError: no node is alive
            ElasticError: the server answered with a non-2xx status not in
                ``ignore_errors``, even when reading its body failed
            RequestCanceledError: ``cancel`` was set
            DecodeError: the response body could not be decoded
            httpx.HTTPError: transport failure; not retried on another node
        """
        with self._mu.read():
            decoder = self._decoder
            send_get_body_as = self._config.send_get_body_as
            gzip = self._config.gzip
            username = self._config.username
            password = self._config.password
            error_log = self._error_log
            info_log = self._info_log
            trace_log = self._trace_log

        method = method.upper()
        if method == "GET" and body is not None and send_get_body_as != "GET":
            method = send_get_body_as

        if cancel is not None and cancel.is_set():
            raise RequestCanceledError(f"{method} {path} canceled before it was sent")

        base_url = self._pool.next_url()
        url = base_url + path
        query = build_query(params)
        if query:
            url += "?" + query

        req = Request(method, url)
        if username is not None:
            req.set_basic_auth(username, password or "")
        if body is not None:
            req.set_body(body, gzip)
        if headers:
            for key, value in headers.items():
                req.headers[key] = value

        if trace_log is not None:
            trace_log.emit(make_record("TRACE", req.dump(), source=__name__, method=method, url=url))

        start = time.monotonic()
        try:
            res, raw = self._send(req, ignore_errors, deadline, cancel)
        except httpx.HTTPError as e:
            if error_log is not None:
                error_log.emit(make_record(
                    "ERROR", f"{method} {url} failed", source=__name__, error=e, method=method, url=url,
                ))
            raise
        took = time.monotonic() - start

        if not 200 <= res.status_code <= 299 and res.status_code not in ignore_errors:
            raise create_response_error(res.status_code, raw)

        response = Response(status_code=res.status_code, headers=res.headers, body=raw)

        if trace_log is not None:
            trace_log.emit(make_record("TRACE", response.dump(), source=__name__, method=method, url=url))
        if info_log is not None:
            info_log.emit(make_record(
                "INFO",
                f"{method} {url} [status:{res.status_code}, request:{took:.3f}s]",
                source=__name__,
                method=method,
                url=url,
                status=res.status_code,
                took_seconds=round(took, 3),
            ))

        if raw and method != "HEAD":
            response.data = decoder.decode(raw, result_type)
        return response

    def _send(
        self,
        req: Request,
        ignore_errors: Collection[int],
        deadline: Optional[float],
        cancel: Optional[threading.Event],
    ) -> Tuple[httpx.Response, bytes]:
        timeout: Any = deadline if deadline is not None else httpx.USE_CLIENT_DEFAULT
        res = self._transport.send(req.build(self._transport, timeout), stream=True)
        failed = not 200 <= res.status_code <= 299 and res.status_code not in ignore_errors
        try:
            chunks = []
            for chunk in res.iter_bytes():
                if cancel is not None and cancel.is_set():
                    raise RequestCanceledError(f"{req.method} {req.url} canceled")
                chunks.append(chunk)
            if cancel is not None and cancel.is_set():
                raise RequestCanceledError(f"{req.method} {req.url} canceled")
        except httpx.HTTPError as e:
            if not failed:
                raise
            # the status line arrived; the error body did not
            raise ElasticError(res.status_code) from e
        finally:
            res.close()
        return res, b"".join(chunks)
