"""Ask a single server whether it is up, bypassing the node pool."""

from typing import Optional, Tuple

import httpx
from pydantic import BaseModel, ConfigDict

from elastic_dispatch.client import Client
from elastic_dispatch.config import DEFAULT_URL
from elastic_dispatch.errors import DecodeError
from elastic_dispatch.request import Request


class PingVersion(BaseModel):
    model_config = ConfigDict(extra="allow")

    number: str = ""  # e.g. "7.10.2"
    distribution: Optional[str] = None  # "opensearch" on OpenSearch
    build_flavor: Optional[str] = None
    build_type: Optional[str] = None
    build_hash: Optional[str] = None
    build_date: Optional[str] = None
    build_snapshot: bool = False
    lucene_version: Optional[str] = None
    minimum_wire_compatibility_version: Optional[str] = None
    minimum_index_compatibility_version: Optional[str] = None


class PingResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    cluster_name: str = ""
    cluster_uuid: Optional[str] = None
    version: PingVersion = PingVersion()
    tagline: str = ""


def ping(
    client: Client,
    url: Optional[str] = None,
    head_only: bool = False,
    timeout: Optional[str] = None,
    deadline: Optional[float] = None,
) -> Tuple[Optional[PingResult], int]:
    """Query ``url`` directly and report what is running there.

    This never goes through ``Client.perform_request``: the target is
    contacted even when the pool considers it dead, and the pool's liveness
    flags are left untouched. Non-2xx statuses are returned, not raised.

    Args:
        client: Supplies the transport, credentials and decoder
        url: Base URL of the server; the first configured node if omitted
        head_only: Send HEAD and return only the status code
        timeout: Server-side ``timeout`` query parameter, e.g. "1s"
        deadline: Transport timeout in seconds

    Returns:
        (PingResult or None, HTTP status code)

    Raises:
        httpx.HTTPError: the server could not be reached
        DecodeError: a GET response body is not a ping result
    """
    config = client.config
    base_url = (url or (config.urls[0] if config.urls else DEFAULT_URL)).rstrip("/")

    target = base_url + "/"
    if timeout:
        target += "?" + str(httpx.QueryParams({"timeout": timeout}))

    req = Request("HEAD" if head_only else "GET", target)
    for key, value in client.auth_headers().items():
        req.headers[key] = value

    transport = client.transport
    res = transport.send(req.build(transport, deadline if deadline is not None else httpx.USE_CLIENT_DEFAULT))
    if head_only:
        return None, res.status_code

    try:
        result = client.decoder.decode(res.content, PingResult)
    except DecodeError:
        if 200 <= res.status_code <= 299:
            raise
        return None, res.status_code
    return result, res.status_code
