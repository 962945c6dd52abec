"""Index creation, deletion, settings and aliases."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from elastic_dispatch.client import Client
from elastic_dispatch.services.settings import get_index_settings
from elastic_dispatch.utils import build_path


class AcknowledgedResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    acknowledged: bool = False
    shards_acknowledged: Optional[bool] = None
    index: Optional[str] = None


def index_exists(client: Client, index: str) -> bool:
    """Check if an index exists. A 404 means it does not."""
    res = client.perform_request("HEAD", build_path(index), ignore_errors={404})
    return res.status_code == 200


def create_index(
    client: Client,
    index: str,
    body: Optional[Dict[str, Any]] = None,
    skip_existing: bool = False,
) -> bool:
    """Create an index.

    Args:
        client: Dispatch client
        index: Index name
        body: Mappings, settings and aliases. Defaults to INDEX_SETTINGS only.
        skip_existing: If True, return False for an existing index instead of raising an error

    Returns:
        True if the index was created

    Raises:
        Exception: If the index already exists and skip_existing is False
    """
    if index_exists(client, index):
        if skip_existing:
            return False
        raise Exception(f"Index '{index}' already exists.")

    if body is None:
        body = {"settings": get_index_settings()}
    client.perform_request("PUT", build_path(index), body=body, result_type=AcknowledgedResponse)
    return True


def delete_index(
    client: Client,
    index: Union[str, List[str]],
    skip_missing: bool = False,
) -> List[str]:
    """Delete one or more indexes.

    Args:
        client: Dispatch client
        index: Index name or list of names
        skip_missing: If True, skip indexes that don't exist instead of raising an error

    Returns:
        List of deleted index names

    Raises:
        Exception: If an index doesn't exist and skip_missing is False
    """
    names = [index] if isinstance(index, str) else list(index)
    deleted: List[str] = []

    for name in names:
        if not index_exists(client, name):
            if skip_missing:
                continue
            raise Exception(f"Index '{name}' does not exist.")
        client.perform_request("DELETE", build_path(name), result_type=AcknowledgedResponse)
        deleted.append(name)

    return deleted


def refresh_index(client: Client, index: str, deadline: float = 600.0) -> None:
    """Manually refresh an index to make all documents searchable.

    Args:
        client: Dispatch client
        index: Index name
        deadline: Timeout in seconds for the refresh operation (default: 600s = 10 minutes)
    """
    client.perform_request("POST", build_path(index, "_refresh"), deadline=deadline)


def get_settings(client: Client, index: str) -> Dict[str, Any]:
    """Return the ``settings`` object of ``index``."""
    res = client.perform_request("GET", build_path(index, "_settings"))
    data = res.data or {}
    for name, entry in data.items():
        if name == index:
            return entry.get("settings", {})
    # an alias resolves to its (single) backing index
    if len(data) == 1:
        return next(iter(data.values())).get("settings", {})
    return {}


def put_settings(client: Client, index: str, settings: Dict[str, Any]) -> bool:
    res = client.perform_request(
        "PUT", build_path(index, "_settings"), body=settings, result_type=AcknowledgedResponse,
    )
    return res.data.acknowledged


def set_refresh_interval(client: Client, index: str, interval: str) -> None:
    """Set the refresh interval for an index.

    Args:
        client: Dispatch client
        index: Index name
        interval: Refresh interval (e.g., "1s", "-1" for disabled)
    """
    put_settings(client, index, {"index": {"refresh_interval": interval}})


def put_alias(client: Client, index: Union[str, List[str]], name: str) -> bool:
    res = client.perform_request(
        "PUT", build_path(index, "_alias", name), result_type=AcknowledgedResponse,
    )
    return res.data.acknowledged


def delete_alias(client: Client, index: Union[str, List[str]], name: str) -> bool:
    """Remove alias ``name`` from ``index``; False if the alias does not exist."""
    res = client.perform_request(
        "DELETE", build_path(index, "_alias", name), ignore_errors={404}, result_type=AcknowledgedResponse,
    )
    return res.status_code == 200 and res.data.acknowledged
