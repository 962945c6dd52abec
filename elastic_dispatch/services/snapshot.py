"""Snapshot repository and snapshot management."""

from datetime import datetime
from typing import Any

from elastic_dispatch.client import Client
from elastic_dispatch.config import LOCAL_TZ
from elastic_dispatch.services.settings import SNAPSHOT_SETTINGS
from elastic_dispatch.utils import build_path


def register_repository(
    client: Client,
    repo_name: str,
    repo_path: str,
    compress: bool = SNAPSHOT_SETTINGS["compress"],
) -> dict[str, Any]:
    """Register a shared file system snapshot repository.

    Args:
        client: Dispatch client
        repo_name: Name of the repository
        repo_path: Path to the repository (must match the server's path.repo setting)
        compress: Whether to compress snapshots

    Returns:
        Response body
    """
    body = {
        "type": "fs",
        "settings": {
            "location": repo_path,
            "compress": compress,
        },
    }
    res = client.perform_request("PUT", build_path("_snapshot", repo_name), body=body)
    return res.data


def list_repositories(client: Client) -> list[dict[str, Any]]:
    """List all snapshot repositories.

    Returns:
        List of repository info dicts
    """
    res = client.perform_request("GET", "/_snapshot")
    return [
        {
            "name": name,
            "type": info.get("type"),
            "settings": info.get("settings", {}),
        }
        for name, info in (res.data or {}).items()
    ]


def delete_repository(client: Client, repo_name: str) -> dict[str, Any]:
    res = client.perform_request("DELETE", build_path("_snapshot", repo_name))
    return res.data


def create_snapshot(
    client: Client,
    repo_name: str,
    indexes: list[str],
    snapshot_name: str | None = None,
    include_global_state: bool = SNAPSHOT_SETTINGS["include_global_state"],
    wait_for_completion: bool = True,
    metadata: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Create a snapshot.

    Args:
        client: Dispatch client
        repo_name: Name of the repository
        indexes: Indexes to snapshot; an empty list means all indexes
        snapshot_name: Name of the snapshot (``<prefix>_<timestamp>`` if not provided)
        include_global_state: Whether to include cluster state
        wait_for_completion: Whether to wait for snapshot to complete
        metadata: Optional metadata to attach to snapshot

    Returns:
        Snapshot info
    """
    if snapshot_name is None:
        timestamp = datetime.now(LOCAL_TZ).strftime("%Y%m%d_%H%M%S")
        snapshot_name = f"{SNAPSHOT_SETTINGS['snapshot_name_prefix']}_{timestamp}"

    body: dict[str, Any] = {"include_global_state": include_global_state}
    if indexes:
        body["indices"] = ",".join(indexes)
    if metadata:
        body["metadata"] = metadata

    res = client.perform_request(
        "PUT",
        build_path("_snapshot", repo_name, snapshot_name),
        params={"wait_for_completion": wait_for_completion},
        body=body,
    )
    return res.data


def list_snapshots(client: Client, repo_name: str) -> list[dict[str, Any]]:
    """List snapshots in a repository.

    Returns:
        List of snapshot info dicts
    """
    res = client.perform_request("GET", build_path("_snapshot", repo_name, "_all"))
    return [
        {
            "snapshot": snap.get("snapshot"),
            "state": snap.get("state"),
            "start_time": snap.get("start_time"),
            "end_time": snap.get("end_time"),
            "duration_in_millis": snap.get("duration_in_millis"),
            "indices": snap.get("indices", []),
            "shards": snap.get("shards", {}),
            "metadata": snap.get("metadata", {}),
        }
        for snap in (res.data or {}).get("snapshots", [])
    ]


def get_snapshot(client: Client, repo_name: str, snapshot_name: str) -> dict[str, Any]:
    """Get details of a specific snapshot.

    Raises:
        ValueError: if the repository has no such snapshot
    """
    res = client.perform_request("GET", build_path("_snapshot", repo_name, snapshot_name))
    snapshots = (res.data or {}).get("snapshots", [])
    if not snapshots:
        raise ValueError(f"Snapshot '{snapshot_name}' not found in repository '{repo_name}'")
    return snapshots[0]


def delete_snapshot(client: Client, repo_name: str, snapshot_name: str) -> dict[str, Any]:
    res = client.perform_request("DELETE", build_path("_snapshot", repo_name, snapshot_name))
    return res.data


def restore_snapshot(
    client: Client,
    repo_name: str,
    snapshot_name: str,
    indexes: list[str] | None = None,
    rename_pattern: str | None = None,
    rename_replacement: str | None = None,
    include_global_state: bool = False,
    wait_for_completion: bool = True,
) -> dict[str, Any]:
    """Restore a snapshot.

    Args:
        client: Dispatch client
        repo_name: Name of the repository
        snapshot_name: Name of the snapshot to restore
        indexes: List of indexes to restore (all from snapshot if not provided)
        rename_pattern: Regex pattern for renaming indexes
        rename_replacement: Replacement string for renaming
        include_global_state: Whether to restore cluster state
        wait_for_completion: Whether to wait for restore to complete

    Returns:
        Restore info
    """
    body: dict[str, Any] = {"include_global_state": include_global_state}
    if indexes:
        body["indices"] = ",".join(indexes)
    if rename_pattern and rename_replacement:
        body["rename_pattern"] = rename_pattern
        body["rename_replacement"] = rename_replacement

    res = client.perform_request(
        "POST",
        build_path("_snapshot", repo_name, snapshot_name, "_restore"),
        params={"wait_for_completion": wait_for_completion},
        body=body,
    )
    return res.data
