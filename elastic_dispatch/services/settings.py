"""Defaults for the service functions.

This module centralizes the values the bulk, snapshot and monitoring
services fall back to when the caller does not pass its own.
"""

from typing import Any, Dict

# === Index Settings ===
# Applied by create_index when the caller gives no settings of its own.

INDEX_SETTINGS: Dict[str, Any] = {
    "index": {
        # Near-real-time search. Bulk inserts switch this to "-1" while they run.
        "refresh_interval": "1s",

        "number_of_shards": 1,

        # 0 for single-node clusters; raise to 1 when there are more nodes.
        "number_of_replicas": 0,
    }
}


# === Bulk Insert Settings ===

BULK_INSERT_SETTINGS: Dict[str, Any] = {
    # Number of documents per bulk request.
    # Reduce if memory pressure occurs with very large documents.
    "batch_size": 5000,

    # Request timeout in seconds for a single _bulk call.
    "request_timeout": 600,

    # Maximum number of failed items whose details are kept in the result.
    "max_errors": 100,

    # Document field used as _id; documents without it are indexed with a generated id.
    "id_field": "identifier",

    # Refresh interval during bulk insert. "-1" disables automatic refresh.
    "bulk_refresh_interval": "-1",

    # Refresh interval restored after bulk insert.
    "normal_refresh_interval": "1s",
}


# === Snapshot Settings ===

SNAPSHOT_SETTINGS: Dict[str, Any] = {
    "default_repo_name": "backup",

    # Snapshot name prefix (timestamp will be appended)
    "snapshot_name_prefix": "elastic_dispatch",

    "compress": True,

    # Whether to include global cluster state in snapshots
    "include_global_state": False,
}


# === Health Check Thresholds ===

HEALTH_CHECK_THRESHOLDS: Dict[str, Any] = {
    "disk_warning_percent": 80,
    "disk_critical_percent": 90,
    "heap_warning_percent": 75,
    "heap_critical_percent": 90,
}


def get_index_settings() -> Dict[str, Any]:
    """Get index settings for creating new indexes.

    Returns a copy to prevent accidental modification.
    """
    return {"index": INDEX_SETTINGS["index"].copy()}


def get_bulk_settings() -> Dict[str, Any]:
    """Get bulk insert settings.

    Returns a copy to prevent accidental modification.
    """
    return BULK_INSERT_SETTINGS.copy()


def get_snapshot_settings() -> Dict[str, Any]:
    return SNAPSHOT_SETTINGS.copy()


def get_health_thresholds() -> Dict[str, Any]:
    return HEALTH_CHECK_THRESHOLDS.copy()
