"""Cluster monitoring: health, per-node disk and heap usage, index sizes."""

import re
from typing import Dict, List, Literal, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field

from elastic_dispatch.client import Client
from elastic_dispatch.errors import ElasticDispatchError
from elastic_dispatch.services.settings import get_health_thresholds

_SIZE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*([kmgtp]?b)?$")
_SIZE_UNITS = {"b": 0, "kb": 1, "mb": 2, "gb": 3, "tb": 4, "pb": 5}


class HealthStatus(BaseModel):
    level: Literal["ok", "warning", "critical"]
    message: str


class ClusterHealth(BaseModel):
    """Response of ``GET /_cluster/health``."""
    status: Literal["green", "yellow", "red"]
    cluster_name: str
    number_of_nodes: int
    number_of_data_nodes: int
    active_primary_shards: int
    active_shards: int
    relocating_shards: int
    initializing_shards: int
    unassigned_shards: int


class _FsTotal(BaseModel):
    total_in_bytes: int = 0
    free_in_bytes: int = 0


class _Fs(BaseModel):
    total: _FsTotal = _FsTotal()


class _JvmMem(BaseModel):
    heap_used_in_bytes: int = 0
    heap_max_in_bytes: int = 0
    heap_used_percent: float = 0


class _Jvm(BaseModel):
    mem: _JvmMem = _JvmMem()


class _NodeEntry(BaseModel):
    name: Optional[str] = None
    host: str = "unknown"
    fs: _Fs = _Fs()
    jvm: _Jvm = _Jvm()


class _NodesStatsResponse(BaseModel):
    nodes: Dict[str, _NodeEntry] = Field(default_factory=dict)


class NodeStats(BaseModel):
    name: str
    host: str
    disk_total_bytes: int
    disk_free_bytes: int
    disk_used_percent: float
    heap_used_bytes: int
    heap_max_bytes: int
    heap_used_percent: float


class _CatIndicesRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    index: str = "unknown"
    docs_count: Optional[Union[int, str]] = Field(default=None, alias="docs.count")
    store_size: Optional[str] = Field(default=None, alias="store.size")
    pri: Optional[Union[int, str]] = None
    rep: Optional[Union[int, str]] = None


class IndexStats(BaseModel):
    name: str
    docs_count: int
    store_size_bytes: int
    primary_shards: int
    replica_shards: int


def get_cluster_health(client: Client) -> ClusterHealth:
    res = client.perform_request("GET", "/_cluster/health", result_type=ClusterHealth)
    return res.data


def get_node_stats(client: Client) -> List[NodeStats]:
    """Disk and JVM heap usage of every node, from ``/_nodes/stats/fs,jvm``."""
    res = client.perform_request("GET", "/_nodes/stats/fs,jvm", result_type=_NodesStatsResponse)

    nodes: List[NodeStats] = []
    for node_id, entry in res.data.nodes.items():
        disk = entry.fs.total
        used = disk.total_in_bytes - disk.free_in_bytes
        nodes.append(NodeStats(
            name=entry.name or node_id,
            host=entry.host,
            disk_total_bytes=disk.total_in_bytes,
            disk_free_bytes=disk.free_in_bytes,
            disk_used_percent=used / disk.total_in_bytes * 100 if disk.total_in_bytes > 0 else 0.0,
            heap_used_bytes=entry.jvm.mem.heap_used_in_bytes,
            heap_max_bytes=entry.jvm.mem.heap_max_in_bytes,
            heap_used_percent=entry.jvm.mem.heap_used_percent,
        ))
    return nodes


def _to_int(value: Optional[Union[int, str]]) -> int:
    return int(value) if value else 0


def get_index_stats(client: Client) -> List[IndexStats]:
    res = client.perform_request(
        "GET", "/_cat/indices", params={"format": "json"}, result_type=List[_CatIndicesRow],
    )
    return [
        IndexStats(
            name=row.index,
            docs_count=_to_int(row.docs_count),
            store_size_bytes=_parse_size(row.store_size or ""),
            primary_shards=_to_int(row.pri),
            replica_shards=_to_int(row.rep),
        )
        for row in res.data or []
    ]


def _parse_size(size_str: str) -> int:
    """``"10mb"`` -> 10485760. Unparseable sizes count as 0."""
    match = _SIZE_PATTERN.match(size_str.strip().lower())
    if match is None:
        return 0
    number, unit = match.groups()
    return int(float(number) * 1024 ** _SIZE_UNITS[unit or "b"])


def _usage_issue(node: str, label: str, used: float, warning: float, critical: float) -> Optional[HealthStatus]:
    if used >= critical:
        return HealthStatus(
            level="critical",
            message=f"Node '{node}' {label} usage is {used:.1f}% (critical threshold: {critical}%)",
        )
    if used >= warning:
        return HealthStatus(
            level="warning",
            message=f"Node '{node}' {label} usage is {used:.1f}% (warning threshold: {warning}%)",
        )
    return None


def check_health(client: Client) -> List[HealthStatus]:
    """Collect warnings and critical issues; an empty list means healthy.

    An unreachable cluster (transport error, no live node, error status) is
    reported as a critical issue rather than raised.
    """
    thresholds = get_health_thresholds()
    issues: List[HealthStatus] = []

    try:
        cluster = get_cluster_health(client)
    except (ElasticDispatchError, httpx.HTTPError) as e:
        return [HealthStatus(level="critical", message=f"Failed to get cluster health: {e}")]

    if cluster.status == "red":
        issues.append(HealthStatus(level="critical", message="Cluster status is RED: primary shards are unassigned"))
    elif cluster.status == "yellow":
        issues.append(HealthStatus(level="warning", message="Cluster status is YELLOW: replica shards are unassigned"))
    if cluster.unassigned_shards > 0:
        issues.append(HealthStatus(level="warning", message=f"{cluster.unassigned_shards} unassigned shards"))

    try:
        nodes = get_node_stats(client)
    except (ElasticDispatchError, httpx.HTTPError) as e:
        issues.append(HealthStatus(level="warning", message=f"Failed to get node stats: {e}"))
        return issues

    for node in nodes:
        for issue in (
            _usage_issue(node.name, "disk", node.disk_used_percent,
                         thresholds["disk_warning_percent"], thresholds["disk_critical_percent"]),
            _usage_issue(node.name, "JVM heap", node.heap_used_percent,
                         thresholds["heap_warning_percent"], thresholds["heap_critical_percent"]),
        ):
            if issue is not None:
                issues.append(issue)

    return issues


def format_bytes(bytes_val: float) -> str:
    """1536 -> ``"1.5 KB"``."""
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(bytes_val) < 1024.0:
            return f"{bytes_val:.1f} {unit}"
        bytes_val /= 1024
    return f"{bytes_val:.1f} PB"
