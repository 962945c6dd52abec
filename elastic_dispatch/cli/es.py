"""Command line tools built on the dispatch client.

Usage:
    dispatch_nodes
    dispatch_health -v
    dispatch_create_index --index logs-2024 --mapping mapping.json
    dispatch_delete_index --index logs-2024 --force
    dispatch_bulk_insert --index logs-2024 --dir /path/to/jsonl/
    dispatch_bulk_insert --index logs-2024 --file /path/to/part-0001.jsonl
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from elastic_dispatch.client import Client
from elastic_dispatch.config import Config, get_config
from elastic_dispatch.errors import ElasticDispatchError
from elastic_dispatch.logging.logger import RunLogSink, log_debug, log_error, log_info, run_logger
from elastic_dispatch.services.bulk import bulk_insert_from_dir, bulk_insert_jsonl
from elastic_dispatch.services.indices import create_index, delete_index
from elastic_dispatch.services.monitoring import (
    check_health,
    format_bytes,
    get_cluster_health,
    get_index_stats,
    get_node_stats,
)
from elastic_dispatch.services.ping import ping
from elastic_dispatch.services.settings import BULK_INSERT_SETTINGS


def build_client(config: Config) -> Client:
    """Client whose error and request records go into the active run log."""
    return Client(config, error_log=RunLogSink(), info_log=RunLogSink())


def _dump_config(config: Config) -> Dict[str, Any]:
    return config.model_dump(mode="json", exclude={"password"})


# === Nodes ===


def parse_nodes_args(args: list[str]) -> Config:
    parser = argparse.ArgumentParser(description="Probe every configured node and show whether it is alive.")

    parser.parse_args(args)
    config = get_config()

    return config


def main_nodes() -> None:
    config = parse_nodes_args(sys.argv[1:])
    with run_logger(config=config):
        log_debug("config loaded", config=_dump_config(config))

        # probe synchronously below instead of starting the background thread
        with build_client(config.model_copy(update={"healthcheck": False})) as client:
            client.pool.probe_all(
                client.transport,
                config.healthcheck_timeout,
                headers=client.auth_headers(),
                log=RunLogSink(),
            )

            print("\nNodes:")
            print("-" * 70)
            print(f"{'URL':<40} {'Alive':<8} {'Version':<20}")
            print("-" * 70)

            dead = 0
            for node in client.pool.nodes:
                version = "-"
                if node.is_alive():
                    try:
                        result, _ = ping(client, node.url, deadline=config.healthcheck_timeout)
                        if result is not None:
                            version = result.version.number or "-"
                    except (ElasticDispatchError, httpx.HTTPError) as e:
                        log_debug(f"ping failed for {node.url}: {e}", url=node.url)
                else:
                    dead += 1
                alive_str = "Yes" if node.is_alive() else "No"
                print(f"{node.url:<40} {alive_str:<8} {version:<20}")

            print("-" * 70)

        if dead:
            log_error(f"{dead} of {len(client.pool)} nodes are dead")
            sys.exit(1)


# === Create Index ===


def parse_create_index_args(args: list[str]) -> tuple[Config, str, Optional[Path], bool]:
    parser = argparse.ArgumentParser(description="Create an index.")
    parser.add_argument(
        "--index",
        required=True,
        help="Index name to create",
    )
    parser.add_argument(
        "--mapping",
        help="JSON file with the index body (settings, mappings, aliases)",
    )
    parser.add_argument(
        "--skip-existing",
        action="store_true",
        help="Do nothing if the index already exists instead of raising an error",
    )

    parsed = parser.parse_args(args)
    config = get_config()

    mapping = Path(parsed.mapping) if parsed.mapping else None

    return config, parsed.index, mapping, parsed.skip_existing


def main_create_index() -> None:
    config, index, mapping, skip_existing = parse_create_index_args(sys.argv[1:])
    with run_logger(config=config):
        log_debug("config loaded", config=_dump_config(config))
        log_info("creating index", index=index)

        try:
            body = json.loads(mapping.read_text(encoding="utf-8")) if mapping else None
            with build_client(config) as client:
                created = create_index(client, index, body=body, skip_existing=skip_existing)
            if created:
                log_info("created index", index=index)
            else:
                log_info("No index created (already exists)", index=index)
        except Exception as e:
            log_error("failed to create index", error=e)
            sys.exit(1)


# === Delete Index ===


def parse_delete_index_args(args: list[str]) -> tuple[Config, list[str], bool, bool]:
    parser = argparse.ArgumentParser(description="Delete indexes.")
    parser.add_argument(
        "--index",
        required=True,
        action="append",
        dest="indexes",
        help="Index name to delete (can be specified multiple times)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Delete without confirmation",
    )
    parser.add_argument(
        "--skip-missing",
        action="store_true",
        help="Skip indexes that don't exist instead of raising an error",
    )

    parsed = parser.parse_args(args)
    config = get_config()

    return config, parsed.indexes, parsed.force, parsed.skip_missing


def main_delete_index() -> None:
    config, indexes, force, skip_missing = parse_delete_index_args(sys.argv[1:])
    with run_logger(config=config):
        log_debug("config loaded", config=_dump_config(config))
        log_info("indexes to delete", indexes=indexes)

        if not force:
            confirm = input(f"Are you sure you want to delete {len(indexes)} index(es)? [y/N]: ")
            if confirm.lower() != "y":
                log_info("operation cancelled")
                return

        try:
            with build_client(config) as client:
                deleted = delete_index(client, indexes, skip_missing=skip_missing)
            if deleted:
                log_info("deleted indexes", indexes=deleted)
            else:
                log_info("No indexes deleted (none exist)")
        except Exception as e:
            log_error("failed to delete index", error=e)
            sys.exit(1)


# === Bulk Insert ===


def parse_bulk_insert_args(args: list[str]) -> tuple[Config, str, Path, list[Path], str, int]:
    parser = argparse.ArgumentParser(description="Bulk insert JSONL files into an index.")
    parser.add_argument(
        "--index",
        required=True,
        help="Target index name",
    )
    parser.add_argument(
        "--dir",
        help="Directory containing JSONL files",
    )
    parser.add_argument(
        "--file",
        action="append",
        dest="files",
        help="JSONL file to insert (can be specified multiple times)",
    )
    parser.add_argument(
        "--pattern",
        default="*.jsonl",
        help="Glob pattern to match JSONL files when using --dir (default: *.jsonl)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=BULK_INSERT_SETTINGS["batch_size"],
        help=f"Number of documents per bulk request (default: {BULK_INSERT_SETTINGS['batch_size']})",
    )

    parsed = parser.parse_args(args)
    config = get_config()

    if not parsed.dir and not parsed.files:
        parser.error("Either --dir or --file must be specified")

    jsonl_dir = Path(parsed.dir) if parsed.dir else Path()
    jsonl_files = [Path(f) for f in (parsed.files or [])]

    return config, parsed.index, jsonl_dir, jsonl_files, parsed.pattern, parsed.batch_size


def main_bulk_insert() -> None:
    config, index, jsonl_dir, jsonl_files, pattern, batch_size = parse_bulk_insert_args(sys.argv[1:])
    with run_logger(config=config):
        log_debug("config loaded", config=_dump_config(config))
        log_info("bulk inserting", index=index, pattern=pattern)

        try:
            with build_client(config) as client:
                if jsonl_files:
                    result = bulk_insert_jsonl(
                        client=client,
                        jsonl_files=jsonl_files,
                        index=index,
                        batch_size=batch_size,
                    )
                else:
                    result = bulk_insert_from_dir(
                        client=client,
                        jsonl_dir=jsonl_dir,
                        index=index,
                        pattern=pattern,
                        batch_size=batch_size,
                    )

            log_info(
                "Bulk insert completed",
                index=result.index,
                count=result.total_docs,
                success_count=result.success_count,
                error_count=result.error_count,
            )

            if result.errors:
                log_error("Some documents failed to insert", errors=result.errors[:10])
                sys.exit(1)

        except Exception as e:
            log_error("failed to bulk insert", error=e)
            sys.exit(1)


# === Health Check ===


def parse_health_check_args(args: list[str]) -> tuple[Config, bool]:
    parser = argparse.ArgumentParser(description="Check cluster health.")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show detailed node and index information",
    )

    parsed = parser.parse_args(args)
    config = get_config()

    return config, parsed.verbose


def main_health_check() -> None:
    config, verbose = parse_health_check_args(sys.argv[1:])
    with run_logger(config=config):
        log_debug("config loaded", config=_dump_config(config))

        try:
            with build_client(config) as client:
                cluster = get_cluster_health(client)

                status_color = {
                    "green": "\033[92m",
                    "yellow": "\033[93m",
                    "red": "\033[91m",
                }
                reset = "\033[0m"
                color = status_color.get(cluster.status, "")

                print("\n=== Cluster Health ===")
                print(f"Cluster Name: {cluster.cluster_name}")
                print(f"Status: {color}{cluster.status.upper()}{reset}")
                print(f"Nodes: {cluster.number_of_nodes} (data: {cluster.number_of_data_nodes})")
                print(f"Shards: {cluster.active_shards} active ({cluster.active_primary_shards} primary)")
                if cluster.unassigned_shards > 0:
                    print(f"Unassigned Shards: {cluster.unassigned_shards}")

                if verbose:
                    print("\n=== Node Statistics ===")
                    for node in get_node_stats(client):
                        print(f"\nNode: {node.name} ({node.host})")
                        print(
                            f"  Disk: {format_bytes(node.disk_total_bytes - node.disk_free_bytes)} / "
                            f"{format_bytes(node.disk_total_bytes)} ({node.disk_used_percent:.1f}% used)"
                        )
                        print(
                            f"  Heap: {format_bytes(node.heap_used_bytes)} / "
                            f"{format_bytes(node.heap_max_bytes)} ({node.heap_used_percent:.1f}% used)"
                        )

                    print("\n=== Index Statistics ===")
                    print("-" * 60)
                    print(f"{'Index':<25} {'Docs':<12} {'Size':<12} {'Shards':<10}")
                    print("-" * 60)
                    for idx in sorted(get_index_stats(client), key=lambda x: x.name):
                        shards_str = f"{idx.primary_shards}p/{idx.replica_shards}r"
                        print(
                            f"{idx.name:<25} {idx.docs_count:<12} {format_bytes(idx.store_size_bytes):<12} {shards_str:<10}"
                        )
                    print("-" * 60)

                issues = check_health(client)
        except Exception as e:
            log_error("failed to check health", error=e)
            sys.exit(1)

        if issues:
            print("\n=== Health Issues ===")
            for issue in issues:
                if issue.level == "critical":
                    print(f"\033[91m[CRITICAL]\033[0m {issue.message}")
                elif issue.level == "warning":
                    print(f"\033[93m[WARNING]\033[0m {issue.message}")
                else:
                    print(f"[{issue.level.upper()}] {issue.message}")
            sys.exit(1)
        print("\n\033[92mAll health checks passed.\033[0m")
