"""Bulk operations: NDJSON request building, the _bulk call and JSONL loading."""

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from elastic_dispatch.client import Client
from elastic_dispatch.errors import ErrorDetails, InvalidRequestError
from elastic_dispatch.request import encode_json
from elastic_dispatch.services.indices import index_exists, refresh_index, set_refresh_interval
from elastic_dispatch.services.settings import BULK_INSERT_SETTINGS
from elastic_dispatch.utils import build_path


def _source_line(data: Any) -> str:
    if data is None:
        return "{}"
    if isinstance(data, str):
        return data
    if isinstance(data, bytes):
        return data.decode("utf-8")
    return encode_json(data).decode("utf-8")


def _action_line(op_type: str, meta: Dict[str, Any]) -> str:
    return json.dumps({op_type: {k: v for k, v in meta.items() if v is not None}}, separators=(",", ":"))


class BulkIndexRequest(BaseModel):
    """Index (create or replace) one document."""
    op_type: Literal["index"] = "index"
    index: Optional[str] = None
    id: Optional[str] = None
    routing: Optional[str] = None
    doc: Any = None


class BulkCreateRequest(BaseModel):
    """Create one document; the item fails with 409 if the id already exists."""
    op_type: Literal["create"] = "create"
    index: Optional[str] = None
    id: Optional[str] = None
    routing: Optional[str] = None
    doc: Any = None


class BulkUpdateRequest(BaseModel):
    """Partially update one document, optionally upserting it."""
    op_type: Literal["update"] = "update"
    index: Optional[str] = None
    id: str
    routing: Optional[str] = None
    retry_on_conflict: Optional[int] = None
    doc: Optional[Dict[str, Any]] = None
    doc_as_upsert: Optional[bool] = None
    upsert: Optional[Dict[str, Any]] = None
    script: Optional[Dict[str, Any]] = None


class BulkDeleteRequest(BaseModel):
    """Delete one document. Has no source line."""
    op_type: Literal["delete"] = "delete"
    index: Optional[str] = None
    id: str
    routing: Optional[str] = None


BulkRequest = Union[BulkIndexRequest, BulkCreateRequest, BulkUpdateRequest, BulkDeleteRequest]


def source_lines(item: BulkRequest) -> List[str]:
    """NDJSON lines of one bulk item: the action line, then the source line (none for delete)."""
    meta: Dict[str, Any] = {"_index": item.index, "_id": item.id, "routing": item.routing}
    if isinstance(item, (BulkIndexRequest, BulkCreateRequest)):
        return [_action_line(item.op_type, meta), _source_line(item.doc)]
    if isinstance(item, BulkUpdateRequest):
        meta["retry_on_conflict"] = item.retry_on_conflict
        body = {
            "doc": item.doc,
            "doc_as_upsert": item.doc_as_upsert,
            "upsert": item.upsert,
            "script": item.script,
        }
        return [_action_line(item.op_type, meta), _source_line({k: v for k, v in body.items() if v is not None})]
    if isinstance(item, BulkDeleteRequest):
        return [_action_line(item.op_type, meta)]
    raise TypeError(f"unsupported bulk item: {type(item).__name__}")


class BulkResponseItem(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    index: str = Field(default="", alias="_index")
    id: str = Field(default="", alias="_id")
    version: Optional[int] = Field(default=None, alias="_version")
    result: str = ""
    status: int = 0
    seq_no: Optional[int] = Field(default=None, alias="_seq_no")
    primary_term: Optional[int] = Field(default=None, alias="_primary_term")
    error: Optional[ErrorDetails] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status <= 299


class BulkResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    took: int = 0
    errors: bool = False
    items: List[Dict[str, BulkResponseItem]] = Field(default_factory=list)

    def all_items(self) -> Iterator[BulkResponseItem]:
        for entry in self.items:
            yield from entry.values()

    def failed(self) -> List[BulkResponseItem]:
        return [item for item in self.all_items() if not item.ok]

    def succeeded(self) -> List[BulkResponseItem]:
        return [item for item in self.all_items() if item.ok]


def build_bulk_body(items: Sequence[BulkRequest]) -> str:
    """Render bulk items as NDJSON, one line per action or source, newline terminated."""
    lines: List[str] = []
    for item in items:
        lines.extend(source_lines(item))
    return "\n".join(lines) + "\n"


def bulk(
    client: Client,
    items: Sequence[BulkRequest],
    index: Optional[str] = None,
    refresh: Optional[str] = None,
    deadline: Optional[float] = None,
) -> BulkResponse:
    """Send ``items`` in one _bulk request.

    Per-item failures do not raise; inspect ``BulkResponse.failed()``.

    Raises:
        InvalidRequestError: if ``items`` is empty
    """
    if not items:
        raise InvalidRequestError("no bulk actions to commit")

    res = client.perform_request(
        "POST",
        build_path(index, "_bulk"),
        params={"refresh": refresh},
        body=build_bulk_body(items),
        headers={"Content-Type": "application/x-ndjson"},
        result_type=BulkResponse,
        deadline=deadline,
    )
    return res.data


class BulkInsertResult(BaseModel):
    """Result of a bulk insert operation."""

    index: str
    total_docs: int
    success_count: int
    error_count: int
    errors: List[Dict[str, Any]]


def generate_bulk_requests(
    jsonl_file: Path,
    index: str,
    id_field: Optional[str] = BULK_INSERT_SETTINGS["id_field"],
) -> Iterator[BulkIndexRequest]:
    """Generate bulk index requests from a JSONL file.

    Args:
        jsonl_file: Path to the JSONL file
        index: Target index name
        id_field: Document field used as _id. Documents without it get a generated id.

    Yields:
        BulkIndexRequest per non-empty line
    """
    with jsonl_file.open("r", encoding="utf-8") as f:
        for raw_line in f:
            line = raw_line.strip()
            if not line:
                continue
            doc = json.loads(line)
            doc_id = doc.get(id_field) if id_field else None
            yield BulkIndexRequest(index=index, id=str(doc_id) if doc_id else None, doc=doc)


def _batched(requests: Iterator[BulkIndexRequest], batch_size: int) -> Iterator[List[BulkIndexRequest]]:
    batch: List[BulkIndexRequest] = []
    for req in requests:
        batch.append(req)
        if len(batch) >= batch_size:
            yield batch
            batch = []
    if batch:
        yield batch


def bulk_insert_jsonl(
    client: Client,
    jsonl_files: List[Path],
    index: str,
    batch_size: int = BULK_INSERT_SETTINGS["batch_size"],
    max_errors: int = BULK_INSERT_SETTINGS["max_errors"],
) -> BulkInsertResult:
    """Bulk insert JSONL files into an existing index.

    Automatic refresh is switched off while inserting and restored (followed
    by a manual refresh) afterwards, even if an insert fails.

    Args:
        client: Dispatch client
        jsonl_files: List of JSONL file paths to insert
        index: Target index name
        batch_size: Number of documents per bulk request
        max_errors: Maximum number of error details to keep

    Returns:
        BulkInsertResult with success/error counts and error details

    Raises:
        Exception: If the target index does not exist
    """
    if not index_exists(client, index):
        raise Exception(f"Index '{index}' does not exist.")

    success_count = 0
    error_count = 0
    errors: List[Dict[str, Any]] = []

    set_refresh_interval(client, index, BULK_INSERT_SETTINGS["bulk_refresh_interval"])

    try:
        for jsonl_file in jsonl_files:
            for batch in _batched(generate_bulk_requests(jsonl_file, index), batch_size):
                response = bulk(client, batch, deadline=BULK_INSERT_SETTINGS["request_timeout"])
                for item in response.all_items():
                    if item.ok:
                        success_count += 1
                        continue
                    error_count += 1
                    if len(errors) < max_errors:
                        errors.append(item.model_dump(by_alias=True, exclude_none=True))
    finally:
        set_refresh_interval(client, index, BULK_INSERT_SETTINGS["normal_refresh_interval"])
        refresh_index(client, index)

    return BulkInsertResult(
        index=index,
        total_docs=success_count + error_count,
        success_count=success_count,
        error_count=error_count,
        errors=errors,
    )


def bulk_insert_from_dir(
    client: Client,
    jsonl_dir: Path,
    index: str,
    pattern: str = "*.jsonl",
    batch_size: int = BULK_INSERT_SETTINGS["batch_size"],
    max_errors: int = BULK_INSERT_SETTINGS["max_errors"],
) -> BulkInsertResult:
    """Bulk insert all JSONL files from a directory.

    Args:
        client: Dispatch client
        jsonl_dir: Directory containing JSONL files
        index: Target index name
        pattern: Glob pattern to match JSONL files
        batch_size: Number of documents per bulk request
        max_errors: Maximum number of error details to keep

    Returns:
        BulkInsertResult with success/error counts
    """
    if not jsonl_dir.is_dir():
        raise Exception(f"Directory '{jsonl_dir}' does not exist.")

    jsonl_files = sorted(jsonl_dir.glob(pattern))
    if not jsonl_files:
        return BulkInsertResult(
            index=index,
            total_docs=0,
            success_count=0,
            error_count=0,
            errors=[],
        )

    return bulk_insert_jsonl(
        client=client,
        jsonl_files=jsonl_files,
        index=index,
        batch_size=batch_size,
        max_errors=max_errors,
    )
