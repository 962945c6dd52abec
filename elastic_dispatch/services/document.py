"""Single-document operations and update-by-query."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from elastic_dispatch.client import Client
from elastic_dispatch.errors import create_response_error
from elastic_dispatch.utils import build_path


class ShardsInfo(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0


class IndexResponse(BaseModel):
    """Result of indexing, creating, updating or deleting one document."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    index: str = Field(default="", alias="_index")
    id: str = Field(default="", alias="_id")
    version: Optional[int] = Field(default=None, alias="_version")
    result: str = ""
    shards: Optional[ShardsInfo] = Field(default=None, alias="_shards")
    seq_no: Optional[int] = Field(default=None, alias="_seq_no")
    primary_term: Optional[int] = Field(default=None, alias="_primary_term")
    status: Optional[int] = None


class GetResult(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    index: str = Field(default="", alias="_index")
    id: str = Field(default="", alias="_id")
    version: Optional[int] = Field(default=None, alias="_version")
    seq_no: Optional[int] = Field(default=None, alias="_seq_no")
    primary_term: Optional[int] = Field(default=None, alias="_primary_term")
    found: bool = False
    source: Optional[Dict[str, Any]] = Field(default=None, alias="_source")


class RetriesInfo(BaseModel):
    bulk: int = 0
    search: int = 0


class UpdateByQueryResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    took: int = 0
    timed_out: bool = False
    total: int = 0
    updated: int = 0
    deleted: int = 0
    batches: int = 0
    version_conflicts: int = 0
    noops: int = 0
    retries: RetriesInfo = RetriesInfo()
    throttled_millis: int = 0
    failures: List[Dict[str, Any]] = Field(default_factory=list)
    task: Optional[str] = None


def index_document(
    client: Client,
    index: str,
    document: Any,
    doc_id: Optional[str] = None,
    refresh: Optional[str] = None,
    op_type: Optional[str] = None,
) -> IndexResponse:
    """Index ``document``; without ``doc_id`` the server generates the id.

    ``op_type="create"`` fails with a 409 if the id already exists.
    """
    params = {"refresh": refresh, "op_type": op_type}
    if doc_id is None:
        res = client.perform_request(
            "POST", build_path(index, "_doc"), params=params, body=document, result_type=IndexResponse,
        )
    else:
        res = client.perform_request(
            "PUT", build_path(index, "_doc", doc_id), params=params, body=document, result_type=IndexResponse,
        )
    return res.data


def get_document(client: Client, index: str, doc_id: str) -> GetResult:
    """Fetch one document. A missing document yields ``found=False``, not an error.

    A missing index still raises, since its 404 body is an error envelope.
    """
    res = client.perform_request("GET", build_path(index, "_doc", doc_id), ignore_errors={404})
    data = res.data or {}
    if res.status_code == 404 and "error" in data:
        # index_not_found and friends
        raise create_response_error(res.status_code, res.body)
    return GetResult.model_validate(data)


def delete_document(
    client: Client,
    index: str,
    doc_id: str,
    refresh: Optional[str] = None,
) -> IndexResponse:
    res = client.perform_request(
        "DELETE", build_path(index, "_doc", doc_id), params={"refresh": refresh}, result_type=IndexResponse,
    )
    return res.data


def update_by_query(
    client: Client,
    index: str,
    query: Optional[Dict[str, Any]] = None,
    script: Optional[Dict[str, Any]] = None,
    proceed_on_conflicts: bool = False,
    refresh: Optional[bool] = None,
    wait_for_completion: Optional[bool] = None,
) -> UpdateByQueryResponse:
    """Update every document in ``index`` matching ``query``.

    Args:
        client: Dispatch client
        index: Index name or pattern
        query: Query DSL object; all documents when omitted
        script: Update script, e.g. {"source": "ctx._source.n += 1"}
        proceed_on_conflicts: Count version conflicts instead of aborting.
            Sends ``conflicts=proceed`` and accepts a 409 as a result.
        refresh: Refresh the index once done
        wait_for_completion: False returns a task id immediately

    Returns:
        The update-by-query summary (``version_conflicts`` counts skipped documents)
    """
    body: Dict[str, Any] = {}
    if query is not None:
        body["query"] = query
    if script is not None:
        body["script"] = script

    params = {
        "conflicts": "proceed" if proceed_on_conflicts else None,
        "refresh": refresh,
        "wait_for_completion": wait_for_completion,
    }
    res = client.perform_request(
        "POST",
        build_path(index, "_update_by_query"),
        params=params,
        body=body or None,
        result_type=UpdateByQueryResponse,
        ignore_errors={409} if proceed_on_conflicts else (),
    )
    if res.data is None:
        return UpdateByQueryResponse()
    return res.data
