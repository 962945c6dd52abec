"""Tests for single-document services and update-by-query."""

import json
from typing import Callable, List

import httpx
import pytest

from elastic_dispatch.client import Client
from elastic_dispatch.errors import ElasticError, is_conflict, is_not_found
from elastic_dispatch.services.document import (delete_document, get_document,
                                               index_document, update_by_query)

MakeClient = Callable[..., Client]

CREATED = {
    "_index": "tweets", "_id": "1", "_version": 1, "result": "created",
    "_shards": {"total": 2, "successful": 1, "failed": 0}, "_seq_no": 0, "_primary_term": 1,
}


class TestIndexDocument:
    def test_with_id(self, make_client: MakeClient) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json=CREATED)

        client = make_client(handler)
        res = index_document(client, "tweets", {"user": "olivere"}, doc_id="1", refresh="true")

        assert seen[0].method == "PUT"
        assert seen[0].url.path == "/tweets/_doc/1"
        assert seen[0].url.params["refresh"] == "true"
        assert "op_type" not in seen[0].url.params
        assert res.id == "1"
        assert res.result == "created"
        assert res.shards is not None
        assert res.shards.successful == 1

    def test_generated_id(self, make_client: MakeClient) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={**CREATED, "_id": "aBcD"})

        client = make_client(handler)
        res = index_document(client, "tweets", {"user": "olivere"})

        assert seen[0].method == "POST"
        assert seen[0].url.path == "/tweets/_doc"
        assert res.id == "aBcD"

    def test_create_conflict(self, make_client: MakeClient) -> None:
        body = {"error": {"type": "version_conflict_engine_exception", "reason": "[1]: version conflict"}, "status": 409}
        client = make_client(lambda request: httpx.Response(409, json=body))

        with pytest.raises(ElasticError) as excinfo:
            index_document(client, "tweets", {"user": "olivere"}, doc_id="1", op_type="create")
        assert is_conflict(excinfo.value)


class TestGetDocument:
    def test_found(self, make_client: MakeClient) -> None:
        body = {"_index": "tweets", "_id": "1", "_version": 1, "found": True, "_source": {"user": "olivere"}}
        client = make_client(lambda request: httpx.Response(200, json=body))

        res = get_document(client, "tweets", "1")

        assert res.found
        assert res.source == {"user": "olivere"}

    def test_missing_document(self, make_client: MakeClient) -> None:
        body = {"_index": "tweets", "_id": "2", "found": False}
        client = make_client(lambda request: httpx.Response(404, json=body))

        res = get_document(client, "tweets", "2")

        assert not res.found
        assert res.source is None

    def test_missing_index(self, make_client: MakeClient) -> None:
        body = {"error": {"type": "index_not_found_exception", "reason": "no such index [t]", "index": "t"}, "status": 404}
        client = make_client(lambda request: httpx.Response(404, json=body))

        with pytest.raises(ElasticError) as excinfo:
            get_document(client, "t", "1")
        assert is_not_found(excinfo.value)
        assert excinfo.value.details is not None
        assert excinfo.value.details.index == "t"


def test_delete_document(make_client: MakeClient) -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={**CREATED, "result": "deleted", "_version": 2})

    client = make_client(handler)
    res = delete_document(client, "tweets", "1")

    assert seen[0].method == "DELETE"
    assert res.result == "deleted"
    assert res.version == 2


class TestUpdateByQuery:
    SUMMARY = {
        "took": 12, "timed_out": False, "total": 3, "updated": 2, "deleted": 0, "batches": 1,
        "version_conflicts": 1, "noops": 0, "retries": {"bulk": 0, "search": 0},
        "throttled_millis": 0, "failures": [],
    }

    def test_proceed_on_conflicts_accepts_409(self, make_client: MakeClient) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(409, json=self.SUMMARY)

        client = make_client(handler)
        res = update_by_query(
            client,
            "tweets",
            query={"term": {"user": "olivere"}},
            script={"source": "ctx._source.retweets += 1"},
            proceed_on_conflicts=True,
        )

        assert seen[0].url.path == "/tweets/_update_by_query"
        assert seen[0].url.params["conflicts"] == "proceed"
        assert json.loads(seen[0].content) == {
            "query": {"term": {"user": "olivere"}},
            "script": {"source": "ctx._source.retweets += 1"},
        }
        assert res.updated == 2
        assert res.version_conflicts == 1

    def test_conflict_raises_without_flag(self, make_client: MakeClient) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(409, json=self.SUMMARY)

        client = make_client(handler)
        with pytest.raises(ElasticError) as excinfo:
            update_by_query(client, "tweets")

        assert is_conflict(excinfo.value)
        assert "conflicts" not in seen[0].url.params
        assert seen[0].content == b""

    def test_async_task(self, make_client: MakeClient) -> None:
        client = make_client(lambda request: httpx.Response(200, json={"task": "node1:42"}))
        res = update_by_query(client, "tweets", wait_for_completion=False)
        assert res.task == "node1:42"
