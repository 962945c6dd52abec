"""Tests for errors.py."""

import json

import httpx
import pytest
from hypothesis import given
from hypothesis import strategies as st

from elastic_dispatch.errors import (ElasticError, ErrorDetails, NoClientError,
                                     check_response, create_response_error,
                                     is_conflict, is_forbidden, is_not_found,
                                     is_status_code, is_timeout,
                                     is_unauthorized)

from tests.py_tests.strategies import (st_error_reason, st_error_status,
                                       st_error_type, st_status_code)


class TestCheckResponse:
    def test_structured_error_body(self) -> None:
        body = {"error": {"type": "index_missing_exception", "reason": "no such index"}, "status": 404}
        response = httpx.Response(404, json=body)

        with pytest.raises(ElasticError) as excinfo:
            check_response(response)

        err = excinfo.value
        assert err.status == 404
        assert err.details is not None
        assert err.details.type == "index_missing_exception"
        assert err.details.reason == "no such index"
        assert str(err) == "elastic: Error 404 (Not Found): no such index [type=index_missing_exception]"
        assert is_not_found(err)

    def test_index_missing_details(self) -> None:
        body = b'{"error":{"type":"index_missing_exception","reason":"no such index","index":"t"},"status":404}'

        with pytest.raises(ElasticError) as excinfo:
            check_response(httpx.Response(404, content=body))

        assert is_not_found(excinfo.value)
        assert excinfo.value.details is not None
        assert excinfo.value.details.index == "t"

    def test_empty_body(self) -> None:
        with pytest.raises(ElasticError) as excinfo:
            check_response(httpx.Response(503))

        assert excinfo.value.status == 503
        assert excinfo.value.details is None
        assert str(excinfo.value) == "elastic: Error 503 (Service Unavailable)"

    def test_body_that_is_not_json(self) -> None:
        with pytest.raises(ElasticError) as excinfo:
            check_response(httpx.Response(502, text="<html>Bad Gateway</html>"))

        assert excinfo.value.status == 502
        assert excinfo.value.details is None

    def test_legacy_string_error(self) -> None:
        body = {"error": "IndexMissingException[[test] missing]", "status": 404}

        with pytest.raises(ElasticError) as excinfo:
            check_response(httpx.Response(404, json=body))

        assert excinfo.value.details is not None
        assert excinfo.value.details.reason == "IndexMissingException[[test] missing]"

    def test_root_cause_is_parsed(self) -> None:
        body = {
            "error": {
                "type": "search_phase_execution_exception",
                "reason": "all shards failed",
                "phase": "query",
                "grouped": True,
                "root_cause": [{"type": "query_shard_exception", "reason": "bad query", "index": "t"}],
                "failed_shards": [{"shard": 0, "index": "t"}],
            },
            "status": 400,
        }

        with pytest.raises(ElasticError) as excinfo:
            check_response(httpx.Response(400, json=body))

        details = excinfo.value.details
        assert details is not None
        assert details.phase == "query"
        assert details.grouped is True
        assert details.root_cause[0].type == "query_shard_exception"
        assert details.failed_shards == [{"shard": 0, "index": "t"}]

    def test_unknown_status_phrase(self) -> None:
        err = ElasticError(599)
        assert str(err) == "elastic: Error 599 (Unknown Status)"

    @given(status=st.integers(min_value=200, max_value=299))
    def test_success_statuses_never_raise(self, status: int) -> None:
        check_response(httpx.Response(status))

    @given(status=st_status_code().filter(lambda s: not 200 <= s <= 299))
    def test_other_statuses_always_raise(self, status: int) -> None:
        with pytest.raises(ElasticError) as excinfo:
            check_response(httpx.Response(status))
        assert excinfo.value.status == status

    @given(status=st_error_status(), type_=st_error_type(), reason=st_error_reason())
    def test_message_carries_reason_and_type(self, status: int, type_: str, reason: str) -> None:
        body = json.dumps({"error": {"type": type_, "reason": reason}, "status": status}).encode()
        err = create_response_error(status, body)
        assert err.status == status
        assert str(err).endswith(f": {reason} [type={type_}]")


class TestClassifiers:
    def test_is_not_found_only_for_404(self) -> None:
        assert is_not_found(ElasticError(404))
        assert not is_not_found(ElasticError(400))
        assert not is_not_found(ElasticError(500))

    @pytest.mark.parametrize("err", [
        None,
        ValueError("404"),
        NoClientError(),
        httpx.ConnectError("connection refused"),
    ])
    def test_non_elastic_errors_are_never_classified(self, err: BaseException) -> None:
        assert not is_not_found(err)
        assert not is_conflict(err)
        assert not is_timeout(err)
        assert not is_unauthorized(err)
        assert not is_forbidden(err)
        assert not is_status_code(err, 404)

    @pytest.mark.parametrize("status, classifier", [
        (409, is_conflict),
        (408, is_timeout),
        (401, is_unauthorized),
        (403, is_forbidden),
    ])
    def test_status_classifiers(self, status: int, classifier) -> None:  # type: ignore[no-untyped-def]
        assert classifier(ElasticError(status))
        assert not classifier(ElasticError(404))

    @given(status=st_error_status())
    def test_is_not_found_matches_status(self, status: int) -> None:
        assert is_not_found(ElasticError(status)) == (status == 404)


class TestErrorDetails:
    def test_dotted_resource_fields(self) -> None:
        details = ErrorDetails.model_validate({
            "type": "resource_already_exists_exception",
            "reason": "index [t] already exists",
            "resource.type": "index_or_alias",
            "resource.id": "t",
            "index_uuid": "abc",
        })
        assert details.resource_type == "index_or_alias"
        assert details.resource_id == "t"
        assert details.model_extra == {"index_uuid": "abc"}
