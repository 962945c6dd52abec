"""Tests for logging schema."""
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from elastic_dispatch.config import Config
from elastic_dispatch.logging.schema import (ErrorInfo, Extra, LoggerContext,
                                             LogRecord)


class TestLogRecord:
    def test_log_record_validation(self) -> None:
        record = LogRecord(
            timestamp=datetime(2026, 10, 18, 10, 30, 0, tzinfo=ZoneInfo("UTC")),
            run_id="20261018_dispatch_health_a1b2",
            run_name="dispatch_health",
            source="elastic_dispatch.client",
            log_level="INFO",
            message="GET http://127.0.0.1:9200/ [status:200, request:0.004s]",
        )

        assert record.timestamp.year == 2026
        assert record.run_id == "20261018_dispatch_health_a1b2"
        assert record.source == "elastic_dispatch.client"
        assert record.error is None
        assert record.extra is not None

    def test_run_fields_are_optional(self) -> None:
        record = LogRecord(
            timestamp=datetime.now(ZoneInfo("UTC")),
            source="elastic_dispatch.node",
            log_level="TRACE",
        )
        assert record.run_id is None
        assert record.run_name is None

    def test_log_record_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            LogRecord(
                timestamp=datetime.now(ZoneInfo("UTC")),
                source="test.module",
                log_level="INVALID",  # type: ignore[arg-type]
                message="Test",
            )


class TestExtra:
    def test_extra_default_values(self) -> None:
        extra = Extra()

        assert extra.lifecycle is None
        assert extra.method is None
        assert extra.url is None
        assert extra.status is None
        assert extra.took_seconds is None

    def test_extra_allow_additional_fields(self) -> None:
        extra = Extra(lifecycle="end", repository="backup", snapshots=3)

        assert extra.model_extra is not None
        assert extra.model_extra.get("repository") == "backup"
        assert extra.model_extra.get("snapshots") == 3

    def test_extra_invalid_lifecycle(self) -> None:
        with pytest.raises(ValidationError):
            Extra(lifecycle="invalid")  # type: ignore[arg-type]

    @pytest.mark.parametrize("field, value", [
        ("status", 42),
        ("took_seconds", -0.1),
        ("count", -1),
    ])
    def test_extra_out_of_range(self, field: str, value: float) -> None:
        with pytest.raises(ValidationError):
            Extra(**{field: value})

    def test_extra_nonstandard_status(self) -> None:
        assert Extra(status=600).status == 600


class TestErrorInfo:
    def test_error_info_without_traceback(self) -> None:
        error = ErrorInfo(type="ElasticError", message="elastic: Error 404 (Not Found)")
        assert error.traceback is None


class TestLoggerContext:
    def test_holds_config(self, tmp_path: Path) -> None:
        config = Config(result_dir=tmp_path, healthcheck=False)
        ctx = LoggerContext(
            run_name="dispatch_nodes",
            run_id="20261018_dispatch_nodes_ffff",
            run_date=date(2026, 10, 18),
            log_file=tmp_path.joinpath("logs", "20261018_dispatch_nodes_ffff.log.jsonl"),
            config=config,
        )
        assert ctx.config.healthcheck is False
