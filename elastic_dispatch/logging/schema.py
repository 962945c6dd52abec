from datetime import date, datetime
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from elastic_dispatch.config import Config

# log_level usage:
# - TRACE: Raw request / response dumps of the dispatch client. Not shown in stderr.
# - DEBUG: Detailed info for debugging (config dumps, skipped items). Not shown in stderr.
# - INFO: One line per completed request, progress, completion. Shown in stderr.
# - WARNING: Succeeded but incomplete (e.g. a node marked dead). Shown in stderr.
# - ERROR: A request or probe failed. Shown in stderr.
# - CRITICAL: Fatal, processing stops (raises exception). Shown in stderr.
LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# lifecycle is expressed in the extra field:
# - lifecycle="start": run started
# - lifecycle="end": run completed successfully
# - lifecycle="failed": run failed
Lifecycle = Literal["start", "end", "failed"]


class Extra(BaseModel):
    """
    Additional structured data for log records.

    Reserved fields have predefined meanings.
    Additional arbitrary fields are allowed via extra="allow".
    """
    model_config = ConfigDict(extra="allow")

    lifecycle: Optional[Lifecycle] = Field(
        default=None,
        description="Run lifecycle stage: start, end, or failed",
    )
    method: Optional[str] = Field(
        default=None,
        description="HTTP method of the request",
        examples=["GET", "POST"],
    )
    url: Optional[str] = Field(
        default=None,
        description="Full request URL, or base URL of a probed node",
        examples=["http://127.0.0.1:9200/_cluster/health"],
    )
    status: Optional[int] = Field(
        default=None,
        description="HTTP status code of the response",
        ge=100,
    )
    took_seconds: Optional[float] = Field(
        default=None,
        description="Elapsed request time in seconds",
        ge=0,
    )
    index: Optional[str] = Field(
        default=None,
        description="Elasticsearch index name",
        examples=["products", "logs-2026.10"],
    )
    count: Optional[int] = Field(
        default=None,
        description="Count of items (for summary logs)",
        ge=0,
    )


class ErrorInfo(BaseModel):
    """Exception information for error logs."""

    type: str = Field(
        ...,
        description="Exception class name",
        examples=["ConnectError", "ElasticError"],
    )
    message: str = Field(
        ...,
        description="Exception message (str(e))",
    )
    traceback: Optional[str] = Field(
        default=None,
        description="Full traceback string",
    )


class LoggerContext(BaseModel):
    """Runtime context of a CLI run."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_name: str = Field(
        ...,
        description="Name of the run",
    )
    run_id: str = Field(
        ...,
        description="Unique run identifier: {YYYYMMDD}_{run_name}_{hex4}",
    )
    run_date: date = Field(
        ...,
        description="Run date (TODAY when logger was initialized)",
    )
    log_file: Path = Field(
        ...,
        description="Path to the JSONL log file",
    )
    config: Config = Field(
        ...,
        description="Config instance",
    )


class LogRecord(BaseModel):
    """Single log record."""

    timestamp: datetime = Field(
        ...,
        description="Log timestamp in UTC",
        examples=["2026-10-18T10:30:00+00:00"],
    )

    # run identifiers, only set inside a CLI run
    run_id: Optional[str] = Field(
        default=None,
        description="Unique run identifier: {YYYYMMDD}_{run_name}_{hex4}",
        examples=["20261018_dispatch_health_a1b2"],
    )
    run_name: Optional[str] = Field(
        default=None,
        description="Name of the run (CLI command name)",
        examples=["dispatch_health", "dispatch_bulk_insert"],
    )

    source: str = Field(
        ...,
        description="Python module path where log was emitted",
        examples=["elastic_dispatch.client"],
    )

    log_level: LogLevel = Field(
        ...,
        description="Log level: TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )

    message: Optional[str] = Field(
        default=None,
        description="Human-readable log message",
    )
    error: Optional[ErrorInfo] = Field(
        default=None,
        description="Error information (set when exception occurred)",
    )
    extra: Extra = Field(
        default_factory=Extra,
        description="Additional structured data (lifecycle, method, url, status, ...)",
    )
