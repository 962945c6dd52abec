"""\
Structured JSONL logging.

Two ways in:
- The dispatch client writes to *sinks*: any object with ``emit(record)``.
  ``JsonlSink``, ``StderrSink`` and ``RunLogSink`` are provided.
- CLI commands wrap their work in ``run_logger(...)`` and call
  ``log_debug`` / ``log_info`` / ``log_warn`` / ``log_error``. Records go to
  ``{result_dir}/logs/{run_id}.log.jsonl`` and, from INFO up, to stderr.
"""
import inspect
import sys
import threading
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from secrets import token_hex
from typing import Any, Generator, Optional, Protocol, Union, runtime_checkable

from elastic_dispatch.config import (LOCAL_TZ, LOG_DIR_NAME, TODAY, TODAY_STR,
                                     Config, default_config)
from elastic_dispatch.logging.schema import (ErrorInfo, Extra, LoggerContext,
                                             LogLevel, LogRecord)

_ctx: ContextVar[Optional[LoggerContext]] = ContextVar("_ctx", default=None)
_file_lock = threading.Lock()

_STDERR_LEVELS = {"INFO", "WARNING", "ERROR", "CRITICAL"}


@runtime_checkable
class LogSink(Protocol):
    def emit(self, record: LogRecord) -> None:
        ...


def make_record(
    level: LogLevel,
    message: Optional[str] = None,
    *,
    source: str,
    error: Optional[Union[BaseException, ErrorInfo]] = None,
    **extra: Any,
) -> LogRecord:
    ctx = _ctx.get()

    error_info: Optional[ErrorInfo] = None
    if error is not None:
        if isinstance(error, ErrorInfo):
            error_info = error
        else:
            tb = "".join(traceback.format_exception(type(error), error, error.__traceback__)) \
                if error.__traceback__ is not None else None
            error_info = ErrorInfo(
                type=type(error).__name__,
                message=str(error),
                traceback=tb,
            )

    return LogRecord(
        timestamp=datetime.now(LOCAL_TZ),
        run_id=ctx.run_id if ctx else None,
        run_name=ctx.run_name if ctx else None,
        source=source,
        log_level=level,
        message=message,
        error=error_info,
        extra=Extra(**extra),
    )


class JsonlSink:
    """Appends every record as one JSON line to ``path``."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()
        path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: LogRecord) -> None:
        with self._lock:
            _append_jsonl(self.path, record)


class StderrSink:
    """Writes a one-line summary of every record to stderr."""

    def emit(self, record: LogRecord) -> None:
        _emit_stderr(record, force=True)


class RunLogSink:
    """Forwards records into the run log that is active when the sink is created.

    The context is captured eagerly because records may be emitted from
    the pool's health-check thread, which does not see the caller's context.
    """

    def __init__(self) -> None:
        ctx = _ctx.get()
        if ctx is None:
            raise RuntimeError("logger is not initialized (run_logger not entered)")
        self._ctx = ctx

    def emit(self, record: LogRecord) -> None:
        record = record.model_copy(update={"run_id": self._ctx.run_id, "run_name": self._ctx.run_name})
        with _file_lock:
            _append_jsonl(self._ctx.log_file, record)
        _emit_stderr(record)


def init_logger(
    *,
    run_name: str,
    config: Optional[Config] = None,
) -> LoggerContext:
    if config is None:
        config = default_config
    run_id = f"{TODAY_STR}_{run_name}_{token_hex(2)}"
    log_file = config.result_dir.joinpath(LOG_DIR_NAME, f"{run_id}.log.jsonl")
    log_file.parent.mkdir(parents=True, exist_ok=True)

    ctx = LoggerContext(
        run_name=run_name,
        run_id=run_id,
        run_date=TODAY,
        log_file=log_file,
        config=config,
    )
    _ctx.set(ctx)

    return ctx


@contextmanager
def run_logger(
    *,
    run_name: Optional[str] = None,
    config: Optional[Config] = None,
) -> Generator[LoggerContext, None, None]:
    """Initialize the run log and record start / end / failed around the block."""
    if run_name is None:
        run_name = Path(sys.argv[0]).stem or "adhoc"
    ctx = init_logger(run_name=run_name, config=config)
    _log("INFO", f"{run_name} started", _source=__name__, lifecycle="start")
    try:
        yield ctx
    except BaseException as e:
        _log("CRITICAL", f"{run_name} failed", error=e, _source=__name__, lifecycle="failed")
        raise
    _log("INFO", f"{run_name} completed", _source=__name__, lifecycle="end")


def log_debug(message: str, **extra: Any) -> None:
    _log("DEBUG", message, **extra)


def log_info(message: str, **extra: Any) -> None:
    _log("INFO", message, **extra)


def log_warn(message: str, **extra: Any) -> None:
    _log("WARNING", message, **extra)


def log_error(message: str, error: Optional[BaseException] = None, **extra: Any) -> None:
    _log("ERROR", message, error=error, **extra)


def _log(
    level: LogLevel,
    message: str,
    error: Optional[BaseException] = None,
    _source: Optional[str] = None,
    **extra: Any,
) -> None:
    ctx = _ctx.get()
    if ctx is None:
        raise RuntimeError("logger is not initialized (run_logger not entered)")

    record = make_record(level, message, source=_source or _detect_source(), error=error, **extra)
    with _file_lock:
        _append_jsonl(ctx.log_file, record)
    _emit_stderr(record)


def _append_jsonl(path: Path, record: LogRecord) -> None:
    with path.open("a", encoding="utf-8") as f:
        f.write(record.model_dump_json())
        f.write("\n")


def _emit_stderr(record: LogRecord, force: bool = False) -> None:
    if not force and record.log_level not in _STDERR_LEVELS:
        return
    if record.extra.lifecycle in ("start", "end"):
        return

    ts = record.timestamp.isoformat(timespec="seconds")
    line = f"{ts} - {record.log_level}"
    if record.run_name:
        line += f" - {record.run_name}"
    if record.message:
        line += f" - {record.message}"
    if record.error is not None:
        line += f" ({record.error.type}: {record.error.message})"

    sys.stderr.write(line + "\n")
    sys.stderr.flush()


def _detect_source() -> str:
    frame = inspect.currentframe()
    try:
        # _detect_source <- _log <- log_xxx <- caller
        caller = frame
        for _ in range(3):
            if caller is None:
                return "<unknown>"
            caller = caller.f_back
        if caller is None:
            return "<unknown>"

        module = inspect.getmodule(caller)
        if module and module.__name__:
            return module.__name__

        return "<unknown>"
    finally:
        del frame
