"""Error taxonomy of the dispatch core and classification of non-2xx responses."""

from http import HTTPStatus
from typing import Any, Dict, List, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ElasticDispatchError(Exception):
    """Base class of every error raised by elastic_dispatch itself."""


class NoClientError(ElasticDispatchError):
    """Every configured node is currently marked dead."""

    def __init__(self, message: str = "no Elasticsearch node available") -> None:
        super().__init__(message)


class RequestCanceledError(ElasticDispatchError):
    """The caller canceled the request while it was in flight."""


class DecodeError(ElasticDispatchError, ValueError):
    """A response body could not be decoded into the requested type."""


class InvalidRequestError(ElasticDispatchError, ValueError):
    """A request could not be built, e.g. because its URL does not parse."""


class ErrorDetails(BaseModel):
    """The ``error`` object of an Elasticsearch error envelope."""
    model_config = ConfigDict(extra="allow")

    type: str = ""
    reason: str = ""
    resource_type: Optional[str] = Field(default=None, alias="resource.type")
    resource_id: Optional[str] = Field(default=None, alias="resource.id")
    index: Optional[str] = None
    phase: Optional[str] = None
    grouped: Optional[bool] = None
    caused_by: Optional[Dict[str, Any]] = None
    root_cause: List["ErrorDetails"] = Field(default_factory=list)
    failed_shards: List[Dict[str, Any]] = Field(default_factory=list)


class ErrorEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: Optional[int] = None
    error: Optional[Union[ErrorDetails, str]] = None


class ElasticError(ElasticDispatchError):
    """A non-2xx response, normalized.

    ``status`` is always set; ``details`` only when the server sent a
    structured error body.
    """

    def __init__(self, status: int, details: Optional[ErrorDetails] = None) -> None:
        self.status = status
        self.details = details
        super().__init__(self._message())

    def _message(self) -> str:
        try:
            phrase = HTTPStatus(self.status).phrase
        except ValueError:
            phrase = "Unknown Status"
        if self.details is not None and self.details.reason:
            return f"elastic: Error {self.status} ({phrase}): {self.details.reason} [type={self.details.type}]"
        return f"elastic: Error {self.status} ({phrase})"


def create_response_error(status: int, body: bytes) -> ElasticError:
    """Build an ElasticError from a status code and a raw response body.

    Falls back to a status-only error when the body is empty or is not a
    JSON error envelope.
    """
    if not body:
        return ElasticError(status)
    try:
        envelope = ErrorEnvelope.model_validate_json(body)
    except ValidationError:
        return ElasticError(status)

    details: Optional[ErrorDetails] = None
    if isinstance(envelope.error, ErrorDetails):
        details = envelope.error
    elif isinstance(envelope.error, str) and envelope.error:
        details = ErrorDetails(reason=envelope.error)

    return ElasticError(envelope.status or status, details)


def check_response(response: httpx.Response) -> None:
    """Raise an ElasticError unless the status code is in [200, 299]."""
    if 200 <= response.status_code <= 299:
        return
    try:
        body = response.read()
    except httpx.HTTPError:
        body = b""
    raise create_response_error(response.status_code, body)


def is_status_code(err: Optional[BaseException], code: int) -> bool:
    return isinstance(err, ElasticError) and err.status == code


def is_not_found(err: Optional[BaseException]) -> bool:
    """True only for an ElasticError with status 404.

    Transport errors and anything else never count as "not found".
    """
    return is_status_code(err, 404)


def is_conflict(err: Optional[BaseException]) -> bool:
    return is_status_code(err, 409)


def is_timeout(err: Optional[BaseException]) -> bool:
    return is_status_code(err, 408)


def is_unauthorized(err: Optional[BaseException]) -> bool:
    return is_status_code(err, 401)


def is_forbidden(err: Optional[BaseException]) -> bool:
    return is_status_code(err, 403)
