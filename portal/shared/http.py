"""
API Gateway proxy envelope.

Parses proxy events into an ApiRequest, validates JSON bodies against
request models, and turns handler results or errors into
`{"statusCode", "headers", "body"}` responses with a `{success, ...}`
JSON body.
"""

import base64
import functools
import json
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
import structlog

from portal.shared.exceptions import PortalError, ValidationError

log = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

JSON_HEADERS = {"Content-Type": "application/json"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, BaseModel):
        return value.model_dump()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_response(status_code: int, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": dict(JSON_HEADERS),
        "body": json.dumps(payload, default=_json_default),
    }


def _format_validation_error(e: PydanticValidationError) -> str:
    first = e.errors()[0]
    message = str(first.get("msg", "Invalid request"))
    message = message.removeprefix("Value error, ")
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "__root__")
    if first.get("type") == "value_error" or not loc:
        return message
    return f"{loc}: {message}"


@dataclass
class ApiRequest:
    """Parsed API Gateway proxy request."""

    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)
    method: str = "POST"
    path: str = ""

    def parse(self, model: type[T]) -> T:
        """
        Validate the JSON body against a request model.

        Raises:
            ValidationError: With the first validation problem as message
        """
        try:
            return model.model_validate(self.body)
        except PydanticValidationError as e:
            raise ValidationError(_format_validation_error(e), model=model.__name__) from e

    def query_param(self, name: str, default: str | None = None) -> str | None:
        value = self.query.get(name)
        if value is None or str(value).strip() == "":
            return default
        return str(value).strip()


def parse_event(event: dict[str, Any]) -> ApiRequest:
    """
    Build an ApiRequest from an API Gateway proxy event.

    Direct invocations that pass the body as a dict are accepted too.
    """
    raw_body = event.get("body")
    if raw_body in (None, ""):
        body: Any = {}
    elif isinstance(raw_body, dict):
        body = raw_body
    else:
        text = raw_body
        if event.get("isBase64Encoded"):
            text = base64.b64decode(raw_body).decode("utf-8")
        try:
            body = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError("Request body must be valid JSON") from e

    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    return ApiRequest(
        headers={str(k): str(v) for k, v in (event.get("headers") or {}).items()},
        body=body,
        query=dict(event.get("queryStringParameters") or {}),
        method=str(event.get("httpMethod") or "POST").upper(),
        path=str(event.get("path") or ""),
    )


def api_handler(operation: str) -> Callable[[Callable[[ApiRequest], dict[str, Any]]], Callable]:
    """
    Wrap an HTTP operation as a Lambda handler.

    The wrapped function receives an ApiRequest and returns the success
    payload; `success: True` is added. Errors never escape: portal errors
    map to their status code, anything else to 500 with its message.
    """

    def decorator(func: Callable[[ApiRequest], dict[str, Any]]) -> Callable:
        @functools.wraps(func)
        def wrapper(event: dict[str, Any], context: Any) -> dict[str, Any]:
            try:
                request = parse_event(event or {})
                result = func(request)
                return json_response(200, {"success": True, **(result or {})})
            except PortalError as e:
                log_method = log.warning if e.status_code < 500 else log.error
                log_method(
                    f"{operation}_failed",
                    status_code=e.status_code,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                payload: dict[str, Any] = {"success": False, "error": e.message}
                details = e.context.get("details")
                if details:
                    payload["details"] = details
                return json_response(e.status_code, payload)
            except Exception as e:
                log.exception(f"{operation}_crashed", error=str(e))
                return json_response(500, {"success": False, "error": str(e) or "Internal error"})

        return wrapper

    return decorator
