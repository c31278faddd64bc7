"""
Typed route pipeline - applies a RouteSchema to a Flask view.

For every request the bound ContractValidator:
1. Checks declared file fields (all violations reported together)
2. Validates body, query, params, headers in that order, replacing each
   segment with the parsed value (handlers see coerced data)
3. Calls the handler as handler(req, res) where res is a ContractResponse
4. Validates whatever the handler emits against the schema declared for the
   status code in effect (no schema for that status -> unchecked)

Any classified failure is resolved by the first available error handler:
route handler -> global handler (config) -> default_error_handler.
A handler returning None defers: the error is raised to Flask's error
handlers (see typed_contracts.middleware.error_envelope).
"""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from flask import jsonify, make_response, request
from pydantic import TypeAdapter
from pydantic_core import to_jsonable_python
from werkzeug.datastructures import Headers
from werkzeug.wrappers import Response as WerkzeugResponse

from ..config import ContractConfig, ErrorHandler, ResponseMode, get_config
from ..errors import ContractValidationError, RequestValidationError, ResponseValidationError
from .registry import RouteSchema
from .validate import (
    SegmentValidator,
    check_files,
    collect_body,
    collect_headers,
    collect_query,
    safe_parse,
)


logger = logging.getLogger('typed_contracts.contracts')

# Validation order after the files check
SEGMENT_ORDER = ('body', 'query', 'params', 'headers')

ERROR_MESSAGES = {
    'body': 'Body validation failed.',
    'query': 'Query string validation failed.',
    'params': 'Params validation failed.',
    'headers': 'Headers validation failed.',
    'files': 'Files validation failed.',
    'response': 'Internal error: server response does not match expected schema.',
}


def default_error_handler(error: ContractValidationError):
    """
    Built-in resolution for contract failures.

    Request failures -> 400 with field errors.
    Response failures -> 500 with a generic message; the field errors were
    already logged and are not exposed to the client.
    """
    body = {
        "message": ERROR_MESSAGES.get(error.segment, error.message),
        "status": "error",
    }
    if not isinstance(error, ResponseValidationError):
        body["errors"] = error.field_errors
    return jsonify(body), error.http_status


@dataclass
class ValidatedRequest:
    """
    Request segments as seen by a typed handler.

    Declared segments hold the parsed value (model instance, dict, ...);
    undeclared ones hold the raw value.
    """
    body: Any = None
    query: Any = None
    params: Any = None
    headers: Any = None
    files: Any = None
    raw: Any = None

    @classmethod
    def from_flask(cls, flask_request, view_args: Dict[str, Any]) -> 'ValidatedRequest':
        return cls(
            body=collect_body(flask_request),
            query=collect_query(flask_request),
            params=dict(view_args),
            headers=collect_headers(flask_request),
            files=flask_request.files,
            raw=flask_request,
        )


class ContractResponse:
    """
    Outbound adapter handed to typed handlers.

    Remembers the status code set via status() and validates each emitted
    body against the schema for that status. A request emits at most once.

    Usage:
        def create_user(req, res):
            return res.status(201).json({"id": 1})
    """

    def __init__(
        self,
        adapters: Dict[int, TypeAdapter],
        request: ValidatedRequest,
        resolve: Callable[[ContractValidationError], Any],
        mode: ResponseMode = ResponseMode.STRICT,
    ):
        self.status_code = 200
        self.headers: Dict[str, str] = {}
        self.emitted = None
        self._adapters = adapters
        self._request = request
        self._resolve = resolve
        self._mode = mode

    def status(self, code: int) -> 'ContractResponse':
        self.status_code = int(code)
        return self

    def json(self, body: Any):
        return self._emit(body, as_json=True)

    def send(self, body: Any):
        """Emit str/bytes as-is, anything else as JSON."""
        return self._emit(body, as_json=not isinstance(body, (str, bytes)))

    def _emit(self, body: Any, as_json: bool):
        if self.emitted is not None:
            raise RuntimeError("Response already emitted for this request")

        blocked = self._check(body)
        if blocked is not None:
            return blocked

        payload = jsonify(to_jsonable_python(body)) if as_json else body
        response = make_response(payload, self.status_code)
        for name, value in self.headers.items():
            response.headers[name] = value
        self.emitted = response
        return response

    def _check(self, body: Any):
        """
        Validate body against the schema for the current status.

        Returns the resolved error reply when the body is blocked (STRICT),
        None when it may be sent.
        """
        adapter = self._adapters.get(self.status_code)
        if adapter is None:
            return None

        result = safe_parse(adapter, body)
        if result.success:
            return None

        error = ResponseValidationError(
            self.status_code,
            result.error,
            request=self._request.raw,
            response=self,
            response_body=body,
        )
        _log_violation(error)
        if self._mode == ResponseMode.STRICT:
            self.emitted = make_response(self._resolve(error))
            return self.emitted
        return None

    def _adopt(self, response: WerkzeugResponse, status: Any, headers: Any):
        """Check and emit a response object built by the handler (jsonify(...))."""
        if status is not None:
            if isinstance(status, int):
                response.status_code = status
            else:
                response.status = status
        if headers:
            response.headers.update(headers)

        self.status_code = response.status_code
        if self.status_code in self._adapters:
            blocked = self._check(response.get_json(silent=True))
            if blocked is not None:
                return blocked

        self.emitted = response
        return response

    def finalize(self, result: Any):
        """
        Turn a handler's return value into the outgoing response.

        Plain bodies, response objects and (body, status[, headers]) tuples
        are all checked against the schema for the resulting status. Response
        objects are checked through their JSON payload and sent unchanged.
        """
        if self.emitted is not None:
            return self.emitted
        if result is None:
            return result

        body, status, headers = _unpack(result)
        if isinstance(body, WerkzeugResponse):
            return self._adopt(body, status, headers)
        if status is not None:
            self.status(status)
        if headers:
            self.headers.update(dict(headers))
        return self.send(body)


class ContractValidator:
    """Request/response enforcement bound to one route declaration."""

    def __init__(
        self,
        schema: RouteSchema,
        config: Optional[ContractConfig] = None,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.schema = schema
        self.config = get_config() if config is None else config
        self.error_handler = error_handler
        self.segments = [
            SegmentValidator(name, getattr(schema, name))
            for name in SEGMENT_ORDER
            if getattr(schema, name) is not None
        ]
        self.response_adapters = {
            code: TypeAdapter(response_schema)
            for code, response_schema in (schema.response or {}).items()
        }

    def validate_request(self, req: ValidatedRequest) -> Optional[RequestValidationError]:
        """
        Run the request checks in order, stopping at the first failure.

        Returns:
            The classified error, or None when every declared segment passed
        """
        if self.schema.files:
            files_error = check_files(req.raw.files, self.schema.files)
            if files_error is not None:
                return RequestValidationError('files', files_error, req.raw)

        for segment in self.segments:
            result = segment.parse(self._collect(segment, req))
            if not result.success:
                return RequestValidationError(segment.segment, result.error, req.raw)
            setattr(req, segment.segment, result.data)

        return None

    def resolve(self, error: ContractValidationError):
        """Hand a classified error to the first available error handler."""
        handler = self.error_handler or self.config.error_handler or default_error_handler
        result = handler(error)
        if result is None:
            raise error
        return result

    def wrap(self, handler: Callable) -> Callable:
        """Build the Flask view function for a typed handler."""

        @functools.wraps(handler)
        def view(**view_args):
            req = ValidatedRequest.from_flask(request._get_current_object(), view_args)

            error = self.validate_request(req)
            if error is not None:
                _log_violation(error)
                return self.resolve(error)

            res = ContractResponse(
                self.response_adapters,
                req,
                self.resolve,
                mode=self.config.response_mode,
            )
            return res.finalize(handler(req, res))

        return view

    @staticmethod
    def _collect(segment: SegmentValidator, req: ValidatedRequest) -> Any:
        if segment.segment == 'body':
            return collect_body(req.raw, segment.list_keys)
        if segment.segment == 'query':
            return collect_query(req.raw, segment.list_keys)
        if segment.segment == 'headers':
            return collect_headers(req.raw, segment.header_names)
        return getattr(req, segment.segment)


def _unpack(result: Any) -> Tuple[Any, Optional[int], Any]:
    """Split a Flask-style return value into (body, status, headers)."""
    if not isinstance(result, tuple):
        return result, None, None
    if len(result) == 3:
        return result
    if len(result) == 2:
        body, extra = result
        if isinstance(extra, (dict, list, Headers)):
            return body, None, extra
        return body, extra, None
    return result[0], None, None


def _log_violation(error: ContractValidationError) -> None:
    """Log contract violation for observability."""
    if isinstance(error, ResponseValidationError):
        logger.error(
            f"Response validation failed for status {error.status_code}: {error.field_errors}",
            extra={
                "event": "response_contract_violation",
                "status_code": error.status_code,
                "details": error.field_errors,
            },
        )
    else:
        logger.info(
            f"Request validation failed: segment={error.segment}",
            extra={
                "event": "request_contract_violation",
                "segment": error.segment,
                "details": error.field_errors,
            },
        )
