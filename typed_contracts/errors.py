"""
Contract validation errors.

Two classified failures come out of the validation pipeline:
- RequestValidationError: client input failed a declared segment
  (body, query, params, headers, files)
- ResponseValidationError: the handler produced a body that breaks its own
  declared response contract

Both wrap a pydantic ValidationError so handlers get one error shape.
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from pydantic_core import PydanticCustomError

REQUEST_SEGMENTS = ('body', 'query', 'params', 'headers', 'files')

# Key used for errors that point at the segment itself rather than a field
ROOT_ERROR_KEY = '__root__'


def flatten_errors(validation_error: ValidationError) -> Dict[str, List[str]]:
    """
    Project pydantic errors onto top-level field names.

    Examples:
        loc ('email',) -> {"email": ["value is not a valid email address"]}
        loc ('items', 0, 'qty') -> {"items": ["Input should be a valid integer"]}
        loc () -> {"__root__": ["Input should be a valid dictionary"]}
    """
    field_errors: Dict[str, List[str]] = {}
    for error in validation_error.errors(include_url=False):
        loc = error.get('loc') or ()
        key = str(loc[0]) if loc else ROOT_ERROR_KEY
        field_errors.setdefault(key, []).append(error['msg'])
    return field_errors


def build_files_error(violations: List[Dict[str, Any]]) -> ValidationError:
    """
    Build a ValidationError for upload violations.

    Args:
        violations: [{"field": "avatar", "error": "missing_file"}, ...]
            error is "missing_file" or "too_many_files" (with "max_count"/"count")
    """
    line_errors = []
    for violation in violations:
        name = violation['field']
        if violation['error'] == 'missing_file':
            error_type = PydanticCustomError(
                'missing_file',
                "File '{field}' is required",
                {'field': name},
            )
            received = None
        else:
            error_type = PydanticCustomError(
                'too_many_files',
                "File '{field}' accepts at most {max_count} file(s), got {count}",
                {'field': name, 'max_count': violation['max_count'], 'count': violation['count']},
            )
            received = violation['count']
        line_errors.append({'type': error_type, 'loc': (name,), 'input': received})
    return ValidationError.from_exception_data('files', line_errors)


class ContractValidationError(Exception):
    """Base class for classified contract failures."""

    segment: str = ''
    # Default HTTP status used when this error is turned into a reply
    http_status: int = 400

    def __init__(self, message: str, validation_error: ValidationError, request: Any = None):
        super().__init__(message)
        self.message = message
        self.validation_error = validation_error
        self.request = request

    @property
    def errors(self) -> List[Dict[str, Any]]:
        """Raw pydantic error list."""
        return self.validation_error.errors(include_url=False)

    @property
    def field_errors(self) -> Dict[str, List[str]]:
        return flatten_errors(self.validation_error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "message": self.message,
            "segment": self.segment,
            "errors": self.field_errors,
        }


class RequestValidationError(ContractValidationError):
    """Raised when a request segment fails its schema."""

    http_status = 400

    def __init__(self, segment: str, validation_error: ValidationError, request: Any = None):
        super().__init__(f"Request validation failed in {segment}", validation_error, request)
        self.segment = segment


class ResponseValidationError(ContractValidationError):
    """Raised when a handler's response body fails its declared schema."""

    segment = 'response'
    http_status = 500

    def __init__(
        self,
        status_code: int,
        validation_error: ValidationError,
        request: Any = None,
        response: Any = None,
        response_body: Optional[Any] = None,
    ):
        super().__init__(
            f"Response validation failed for status {status_code}",
            validation_error,
            request,
        )
        self.status_code = status_code
        self.response = response
        self.response_body = response_body

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["statusCode"] = self.status_code
        return data
