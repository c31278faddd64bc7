"""
typed_contracts - typed route contracts for Flask.

Declare a route's input and output schemas once and get request validation,
response validation and an OpenAPI 3.1 document from the same declaration.
"""

from .config import (
    ContractConfig,
    OpenAPIDefaults,
    ResponseMode,
    get_config,
    set_global_error_handler,
    get_global_error_handler,
    set_openapi_defaults,
    get_openapi_defaults,
    set_default_responses,
    get_default_responses,
    set_response_mode,
)
from .errors import (
    ContractValidationError,
    RequestValidationError,
    ResponseValidationError,
    flatten_errors,
)
from .contracts import (
    ContractBlueprint,
    FileField,
    RouteSchema,
    RouteContract,
    get_routes_metadata,
    default_error_handler,
)
from .openapi import extract_parameters, generate_openapi_spec, schema_to_openapi

__all__ = [
    'ContractConfig',
    'OpenAPIDefaults',
    'ResponseMode',
    'get_config',
    'set_global_error_handler',
    'get_global_error_handler',
    'set_openapi_defaults',
    'get_openapi_defaults',
    'set_default_responses',
    'get_default_responses',
    'set_response_mode',
    'ContractValidationError',
    'RequestValidationError',
    'ResponseValidationError',
    'flatten_errors',
    'ContractBlueprint',
    'FileField',
    'RouteSchema',
    'RouteContract',
    'get_routes_metadata',
    'default_error_handler',
    'extract_parameters',
    'generate_openapi_spec',
    'schema_to_openapi',
]
