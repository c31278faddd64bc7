"""
Global contract configuration.

Holds the process-wide settings every typed route and the OpenAPI generator
consult:
- error_handler: replaces the built-in validation error response
- openapi_defaults: servers/tags used when generate_openapi_spec() gets none
- default_responses: status -> schema documented on every route
- response_mode: STRICT blocks non-conforming responses, WARN only logs them

Setters are meant to run during startup. Routers and the generator can also
be handed their own ContractConfig instead of the process-wide one.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()


class ResponseMode(Enum):
    """Response contract enforcement mode."""
    STRICT = "strict"  # Block the body and resolve a ResponseValidationError
    WARN = "warn"      # Log the violation, emit the body anyway


def _get_default_response_mode() -> ResponseMode:
    """Get response mode from environment."""
    mode = os.getenv('CONTRACT_RESPONSE_MODE', 'strict').lower()
    return ResponseMode.WARN if mode == 'warn' else ResponseMode.STRICT


DEFAULT_SERVER_URL = os.getenv('OPENAPI_DEFAULT_SERVER_URL', 'http://localhost:5000')

# (error) -> Flask response value, or None to defer to app error handlers
ErrorHandler = Callable[[Any], Any]


@dataclass
class OpenAPIDefaults:
    """Document-level defaults applied when the caller supplies none."""
    servers: Optional[List[Dict[str, str]]] = None
    tags: Optional[List[Dict[str, str]]] = None


@dataclass
class ContractConfig:
    """Settings shared by typed routes and the OpenAPI generator."""
    error_handler: Optional[ErrorHandler] = None
    openapi_defaults: Optional[OpenAPIDefaults] = None
    default_responses: Dict[int, Any] = field(default_factory=dict)
    response_mode: ResponseMode = field(default_factory=_get_default_response_mode)


_config = ContractConfig()


def get_config() -> ContractConfig:
    """Return the process-wide configuration instance."""
    return _config


def set_global_error_handler(handler: Optional[ErrorHandler]) -> None:
    _config.error_handler = handler


def get_global_error_handler() -> Optional[ErrorHandler]:
    return _config.error_handler


def set_openapi_defaults(
    servers: Optional[List[Dict[str, str]]] = None,
    tags: Optional[List[Dict[str, str]]] = None,
) -> None:
    """
    Set document defaults used by generate_openapi_spec().

    Args:
        servers: e.g. [{"url": "https://api.example.com", "description": "prod"}]
        tags: e.g. [{"name": "users", "description": "User management"}]
    """
    _config.openapi_defaults = OpenAPIDefaults(servers=servers, tags=tags)


def get_openapi_defaults() -> Optional[OpenAPIDefaults]:
    return _config.openapi_defaults


def set_default_responses(responses: Dict[int, Any]) -> None:
    """
    Set response schemas documented on every route.

    Route-level response schemas override these per status code.
    """
    _config.default_responses = dict(responses)


def get_default_responses() -> Dict[int, Any]:
    return _config.default_responses


def set_response_mode(mode: ResponseMode) -> None:
    _config.response_mode = mode
