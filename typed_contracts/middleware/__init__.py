"""
App-level middleware for typed routes.

Provides:
- Error envelope for contract errors deferred by a route or global handler
"""

from .error_envelope import setup_error_handlers, make_error_response

__all__ = [
    'setup_error_handlers',
    'make_error_response',
]
