"""
OpenAPI generation - schema translation, parameter extraction and document
assembly.
"""

from .translate import SchemaTranslator, schema_to_openapi
from .parameters import extract_parameters
from .document import generate_openapi_spec, to_openapi_path

__all__ = [
    'SchemaTranslator',
    'schema_to_openapi',
    'extract_parameters',
    'generate_openapi_spec',
    'to_openapi_path',
]
