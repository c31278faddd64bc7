"""
OpenAPI document generation from the contract registry.

Reads every registered RouteContract (declaration order) and assembles an
OpenAPI 3.1.0 document:
- Flask rules become OpenAPI paths: /users/<int:user_id> -> /users/{user_id}
- params/query/headers become parameters
- body (and files) become the request body
- response schemas become responses, on top of the global default responses

Usage:
    spec = generate_openapi_spec({"info": {"title": "Shop API", "version": "1.0.0"}}, "/api")
"""

import logging
import re
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_SERVER_URL, ContractConfig, get_config
from ..contracts.registry import RouteContract, RouteSchema, get_routes_metadata
from .parameters import extract_parameters
from .translate import SchemaTranslator, get_core_schema, schema_to_openapi


logger = logging.getLogger('typed_contracts.openapi')

OPENAPI_VERSION = '3.1.0'

# <name> or <converter:name> or <converter(args):name>
_RULE_VARIABLE = re.compile(r'<(?:[^<>:]+:)?([^<>:]+)>')

# Keys owned by the generator; everything else in the config is merged in
_GENERATED_KEYS = ('openapi', 'info', 'servers', 'tags')


def to_openapi_path(rule: str, base_path: str = '') -> str:
    """Convert a Flask rule to OpenAPI path notation."""
    return _RULE_VARIABLE.sub(r'{\1}', f"{base_path}{rule}")


def generate_openapi_spec(
    config: Dict[str, Any],
    base_path: str = '',
    *,
    registry: Optional[List[RouteContract]] = None,
    contract_config: Optional[ContractConfig] = None,
) -> Dict[str, Any]:
    """
    Build the OpenAPI document for all registered contracts.

    Args:
        config: Document config. "info" is required; "servers" and "tags"
            override the global OpenAPI defaults. Any other top-level key
            (components, security, webhooks, externalDocs,
            jsonSchemaDialect, ...) is merged into the document.
        base_path: Prefix prepended to every route path (mount point)
        registry: Contract list to read, defaults to CONTRACTS
        contract_config: Defaults source, defaults to the global config

    Returns:
        OpenAPI document as a dict. Same inputs give the same output.
    """
    if 'info' not in config:
        raise ValueError("OpenAPI config requires an 'info' object")

    settings = get_config() if contract_config is None else contract_config
    defaults = settings.openapi_defaults

    paths: Dict[str, Dict[str, Any]] = {}
    for contract in get_routes_metadata(registry):
        path = to_openapi_path(contract.path, base_path)
        operation = build_operation(contract.schema, settings.default_responses)
        paths.setdefault(path, {})[contract.method.lower()] = operation

    servers = config.get('servers') or (defaults and defaults.servers) or [{'url': DEFAULT_SERVER_URL}]
    tags = config.get('tags') or (defaults and defaults.tags) or []

    document: Dict[str, Any] = {
        'openapi': OPENAPI_VERSION,
        'info': config['info'],
        'servers': servers,
        'tags': tags,
        'paths': paths,
    }

    extras = {key: value for key, value in config.items() if key not in _GENERATED_KEYS}
    merged = merge_document(document, extras)
    logger.debug(f"Generated OpenAPI document with {len(paths)} path(s)")
    return merged


def merge_document(document: Dict[str, Any], extras: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow-merge caller fragments into the document.

    Dict values are merged key by key (caller wins on conflict), anything
    else replaces the document value.
    """
    merged = dict(document)
    for key, value in extras.items():
        current = merged.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            merged[key] = {**current, **value}
        else:
            merged[key] = value
    return merged


def build_operation(schema: RouteSchema, default_responses: Optional[Dict[int, Any]] = None) -> Dict[str, Any]:
    """Build one OpenAPI operation object from a RouteSchema."""
    operation: Dict[str, Any] = {}

    metadata = (
        ('summary', schema.summary),
        ('description', schema.description),
        ('tags', schema.tags),
        ('operationId', schema.operation_id),
        ('deprecated', schema.deprecated),
        ('security', schema.security),
        ('externalDocs', schema.external_docs),
    )
    for key, value in metadata:
        if value is not None:
            operation[key] = value

    parameters = (
        extract_parameters(schema.params, 'path')
        + extract_parameters(schema.query, 'query')
        + extract_parameters(schema.headers, 'header')
    )
    if parameters:
        operation['parameters'] = parameters

    request_body = build_request_body(schema)
    if request_body is not None:
        operation['requestBody'] = request_body

    operation['responses'] = build_responses(schema.response, default_responses)
    return operation


def build_request_body(schema: RouteSchema) -> Optional[Dict[str, Any]]:
    """
    JSON request body, or a multipart form when file fields are declared.

    In the multipart case each file is a binary string property and the
    body's own properties are merged in next to them.
    """
    if schema.files:
        properties: Dict[str, Any] = {}
        required: List[str] = []

        for name, spec in schema.files.items():
            prop = {'type': 'string', 'format': 'binary'}
            if spec.description:
                prop['description'] = spec.description
            properties[name] = prop
            if spec.required:
                required.append(name)

        if schema.body is not None:
            translator = SchemaTranslator()
            for field in translator.object_fields(get_core_schema(schema.body)) or []:
                properties[field.name] = translator.translate_field(field)
                if not field.optional:
                    required.append(field.name)

        form = {'type': 'object', 'properties': properties}
        if required:
            form['required'] = required
        return {'content': {'multipart/form-data': {'schema': form}}}

    if schema.body is not None:
        return {'content': {'application/json': {'schema': schema_to_openapi(schema.body)}}}

    return None


def build_responses(
    route_responses: Optional[Dict[int, Any]],
    default_responses: Optional[Dict[int, Any]] = None,
) -> Dict[str, Any]:
    """
    Responses keyed by status code string.

    Default responses come first; route responses override them per status.
    With neither, a bare 200 is documented.
    """
    merged: Dict[str, Any] = {}
    for code, response_schema in (default_responses or {}).items():
        merged[str(code)] = response_schema
    for code, response_schema in (route_responses or {}).items():
        merged[str(code)] = response_schema

    if not merged:
        return {'200': {'description': 'Successful response'}}

    return {
        code: {
            'description': f"Response {code}",
            'content': {'application/json': {'schema': schema_to_openapi(response_schema)}},
        }
        for code, response_schema in merged.items()
    }
