"""
Contract Registry - Single source of truth for documented routes.

Each typed route declaration produces one RouteContract:
- method + path (Flask rule notation, e.g. "/users/<int:user_id>")
- RouteSchema: per-segment input schemas, per-status response schemas and
  documentation metadata

Contracts are appended in declaration order, which is also the order of the
generated OpenAPI paths. Hidden contracts are never stored here; they are
still enforced by their route's validator.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


logger = logging.getLogger('typed_contracts.contracts.registry')

HTTP_METHODS = ('GET', 'POST', 'PUT', 'DELETE', 'PATCH')


@dataclass
class FileField:
    """Upload field declared on a route."""
    required: bool = False
    max_count: Optional[int] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class RouteSchema:
    """
    Schema bundle and documentation metadata for one route.

    Segment schemas are anything pydantic can build a TypeAdapter for
    (BaseModel subclasses, TypedDicts, dataclasses, Annotated types).
    """
    params: Any = None
    query: Any = None
    headers: Any = None
    body: Any = None
    files: Optional[Dict[str, FileField]] = None
    response: Optional[Dict[int, Any]] = None

    # Documentation
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    operation_id: Optional[str] = None
    deprecated: Optional[bool] = None
    security: Optional[List[Dict[str, List[str]]]] = None
    external_docs: Optional[Dict[str, str]] = None
    hide: bool = False

    def __post_init__(self):
        # Accept plain dicts for file fields: {"avatar": {"required": True}}
        if self.files:
            files = {
                name: spec if isinstance(spec, FileField) else FileField(**spec)
                for name, spec in self.files.items()
            }
            object.__setattr__(self, 'files', files)
        if self.response:
            response = {int(code): schema for code, schema in self.response.items()}
            object.__setattr__(self, 'response', response)


@dataclass(frozen=True)
class RouteContract:
    """Immutable record of one route declaration."""
    method: str
    path: str
    schema: RouteSchema = field(default_factory=RouteSchema)

    def __post_init__(self):
        method = self.method.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {self.method}")
        object.__setattr__(self, 'method', method)

    @property
    def hidden(self) -> bool:
        return self.schema.hide


# Global registry instance
CONTRACTS: List[RouteContract] = []


def register_contract(contract: RouteContract, registry: Optional[List[RouteContract]] = None) -> None:
    """
    Register a route contract.

    Args:
        contract: The RouteContract to register
        registry: Target list, defaults to the process-wide CONTRACTS

    Hidden contracts are skipped (they stay enforced, just undocumented).
    """
    if contract.hidden:
        logger.debug(f"Contract {contract.method} {contract.path} is hidden, not registered")
        return
    target = CONTRACTS if registry is None else registry
    target.append(contract)


def get_routes_metadata(registry: Optional[List[RouteContract]] = None) -> List[RouteContract]:
    """
    Snapshot of registered contracts in declaration order.

    Contracts registered after the call are not reflected in the snapshot.
    """
    return list(CONTRACTS if registry is None else registry)


def get_contract(method: str, path: str, registry: Optional[List[RouteContract]] = None) -> Optional[RouteContract]:
    """Find the contract registered for method + path, if any."""
    method = method.upper()
    for contract in CONTRACTS if registry is None else registry:
        if contract.method == method and contract.path == path:
            return contract
    return None
