"""
Contract enforcement package.

Provides the route contract registry, segment validation, the per-route
validation pipeline and the ContractBlueprint used to declare typed routes.
"""

from .registry import (
    FileField,
    RouteSchema,
    RouteContract,
    register_contract,
    get_contract,
    get_routes_metadata,
    CONTRACTS,
)
from .wrapper import (
    ContractValidator,
    ContractResponse,
    ValidatedRequest,
    default_error_handler,
)
from .router import ContractBlueprint

__all__ = [
    'FileField',
    'RouteSchema',
    'RouteContract',
    'register_contract',
    'get_contract',
    'get_routes_metadata',
    'CONTRACTS',
    'ContractValidator',
    'ContractResponse',
    'ValidatedRequest',
    'default_error_handler',
    'ContractBlueprint',
]
