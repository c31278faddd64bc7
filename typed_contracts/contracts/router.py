"""
ContractBlueprint - Flask blueprint with typed route declaration.

Usage:
    users = ContractBlueprint("users", __name__, url_prefix="/users")

    @users.post("/<user_id>", schema=RouteSchema(
        params=UserParams,
        body=UpdateUser,
        response={200: User},
        summary="Update a user",
    ))
    def update_user(req, res):
        return res.json(save(req.params.user_id, req.body))

Each declaration produces two things at once: a RouteContract appended to the
registry (for the OpenAPI document) and a ContractValidator bound to the view
(for request-time enforcement).
"""

import logging
from typing import Any, Callable, List, Optional

from flask import Blueprint

from ..config import ContractConfig, ErrorHandler
from .registry import RouteContract, RouteSchema, register_contract
from .wrapper import ContractValidator


logger = logging.getLogger('typed_contracts.contracts.router')


def _join_path(prefix: Optional[str], rule: str) -> str:
    """Join the way Flask does at registration: an empty rule is the prefix alone."""
    if prefix is None:
        return rule
    if not rule:
        return prefix
    return '/'.join((prefix.rstrip('/'), rule.lstrip('/')))


class ContractBlueprint(Blueprint):
    """
    Blueprint whose get/post/put/delete/patch shortcuts take a RouteSchema.

    Documented paths are url_prefix (given here) + rule, joined as Flask
    joins them. A url_prefix passed to app.register_blueprint() is not known
    when routes are declared and replaces this one in routing, so declare
    the prefix here, or leave it unset and pass the registration prefix as
    base_path to generate_openapi_spec().

    Args:
        config: ContractConfig consulted by this blueprint's routes,
            defaults to the process-wide configuration
        registry: contract list to register into, defaults to CONTRACTS
    """

    def __init__(
        self,
        name: str,
        import_name: str,
        *args,
        config: Optional[ContractConfig] = None,
        registry: Optional[List[RouteContract]] = None,
        **kwargs,
    ):
        super().__init__(name, import_name, *args, **kwargs)
        self.contract_config = config
        self.contract_registry = registry

    def get(self, rule: str, schema: Optional[RouteSchema] = None, **options) -> Callable:
        return self.typed_route('GET', rule, schema, **options)

    def post(self, rule: str, schema: Optional[RouteSchema] = None, **options) -> Callable:
        return self.typed_route('POST', rule, schema, **options)

    def put(self, rule: str, schema: Optional[RouteSchema] = None, **options) -> Callable:
        return self.typed_route('PUT', rule, schema, **options)

    def delete(self, rule: str, schema: Optional[RouteSchema] = None, **options) -> Callable:
        return self.typed_route('DELETE', rule, schema, **options)

    def patch(self, rule: str, schema: Optional[RouteSchema] = None, **options) -> Callable:
        return self.typed_route('PATCH', rule, schema, **options)

    def typed_route(
        self,
        method: str,
        rule: str,
        schema: Optional[RouteSchema] = None,
        error_handler: Optional[ErrorHandler] = None,
        **options: Any,
    ) -> Callable:
        """
        Declare a typed route.

        Args:
            method: HTTP verb
            rule: Flask rule, e.g. "/items/<int:item_id>"
            schema: RouteSchema for the route (empty schema when omitted)
            error_handler: route-level handler, takes precedence over the
                global one
            **options: forwarded to add_url_rule (endpoint, strict_slashes, ...)

        Returns:
            Decorator registering the handler. The handler is called as
            handler(req, res) and returned unchanged.
        """
        schema = schema if schema is not None else RouteSchema()

        def decorator(fn: Callable) -> Callable:
            contract = RouteContract(method=method, path=_join_path(self.url_prefix, rule), schema=schema)
            register_contract(contract, registry=self.contract_registry)

            validator = ContractValidator(schema, config=self.contract_config, error_handler=error_handler)
            endpoint = options.pop('endpoint', None) or fn.__name__
            self.add_url_rule(rule, endpoint, validator.wrap(fn), methods=[contract.method], **options)

            logger.debug(f"Typed route declared: {contract.method} {contract.path}")
            return fn

        return decorator
