"""
Error handler resolution tests.

Order: route handler -> global handler -> default_error_handler.
A handler returning None defers to the app's Flask error handlers.
"""

import pytest
from flask import jsonify
from pydantic import BaseModel

from typed_contracts.config import ContractConfig, set_global_error_handler
from typed_contracts.contracts import ContractBlueprint, RouteSchema
from typed_contracts.errors import RequestValidationError, ResponseValidationError
from typed_contracts.middleware import setup_error_handlers

from tests.helpers import build_app


class Payload(BaseModel):
    name: str


class Ack(BaseModel):
    success: bool


def _route_handler(error):
    return jsonify({'handled_by': 'route', 'segment': error.segment}), 422


def _global_handler(error):
    return jsonify({'handled_by': 'global', 'segment': error.segment}), 418


def _blueprint(error_handler=None, config=None):
    bp = ContractBlueprint('items', __name__, config=config)

    @bp.typed_route('POST', '/items', RouteSchema(body=Payload), error_handler=error_handler)
    def create_item(req, res):
        return res.json({'name': req.body.name})

    @bp.get('/ack', schema=RouteSchema(response={200: Ack}))
    def ack(req, res):
        return res.json({'success': 'maybe'})

    return bp


def test_default_handler_when_nothing_configured():
    response = build_app(_blueprint()).test_client().post('/items', json={})

    assert response.status_code == 400
    assert response.get_json()['status'] == 'error'


def test_global_handler_replaces_default():
    set_global_error_handler(_global_handler)

    response = build_app(_blueprint()).test_client().post('/items', json={})

    assert response.status_code == 418
    assert response.get_json() == {'handled_by': 'global', 'segment': 'body'}


def test_route_handler_beats_global():
    set_global_error_handler(_global_handler)

    response = build_app(_blueprint(error_handler=_route_handler)).test_client().post('/items', json={})

    assert response.status_code == 422
    assert response.get_json()['handled_by'] == 'route'


def test_blueprint_config_handler():
    config = ContractConfig(error_handler=_global_handler)
    set_global_error_handler(_route_handler)

    response = build_app(_blueprint(config=config)).test_client().post('/items', json={})

    assert response.status_code == 418


def test_global_handler_receives_response_errors():
    seen = []

    def handler(error):
        seen.append(error)
        return jsonify({'status_code': error.status_code}), 502

    set_global_error_handler(handler)
    response = build_app(_blueprint()).test_client().get('/ack')

    assert response.status_code == 502
    assert isinstance(seen[0], ResponseValidationError)
    assert seen[0].status_code == 200
    assert seen[0].response_body == {'success': 'maybe'}
    assert list(seen[0].field_errors) == ['success']


def test_deferred_error_propagates_without_app_handlers():
    set_global_error_handler(lambda error: None)

    with pytest.raises(RequestValidationError):
        build_app(_blueprint()).test_client().post('/items', json={})


def test_deferred_request_error_uses_envelope():
    set_global_error_handler(lambda error: None)
    app = build_app(_blueprint())
    setup_error_handlers(app)

    response = app.test_client().post('/items', json={})

    assert response.status_code == 400
    assert response.get_json() == {
        'error': {
            'code': 'CONTRACT_VIOLATION',
            'message': 'Request validation failed in body',
            'segment': 'body',
            'details': {'name': ['Field required']},
        }
    }


def test_deferred_response_error_hides_details():
    set_global_error_handler(lambda error: None)
    app = build_app(_blueprint())
    setup_error_handlers(app)

    response = app.test_client().get('/ack')

    assert response.status_code == 500
    assert response.get_json() == {
        'error': {
            'code': 'RESPONSE_SCHEMA_MISMATCH',
            'message': 'Response does not match contract',
        }
    }
