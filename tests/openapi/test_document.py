"""
OpenAPI document generation tests.

Covers:
- Rule -> path conversion and base path
- Operation assembly (parameters, request body, responses, metadata)
- Document-level defaults and fragment merging
"""

from typing import List, Optional
from uuid import uuid4

import pytest
from pydantic import BaseModel, Field

from typed_contracts.config import ContractConfig, OpenAPIDefaults, set_default_responses, set_openapi_defaults
from typed_contracts.contracts.registry import FileField, RouteContract, RouteSchema, register_contract
from typed_contracts.openapi.document import (
    DEFAULT_SERVER_URL,
    build_request_body,
    build_responses,
    generate_openapi_spec,
    merge_document,
    to_openapi_path,
)


INFO = {'info': {'title': 'Shop API', 'version': '1.0.0'}}


class UserParams(BaseModel):
    user_id: int


class UserQuery(BaseModel):
    expand: Optional[str] = None


class User(BaseModel):
    id: int
    name: str


class NewUser(BaseModel):
    name: str
    bio: Optional[str] = None


class ErrorBody(BaseModel):
    message: str


class Session(BaseModel):
    key: str = Field(default_factory=lambda: str(uuid4()))


def _register(method, path, **schema_kwargs):
    register_contract(RouteContract(method=method, path=path, schema=RouteSchema(**schema_kwargs)))


class TestPaths:

    @pytest.mark.parametrize('rule,expected', [
        ('/users', '/users'),
        ('/users/<user_id>', '/users/{user_id}'),
        ('/users/<int:user_id>', '/users/{user_id}'),
        ('/files/<path:name>/meta', '/files/{name}/meta'),
        ('/a/<int:x>/b/<y>', '/a/{x}/b/{y}'),
    ])
    def test_rule_conversion(self, rule, expected):
        assert to_openapi_path(rule) == expected

    def test_base_path_prefix(self):
        assert to_openapi_path('/users/<id>', '/api') == '/api/users/{id}'

    def test_base_path_applies_to_every_route(self):
        _register('GET', '/users')
        _register('GET', '/orders')

        spec = generate_openapi_spec(INFO, '/api')
        assert list(spec['paths']) == ['/api/users', '/api/orders']

    def test_methods_share_a_path(self):
        _register('GET', '/users')
        _register('POST', '/users', body=NewUser)

        spec = generate_openapi_spec(INFO)
        assert set(spec['paths']['/users']) == {'get', 'post'}


class TestDocument:

    def test_requires_info(self):
        with pytest.raises(ValueError, match="info"):
            generate_openapi_spec({})

    def test_envelope(self):
        spec = generate_openapi_spec(INFO)

        assert spec['openapi'] == '3.1.0'
        assert spec['info'] == INFO['info']
        assert spec['servers'] == [{'url': DEFAULT_SERVER_URL}]
        assert spec['tags'] == []
        assert spec['paths'] == {}

    def test_generation_is_idempotent(self):
        _register('GET', '/users/<int:user_id>', params=UserParams, response={200: User})

        assert generate_openapi_spec(INFO) == generate_openapi_spec(INFO)

    def test_generation_is_idempotent_with_default_factories(self):
        _register('POST', '/sessions', body=Session, response={201: Session})

        first = generate_openapi_spec(INFO)
        assert first == generate_openapi_spec(INFO)
        content = first['paths']['/sessions']['post']['requestBody']['content']
        body_schema = content['application/json']['schema']
        assert 'default' not in body_schema['properties']['key']

    def test_hidden_routes_are_excluded(self):
        _register('GET', '/internal', hide=True)
        _register('GET', '/public')

        assert list(generate_openapi_spec(INFO)['paths']) == ['/public']

    def test_servers_and_tags_from_defaults(self):
        set_openapi_defaults(
            servers=[{'url': 'https://api.example.com'}],
            tags=[{'name': 'users'}],
        )

        spec = generate_openapi_spec(INFO)
        assert spec['servers'] == [{'url': 'https://api.example.com'}]
        assert spec['tags'] == [{'name': 'users'}]

    def test_config_servers_beat_defaults(self):
        set_openapi_defaults(servers=[{'url': 'https://default.example.com'}])

        spec = generate_openapi_spec({**INFO, 'servers': [{'url': 'https://given.example.com'}]})
        assert spec['servers'] == [{'url': 'https://given.example.com'}]

    def test_explicit_contract_config(self):
        config = ContractConfig(openapi_defaults=OpenAPIDefaults(tags=[{'name': 'admin'}]))

        spec = generate_openapi_spec(INFO, contract_config=config)
        assert spec['tags'] == [{'name': 'admin'}]

    def test_explicit_registry(self):
        registry = [RouteContract(method='get', path='/health')]
        _register('GET', '/users')

        spec = generate_openapi_spec(INFO, registry=registry)
        assert list(spec['paths']) == ['/health']

    def test_extra_fragments_are_merged(self):
        components = {'securitySchemes': {'bearer': {'type': 'http', 'scheme': 'bearer'}}}
        spec = generate_openapi_spec({
            **INFO,
            'components': components,
            'security': [{'bearer': []}],
        })

        assert spec['components'] == components
        assert spec['security'] == [{'bearer': []}]

    def test_merge_document_is_shallow(self):
        merged = merge_document(
            {'paths': {'/a': {'get': {}}}, 'openapi': '3.1.0'},
            {'paths': {'/b': {'get': {}}}, 'webhooks': {}},
        )
        assert merged == {
            'paths': {'/a': {'get': {}}, '/b': {'get': {}}},
            'openapi': '3.1.0',
            'webhooks': {},
        }


class TestOperation:

    def test_metadata(self):
        _register(
            'GET', '/users',
            summary='List users',
            description='All users',
            tags=['users'],
            operation_id='listUsers',
            deprecated=True,
            security=[{'bearer': []}],
            external_docs={'url': 'https://docs.example.com'},
        )

        operation = generate_openapi_spec(INFO)['paths']['/users']['get']
        assert operation['summary'] == 'List users'
        assert operation['description'] == 'All users'
        assert operation['tags'] == ['users']
        assert operation['operationId'] == 'listUsers'
        assert operation['deprecated'] is True
        assert operation['security'] == [{'bearer': []}]
        assert operation['externalDocs'] == {'url': 'https://docs.example.com'}

    def test_unset_metadata_is_omitted(self):
        _register('GET', '/users')

        operation = generate_openapi_spec(INFO)['paths']['/users']['get']
        assert operation == {'responses': {'200': {'description': 'Successful response'}}}

    def test_parameters_in_path_query_header_order(self):
        class Headers(BaseModel):
            authorization: str

        _register('GET', '/users/<int:user_id>', params=UserParams, query=UserQuery, headers=Headers)

        operation = generate_openapi_spec(INFO)['paths']['/users/{user_id}']['get']
        assert [(p['name'], p['in']) for p in operation['parameters']] == [
            ('user_id', 'path'),
            ('expand', 'query'),
            ('authorization', 'header'),
        ]

    def test_json_request_body(self):
        _register('POST', '/users', body=NewUser)

        body = generate_openapi_spec(INFO)['paths']['/users']['post']['requestBody']
        schema = body['content']['application/json']['schema']
        assert schema['type'] == 'object'
        assert schema['required'] == ['name']

    def test_responses(self):
        _register('POST', '/users', body=NewUser, response={201: User, 400: ErrorBody})

        responses = generate_openapi_spec(INFO)['paths']['/users']['post']['responses']
        assert set(responses) == {'201', '400'}
        assert responses['201']['description'] == 'Response 201'
        assert responses['201']['content']['application/json']['schema']['required'] == ['id', 'name']


class TestRequestBody:

    def test_no_body_no_files(self):
        assert build_request_body(RouteSchema()) is None

    def test_multipart_with_files_only(self):
        schema = RouteSchema(files={
            'avatar': FileField(required=True, description='Profile picture'),
            'extras': FileField(max_count=3),
        })

        form = build_request_body(schema)['content']['multipart/form-data']['schema']
        assert form == {
            'type': 'object',
            'properties': {
                'avatar': {'type': 'string', 'format': 'binary', 'description': 'Profile picture'},
                'extras': {'type': 'string', 'format': 'binary'},
            },
            'required': ['avatar'],
        }

    def test_multipart_merges_body_fields(self):
        schema = RouteSchema(body=NewUser, files={'avatar': {'required': True}})

        body = build_request_body(schema)
        assert list(body['content']) == ['multipart/form-data']
        form = body['content']['multipart/form-data']['schema']
        assert list(form['properties']) == ['avatar', 'name', 'bio']
        assert form['required'] == ['avatar', 'name']


class TestResponses:

    def test_bare_success_without_schemas(self):
        assert build_responses(None) == {'200': {'description': 'Successful response'}}

    def test_defaults_are_documented_on_every_route(self):
        set_default_responses({500: ErrorBody})
        _register('GET', '/users', response={200: List[User]})
        _register('GET', '/health')

        paths = generate_openapi_spec(INFO)['paths']
        assert set(paths['/users']['get']['responses']) == {'200', '500'}
        assert set(paths['/health']['get']['responses']) == {'500'}

    def test_route_response_overrides_default(self):
        responses = build_responses({400: User}, {400: ErrorBody})

        schema = responses['400']['content']['application/json']['schema']
        assert set(schema['properties']) == {'id', 'name'}
