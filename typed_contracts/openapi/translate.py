"""
Schema translator - pydantic schemas -> OpenAPI schema fragments.

Walks the pydantic-core schema tree (tagged dicts, tag = "type") in two phases:

1. Unwrap: wrapper kinds (default, nullable, validator functions, chain,
   custom-error, lax-or-strict, json-or-python, definitions, definition-ref)
   are peeled off one layer at a time. Their side effects are collected on a
   pending set (description, nullable, default) and applied to the
   final fragment. The outermost description wins.
2. Build: the first non-wrapper kind is dispatched to a builder. Frozen
   fields and models are marked readOnly.

Unknown kinds never raise. They degrade to {"type": "string"} so a new
pydantic-core tag cannot break document generation.

Self-referencing schemas (definition-ref pointing at a definition that is
already being expanded) are emitted as an opaque {"type": "object"}.
"""

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, TypeAdapter
from pydantic_core import PydanticSerializationError, to_jsonable_python


logger = logging.getLogger('typed_contracts.openapi.translate')

OBJECT_KINDS = {'model', 'model-fields', 'typed-dict', 'dataclass', 'dataclass-args'}

FUNCTION_DESCRIPTION = 'Function type'


def get_core_schema(schema: Any) -> Optional[Dict[str, Any]]:
    """
    Resolve a schema value to its pydantic-core schema.

    Accepts a type pydantic understands (BaseModel subclass, TypedDict,
    dataclass, Annotated[...], builtins), a TypeAdapter, or an already-built
    core schema dict.
    """
    if schema is None:
        return None
    if isinstance(schema, dict) and 'type' in schema:
        return schema
    if isinstance(schema, TypeAdapter):
        return schema.core_schema
    return TypeAdapter(schema).core_schema


def schema_to_openapi(schema: Any) -> Optional[Dict[str, Any]]:
    """
    Translate a schema value into an OpenAPI schema fragment.

    Returns None when schema is None.
    """
    core = get_core_schema(schema)
    if core is None:
        return None
    return SchemaTranslator().translate(core)


@dataclass
class ObjectField:
    """One property of an object-shaped schema."""
    name: str
    schema: Dict[str, Any]
    optional: bool
    description: Optional[str] = None
    read_only: bool = False
    deprecated: bool = False


class _Pending:
    """Attributes collected while unwrapping, applied to the built fragment."""

    __slots__ = ('description', 'nullable', 'has_default', 'default', 'hints')

    def __init__(self):
        self.description = None
        self.nullable = False
        self.has_default = False
        self.default = None
        self.hints: Dict[str, Any] = {}

    def note_description(self, description: Optional[str]) -> None:
        if self.description is None and description:
            self.description = description

    def note_default(self, value: Any) -> None:
        if not self.has_default:
            self.has_default = True
            self.default = value

    def note_hints(self, hints: Dict[str, Any]) -> None:
        for key, value in hints.items():
            self.hints.setdefault(key, value)

    def apply(self, fragment: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if fragment is None:
            fragment = {}
        if 'format' in self.hints:
            fragment['format'] = self.hints['format']
        if 'type' in self.hints:
            fragment.setdefault('type', self.hints['type'])
        if self.nullable:
            fragment['nullable'] = True
        if self.has_default:
            try:
                fragment['default'] = to_jsonable_python(self.default)
            except PydanticSerializationError:
                logger.debug("Default value %r is not JSON serializable, omitted", self.default)
        if self.description:
            fragment['description'] = self.description
        return fragment


def _metadata_description(node: Dict[str, Any]) -> Optional[str]:
    """Description pydantic stores for Annotated[..., Field(description=...)]."""
    metadata = node.get('metadata') or {}
    updates = metadata.get('pydantic_js_updates') or {}
    return updates.get('description')


def _model_description(cls: Any) -> Optional[str]:
    """Model docstring, the same source pydantic's own JSON schema uses."""
    if not (inspect.isclass(cls) and issubclass(cls, BaseModel)) or cls is BaseModel:
        return None
    doc = cls.__dict__.get('__doc__')
    return inspect.cleandoc(doc) if doc else None


class _EmptyHandler:
    """Minimal JSON schema handler: the wrapped schema contributes nothing."""

    mode = 'validation'

    def __call__(self, core_schema):
        return {}

    def resolve_ref_schema(self, json_schema):
        return json_schema


def _metadata_hints(node: Dict[str, Any]) -> Dict[str, Any]:
    """
    type/format declared by a validator-wrapped type's JSON schema hook.

    EmailStr, NameEmail and the IP address types are plain str validators
    whose format only exists in their __get_pydantic_json_schema__.
    """
    metadata = node.get('metadata') or {}
    hints: Dict[str, Any] = {}
    for js_function in metadata.get('pydantic_js_functions') or []:
        try:
            produced = js_function(node, _EmptyHandler())
        except Exception as e:
            # User hooks may need pydantic's full generator; skip their hints
            logger.debug("JSON schema hook %r not applied: %s", js_function, e)
            continue
        if isinstance(produced, dict):
            for key in ('type', 'format'):
                if isinstance(produced.get(key), str):
                    hints.setdefault(key, produced[key])
    return hints


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        value = value.value
    try:
        return to_jsonable_python(value)
    except PydanticSerializationError:
        return str(value)


def _json_type_of(value: Any) -> Optional[str]:
    if isinstance(value, Enum):
        value = value.value
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, int):
        return 'integer'
    if isinstance(value, float):
        return 'number'
    if isinstance(value, str):
        return 'string'
    return None


# =============================================================================
# WRAPPER KINDS - each returns the single inner node
# =============================================================================

def _unwrap_default(node, pending):
    # Factories are never called: their values may change between runs
    if 'default' in node:
        pending.note_default(node['default'])
    return node['schema']


def _unwrap_nullable(node, pending):
    pending.nullable = True
    return node['schema']


def _unwrap_function(node, pending):
    pending.note_hints(_metadata_hints(node))
    return node['schema']


def _unwrap_plain_function(node, pending):
    pending.note_hints(_metadata_hints(node))
    # Plain validators replace validation entirely; only newer pydantic
    # records what input they expect.
    return node.get('json_schema_input_schema')


def _unwrap_chain(node, pending):
    steps = node.get('steps') or []
    return steps[-1] if steps else None


_UNWRAPPERS: Dict[str, Callable] = {
    'default': _unwrap_default,
    'nullable': _unwrap_nullable,
    'function-before': _unwrap_function,
    'function-after': _unwrap_function,
    'function-wrap': _unwrap_function,
    'function-plain': _unwrap_plain_function,
    'chain': _unwrap_chain,
    'custom-error': lambda node, pending: node['schema'],
    'lax-or-strict': lambda node, pending: node['lax_schema'],
    'json-or-python': lambda node, pending: node['json_schema'],
}


def _apply_bounds(fragment, node):
    """Map pydantic ge/gt/le/lt onto OpenAPI bounds with exclusivity flags."""
    if node.get('ge') is not None:
        fragment['minimum'] = _jsonable(node['ge'])
    if node.get('gt') is not None:
        fragment['minimum'] = _jsonable(node['gt'])
        fragment['exclusiveMinimum'] = True
    if node.get('le') is not None:
        fragment['maximum'] = _jsonable(node['le'])
    if node.get('lt') is not None:
        fragment['maximum'] = _jsonable(node['lt'])
        fragment['exclusiveMaximum'] = True
    if node.get('multiple_of') is not None:
        fragment['multipleOf'] = _jsonable(node['multiple_of'])


def _apply_lengths(fragment, node, lower, upper):
    if node.get('min_length') is not None:
        fragment[lower] = node['min_length']
    if node.get('max_length') is not None:
        fragment[upper] = node['max_length']


class SchemaTranslator:
    """
    Stateful walker for one translation run.

    Keeps the definitions seen so far (so definition-refs can be resolved)
    and the refs currently being expanded (so recursion terminates).
    """

    def __init__(self):
        self.definitions: Dict[str, Dict[str, Any]] = {}
        self._expanding: set = set()

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def translate(self, node: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if node is None:
            return None
        pending = _Pending()
        entered: List[str] = []
        try:
            while True:
                self._enter(node, entered)
                pending.note_description(_metadata_description(node))
                kind = node.get('type')

                if kind == 'definitions':
                    self._collect_definitions(node)
                    node = node['schema']
                    continue

                if kind == 'definition-ref':
                    return pending.apply(self._translate_ref(node))

                unwrap = _UNWRAPPERS.get(kind)
                if unwrap is None:
                    break
                inner = unwrap(node, pending)
                if inner is None:
                    return pending.apply({})
                node = inner

            builder = _BUILDERS.get(kind, SchemaTranslator._build_unknown)
            return pending.apply(builder(self, node))
        finally:
            for ref in entered:
                self._expanding.discard(ref)

    def translate_field(self, field: ObjectField) -> Dict[str, Any]:
        """Translate a property, applying field-level description and readOnly."""
        fragment = self.translate(field.schema) or {}
        if field.read_only:
            fragment['readOnly'] = True
        if field.description:
            fragment['description'] = field.description
        return fragment

    def object_fields(self, node: Optional[Dict[str, Any]]) -> Optional[List[ObjectField]]:
        """
        List the properties of an object-shaped schema.

        Wrappers are unwrapped first. Returns None when the schema is not an
        object kind after unwrapping.
        """
        node = self._unwrap_to_object(node)
        if node is None:
            return None
        return self._fields_of(node)

    # -------------------------------------------------------------------------
    # Definitions
    # -------------------------------------------------------------------------

    def _collect_definitions(self, node):
        for definition in node.get('definitions') or []:
            ref = definition.get('ref')
            if ref:
                self.definitions.setdefault(ref, definition)

    def _translate_ref(self, node):
        ref = node.get('schema_ref')
        target = self.definitions.get(ref)
        if target is None or ref in self._expanding:
            return {'type': 'object'}
        return self.translate(target)

    def _enter(self, node, entered):
        """Mark a schema carrying a ref as being expanded."""
        ref = node.get('ref')
        if ref and ref not in self._expanding:
            self.definitions.setdefault(ref, node)
            self._expanding.add(ref)
            entered.append(ref)

    def _unwrap_to_object(self, node):
        pending = _Pending()
        seen_refs = set()
        while node is not None:
            if node.get('ref'):
                self.definitions.setdefault(node['ref'], node)
            kind = node.get('type')
            if kind in OBJECT_KINDS:
                return node
            if kind == 'definitions':
                self._collect_definitions(node)
                node = node['schema']
            elif kind == 'definition-ref':
                ref = node.get('schema_ref')
                if ref in seen_refs:
                    return None
                seen_refs.add(ref)
                node = self.definitions.get(ref)
            elif kind in _UNWRAPPERS:
                node = _UNWRAPPERS[kind](node, pending)
            else:
                return None
        return None

    # -------------------------------------------------------------------------
    # Object fields
    # -------------------------------------------------------------------------

    def _fields_of(self, node) -> List[ObjectField]:
        kind = node['type']
        if kind == 'model':
            if node.get('root_model'):
                return self.object_fields(node['schema']) or []
            cls = node.get('cls')
            infos = getattr(cls, 'model_fields', None) or {}
            inner = self._unwrap_to_object(node['schema'])
            if inner is None:
                return []
            return self._model_fields(inner, infos)
        if kind == 'model-fields':
            return self._model_fields(node, {})
        if kind == 'typed-dict':
            return self._typed_dict_fields(node)
        if kind == 'dataclass':
            infos = getattr(node.get('cls'), '__pydantic_fields__', None) or {}
            inner = self._unwrap_to_object(node['schema'])
            if inner is None:
                return []
            return self._dataclass_fields(inner, infos)
        if kind == 'dataclass-args':
            return self._dataclass_fields(node, {})
        return []

    def _model_fields(self, node, infos):
        fields = []
        for name, field in (node.get('fields') or {}).items():
            info = infos.get(name)
            if info is not None:
                optional = not info.is_required()
                description = info.description
                deprecated = bool(getattr(info, 'deprecated', None))
            else:
                optional = _has_default(field['schema'])
                description = None
                deprecated = False
            fields.append(ObjectField(
                name=_property_name(name, field),
                schema=field['schema'],
                optional=optional,
                description=description or _metadata_description(field),
                read_only=bool(field.get('frozen')),
                deprecated=deprecated,
            ))
        return fields

    def _typed_dict_fields(self, node):
        total = node.get('total', True)
        fields = []
        for name, field in (node.get('fields') or {}).items():
            required = field.get('required')
            if required is None:
                required = total
            fields.append(ObjectField(
                name=_property_name(name, field),
                schema=field['schema'],
                optional=not required,
                description=_metadata_description(field),
            ))
        return fields

    def _dataclass_fields(self, node, infos):
        fields = []
        for field in node.get('fields') or []:
            if field.get('init_only'):
                continue
            name = field['name']
            info = infos.get(name)
            description = info.description if info is not None else None
            fields.append(ObjectField(
                name=_property_name(name, field),
                schema=field['schema'],
                optional=_has_default(field['schema']),
                description=description or _metadata_description(field),
                read_only=bool(field.get('frozen')),
            ))
        return fields

    # -------------------------------------------------------------------------
    # Builders
    # -------------------------------------------------------------------------

    def _build_object(self, node):
        fragment = {'type': 'object', 'properties': {}}
        required = []
        for field in self._fields_of(node):
            fragment['properties'][field.name] = self.translate_field(field)
            if not field.optional:
                required.append(field.name)
        if required:
            fragment['required'] = required
        return fragment

    def _build_model(self, node):
        if node.get('root_model'):
            fragment = self.translate(node['schema']) or {}
        else:
            fragment = self._build_object(node)
        description = _model_description(node.get('cls'))
        if description:
            fragment['description'] = description
        cls = node.get('cls')
        if node.get('frozen') or getattr(cls, 'model_config', {}).get('frozen'):
            fragment['readOnly'] = True
        return fragment

    def _build_string(self, node):
        fragment = {'type': 'string'}
        _apply_lengths(fragment, node, 'minLength', 'maxLength')
        pattern = node.get('pattern')
        if pattern is not None:
            fragment['pattern'] = getattr(pattern, 'pattern', pattern)
        return fragment

    def _build_integer(self, node):
        fragment = {'type': 'integer'}
        _apply_bounds(fragment, node)
        return fragment

    def _build_number(self, node):
        fragment = {'type': 'number'}
        _apply_bounds(fragment, node)
        return fragment

    def _build_array(self, node):
        fragment = {'type': 'array'}
        items = node.get('items_schema')
        fragment['items'] = self.translate(items) if items is not None else {}
        _apply_lengths(fragment, node, 'minItems', 'maxItems')
        return fragment

    def _build_set(self, node):
        fragment = self._build_array(node)
        fragment['uniqueItems'] = True
        return fragment

    def _build_tuple(self, node):
        fragment = {'type': 'array'}
        items = node.get('items_schema') or []
        variadic = node.get('variadic_item_index')
        if variadic is None:
            if items:
                fragment['prefixItems'] = [self.translate(item) for item in items]
                fragment['minItems'] = len(items)
                fragment['maxItems'] = len(items)
            return fragment
        if variadic:
            fragment['prefixItems'] = [self.translate(item) for item in items[:variadic]]
            fragment['minItems'] = variadic
        fragment['items'] = self.translate(items[variadic])
        return fragment

    def _build_dict(self, node):
        fragment = {'type': 'object'}
        values = node.get('values_schema')
        if values is None or values.get('type') == 'any':
            fragment['additionalProperties'] = True
        else:
            fragment['additionalProperties'] = self.translate(values)
        _apply_lengths(fragment, node, 'minProperties', 'maxProperties')
        return fragment

    def _build_union(self, node):
        options = []
        for choice in node.get('choices') or []:
            # Choices may be labelled: (schema, label)
            if isinstance(choice, tuple):
                choice = choice[0]
            options.append(self.translate(choice))
        return {'oneOf': options}

    def _build_tagged_union(self, node):
        options = []
        seen = set()
        for choice in (node.get('choices') or {}).values():
            # Several tags can point at the same alternative
            if id(choice) in seen:
                continue
            seen.add(id(choice))
            options.append(self.translate(choice))
        fragment = {'oneOf': options}
        discriminator = node.get('discriminator')
        if isinstance(discriminator, str):
            fragment['discriminator'] = {'propertyName': discriminator}
        return fragment

    def _build_literal(self, node):
        expected = list(node.get('expected') or [])
        fragment = {}
        types = {_json_type_of(value) for value in expected}
        if len(types) == 1 and None not in types:
            fragment['type'] = types.pop()
        fragment['enum'] = [_jsonable(value) for value in expected]
        return fragment

    def _build_enum(self, node):
        # Enums are documented as strings whatever their member type
        members = node.get('members') or []
        return {'type': 'string', 'enum': [_jsonable(member) for member in members]}

    def _build_json(self, node):
        fragment = {'type': 'string', 'contentMediaType': 'application/json'}
        inner = node.get('schema')
        if inner is not None:
            fragment['contentSchema'] = self.translate(inner)
        return fragment

    def _build_instance(self, node):
        cls = node.get('cls')
        name = getattr(cls, '__name__', None)
        return {'type': 'object', 'description': f"Instance of {name}" if name else FUNCTION_DESCRIPTION}

    def _build_unknown(self, node):
        logger.debug("No OpenAPI mapping for schema kind %r, using string", node.get('type'))
        return {'type': 'string'}


def _format(json_type, fmt):
    return lambda self, node: {'type': json_type, 'format': fmt}


def _string_format(fmt):
    def build(self, node):
        fragment = self._build_string(node)
        fragment['format'] = fmt
        return fragment
    return build


_BUILDERS: Dict[str, Callable] = {
    'model': SchemaTranslator._build_model,
    'model-fields': SchemaTranslator._build_object,
    'typed-dict': SchemaTranslator._build_object,
    'dataclass': SchemaTranslator._build_object,
    'dataclass-args': SchemaTranslator._build_object,
    'str': SchemaTranslator._build_string,
    'int': SchemaTranslator._build_integer,
    'float': SchemaTranslator._build_number,
    'decimal': SchemaTranslator._build_number,
    'bool': lambda self, node: {'type': 'boolean'},
    'none': lambda self, node: {'type': 'null'},
    'any': lambda self, node: {},
    'list': SchemaTranslator._build_array,
    'generator': SchemaTranslator._build_array,
    'set': SchemaTranslator._build_set,
    'frozenset': SchemaTranslator._build_set,
    'tuple': SchemaTranslator._build_tuple,
    'dict': SchemaTranslator._build_dict,
    'union': SchemaTranslator._build_union,
    'tagged-union': SchemaTranslator._build_tagged_union,
    'literal': SchemaTranslator._build_literal,
    'enum': SchemaTranslator._build_enum,
    'json': SchemaTranslator._build_json,
    'date': _format('string', 'date'),
    'datetime': _format('string', 'date-time'),
    'time': _format('string', 'time'),
    'timedelta': _format('string', 'duration'),
    'uuid': _format('string', 'uuid'),
    'url': _string_format('uri'),
    'multi-host-url': _string_format('uri'),
    'bytes': _string_format('binary'),
    'complex': lambda self, node: {'type': 'string'},
    'callable': lambda self, node: {'type': 'object', 'description': FUNCTION_DESCRIPTION},
    'is-instance': SchemaTranslator._build_instance,
    'is-subclass': SchemaTranslator._build_instance,
    'never': lambda self, node: {'not': {}},
    'invalid': lambda self, node: {'not': {}},
}


def _has_default(node) -> bool:
    """A field is optional when a default wrapper sits above its value kind."""
    while node is not None:
        kind = node.get('type')
        if kind == 'default':
            return True
        if kind not in ('function-before', 'function-after', 'function-wrap', 'custom-error'):
            return False
        node = node.get('schema')
    return False


def _property_name(name: str, field: Dict[str, Any]) -> str:
    alias = field.get('validation_alias')
    return alias if isinstance(alias, str) else name
