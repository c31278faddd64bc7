"""
Segment validation helper tests.
"""

import io
from typing import List, Set

import pytest
from pydantic import BaseModel, Field, TypeAdapter, field_validator
from werkzeug.datastructures import FileStorage, MultiDict

from typed_contracts.contracts.registry import FileField
from typed_contracts.contracts.validate import (
    SegmentValidator,
    array_fields,
    check_files,
    declared_names,
    multidict_to_dict,
    safe_parse,
)


class Filters(BaseModel):
    q: str = ''
    tags: List[str] = []
    ids: Set[int] = set()


def test_safe_parse_success():
    result = safe_parse(TypeAdapter(int), '5')
    assert result.success is True
    assert result.data == 5
    assert result.error is None


def test_safe_parse_failure_does_not_raise():
    result = safe_parse(TypeAdapter(int), 'five')
    assert result.success is False
    assert result.data is None
    assert result.error.errors()[0]['type'] == 'int_parsing'


def test_safe_parse_propagates_non_validation_errors():
    class Strict(BaseModel):
        value: int

        @field_validator('value')
        @classmethod
        def explode(cls, v):
            raise RuntimeError('bug in validator')

    with pytest.raises(RuntimeError):
        safe_parse(TypeAdapter(Strict), {'value': 1})


def test_array_fields():
    assert array_fields(Filters) == frozenset({'tags', 'ids'})
    assert array_fields(int) == frozenset()


def test_list_keys_only_for_multi_value_segments():
    assert SegmentValidator('query', Filters).list_keys == frozenset({'tags', 'ids'})
    assert SegmentValidator('params', Filters).list_keys == frozenset()


def test_multidict_to_dict():
    values = MultiDict([('q', 'a'), ('q', 'b'), ('tags', 'x'), ('tags', 'y')])
    assert multidict_to_dict(values, frozenset({'tags'})) == {'q': 'a', 'tags': ['x', 'y']}


def test_check_files_ignores_empty_inputs():
    uploaded = MultiDict([('avatar', FileStorage(io.BytesIO(b''), filename=''))])

    error = check_files(uploaded, {'avatar': FileField(required=True)})
    assert error is not None
    assert error.errors()[0]['type'] == 'missing_file'


def test_check_files_passes():
    uploaded = MultiDict([('avatar', FileStorage(io.BytesIO(b'x'), filename='a.png'))])
    assert check_files(uploaded, {'avatar': FileField(required=True, max_count=1)}) is None


def test_declared_names_keep_alias_spelling():
    class Headers(BaseModel):
        api_key: str = Field(alias='X-Api-Key')
        authorization: str

    assert declared_names(Headers) == {'x-api-key': 'X-Api-Key', 'authorization': 'authorization'}
    assert declared_names(int) == {}
