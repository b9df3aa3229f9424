"""
Tests for value conversion, resume keys and error overrides (utils.py).
"""

import json
from datetime import datetime
from decimal import Decimal

import pytest
from boto3.dynamodb.types import Binary

from optimistic_ddb.exceptions import (
    InvalidResumeKeyError,
    ItemNotFoundError,
    OptimisticLockError,
    StoreValidationError,
)
from optimistic_ddb.utils import (
    apply_error_override,
    decode_resume_key,
    encode_resume_key,
    from_store_value,
    key_tuple,
    to_store_value,
)
from tests.helpers import comments_table, livestreams_by_category


class TestValueConversion:
    """Test conversion at the boto3 boundary."""

    def test_from_store_value(self):
        stored = {
            'count': Decimal('3'),
            'ratio': Decimal('0.25'),
            'tags': [Decimal('1'), 'a'],
            'nested': {'blob': Binary(b'\x00\x01')},
            'flag': True,
        }

        assert from_store_value(stored) == {
            'count': 3,
            'ratio': 0.25,
            'tags': [1, 'a'],
            'nested': {'blob': b'\x00\x01'},
            'flag': True,
        }
        assert isinstance(from_store_value(Decimal('3')), int)

    def test_to_store_value(self):
        value = {
            'ratio': 0.1,
            'count': 2,
            'items': (1.5, 'x'),
            'at': datetime(2024, 1, 2, 3, 4, 5),
        }

        assert to_store_value(value) == {
            'ratio': Decimal('0.1'),
            'count': 2,
            'items': [Decimal('1.5'), 'x'],
            'at': '2024-01-02T03:04:05',
        }

    def test_key_tuple(self):
        assert key_tuple({'id': 'c', 'blogPostId': 'b', 'content': 'x'}, ['blogPostId', 'id']) == ('b', 'c')


class TestResumeKeys:
    """Test resume key encoding and validation."""

    @pytest.fixture
    def key_model(self):
        return livestreams_by_category.table.key_model(
            livestreams_by_category.resume_key_attribute_names, "LivestreamsByCategoryKey"
        )

    def test_encode_none(self):
        assert encode_resume_key(None) is None

    def test_encode_is_plain_json(self):
        resume_key = encode_resume_key({'id': 'x', 'category': 'c', 'viewerCount': Decimal('4')})

        assert json.loads(resume_key) == {'category': 'c', 'id': 'x', 'viewerCount': 4}

    def test_encode_binary_key_raises_library_error(self):
        with pytest.raises(StoreValidationError, match="binary key attributes") as exc_info:
            encode_resume_key({'id': Binary(b'\x01')})

        assert isinstance(exc_info.value.original_error, TypeError)

    def test_decode_valid_key(self, key_model):
        resume_key = encode_resume_key({'id': 'x', 'category': 'c', 'viewerCount': Decimal('4')})

        assert decode_resume_key(resume_key, key_model) == {'id': 'x', 'category': 'c', 'viewerCount': 4}

    @pytest.mark.parametrize("resume_key", [
        "not json",
        "[1, 2]",
        '{"id": "x"}',
        '{"id": "x", "category": "c", "viewerCount": "many"}',
        '{"id": "x", "category": "c", "viewerCount": 4, "title": "t"}',
    ])
    def test_decode_invalid_key(self, key_model, resume_key):
        with pytest.raises(InvalidResumeKeyError) as exc_info:
            decode_resume_key(resume_key, key_model)

        assert exc_info.value.resume_key == resume_key
        assert exc_info.value.original_error is not None

    def test_decode_composite_table_key(self):
        key_model = comments_table.key_model(comments_table.resume_key_attribute_names, "CommentsKey")

        assert decode_resume_key('{"blogPostId": "b", "id": "c"}', key_model) == {'blogPostId': 'b', 'id': 'c'}


class TestErrorOverride:
    """Test apply_error_override outcomes."""

    @pytest.fixture
    def error(self):
        return ItemNotFoundError("Resources", [{'id': 'a'}])

    def test_without_override_raises_original(self, error):
        with pytest.raises(ItemNotFoundError):
            apply_error_override(error, None)

    def test_override_returning_exception(self, error):
        with pytest.raises(KeyError) as exc_info:
            apply_error_override(error, lambda e: KeyError("missing"))

        assert exc_info.value.__cause__ is error

    def test_override_returning_none_allows_absence(self, error):
        assert apply_error_override(error, lambda e: None, allow_absence=True) is None

    def test_override_returning_none_without_absence_raises_original(self):
        error = OptimisticLockError()

        with pytest.raises(OptimisticLockError):
            apply_error_override(error, lambda e: None)

    def test_override_receives_error(self, error):
        seen = []

        apply_error_override(error, lambda e: seen.append(e), allow_absence=True)

        assert seen == [error]
