"""Unit tests for the tree_structure module."""
import copy

import pytest

from locale_sync.tree_structure import build_empty, is_container, node_type


class TestNodeType:

    @pytest.mark.parametrize("value, expected", [
        ({}, 'object'),
        ([], 'array'),
        ("text", 'string'),
        (3, 'number'),
        (2.5, 'number'),
        (True, 'boolean'),
        (False, 'boolean'),
        (None, 'null'),
    ])
    def test_classifies_json_values(self, value, expected):
        assert node_type(value) == expected

    def test_boolean_is_not_a_number(self):
        assert node_type(True) != node_type(1)

    def test_unsupported_value_raises(self):
        with pytest.raises(TypeError):
            node_type({1, 2})

    def test_is_container(self):
        assert is_container({}) and is_container([])
        assert not is_container("a")
        assert not is_container(None)


class TestBuildEmpty:

    def test_blanks_strings_and_keeps_other_values(self):
        source = {
            "title": "Hello",
            "meta": {"count": 3, "enabled": True, "missing": None, "ratio": 0.5},
            "items": ["one", {"label": "two"}, 7],
        }

        result = build_empty(source)

        assert result == {
            "title": "",
            "meta": {"count": 3, "enabled": True, "missing": None, "ratio": 0.5},
            "items": ["", {"label": ""}, 7],
        }

    def test_keeps_key_order(self):
        source = {"z": "last", "a": "first", "m": {"y": "1", "b": "2"}}

        result = build_empty(source)

        assert list(result) == ["z", "a", "m"]
        assert list(result["m"]) == ["y", "b"]

    def test_does_not_modify_input(self):
        source = {"a": ["x", {"b": "y"}]}
        snapshot = copy.deepcopy(source)

        result = build_empty(source)

        assert source == snapshot
        assert result["a"] is not source["a"]

    def test_scalars(self):
        assert build_empty("text") == ""
        assert build_empty(42) == 42
        assert build_empty(None) is None
        assert build_empty([]) == []
