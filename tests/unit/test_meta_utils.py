"""Unit tests for label/annotation helpers."""

from __future__ import annotations

import pytest

from shadowlink.utils.meta import get_local_user_name, merge_maps, string_to_map


class TestStringToMap:
    """Tests for ``k=v,k=v`` parsing."""

    def test_parses_pairs(self) -> None:
        assert string_to_map("team=core, env=dev") == {"team": "core", "env": "dev"}

    @pytest.mark.parametrize("value", ["", None, " , ,"])
    def test_empty(self, value: str | None) -> None:
        assert string_to_map(value) == {}

    def test_key_without_value(self) -> None:
        assert string_to_map("flag") == {"flag": ""}

    def test_value_containing_equals(self) -> None:
        assert string_to_map("expr=a=b") == {"expr": "a=b"}


class TestMergeMaps:
    """Tests for override precedence."""

    @pytest.mark.parametrize(
        ("base", "override"),
        [
            ({"a": "1"}, {"a": "2"}),
            ({"a": "1", "b": "1"}, {"b": "2", "c": "3"}),
            ({}, {"x": "y"}),
            ({"x": "y"}, {}),
        ],
    )
    def test_override_wins(self, base: dict[str, str], override: dict[str, str]) -> None:
        merged = merge_maps(base, override)
        for key, value in override.items():
            assert merged[key] == value
        for key, value in base.items():
            if key not in override:
                assert merged[key] == value

    def test_inputs_not_mutated(self) -> None:
        base = {"a": "1"}
        merge_maps(base, {"a": "2"})
        assert base == {"a": "1"}

    def test_none_skipped(self) -> None:
        assert merge_maps(None, {"a": "1"}, None) == {"a": "1"}


def test_local_user_name_not_empty() -> None:
    assert get_local_user_name()
