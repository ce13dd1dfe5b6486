"""字段 Schema 解析测试"""

from __future__ import annotations

import pytest

from srcbuild.core.exceptions import ConfigError, SchemaTypeError
from srcbuild.core.schema import FieldKind, FieldSpec, parse_fields

FIELDS = {
    "name": FieldSpec("name", FieldKind.STR),
    "enabled": FieldSpec("enabled", FieldKind.BOOL),
    "jobs": FieldSpec("jobs", FieldKind.INT),
    "deps": FieldSpec("deps", FieldKind.STR_LIST),
    "files": FieldSpec("files", FieldKind.STR_MAP),
}


class TestParseFields:
    def test_keys_case_insensitive(self) -> None:
        values, unknown = parse_fields({"NAME": "x", "Jobs": 3}, FIELDS, context="t")
        assert values == {"name": "x", "jobs": 3}
        assert unknown == []

    def test_unknown_keys_returned(self) -> None:
        values, unknown = parse_fields({"name": "x", "color": "red"}, FIELDS, context="t")
        assert values == {"name": "x"}
        assert unknown == ["color"]

    def test_none_treated_as_unset(self) -> None:
        values, _ = parse_fields({"name": None, "deps": None}, FIELDS, context="t")
        assert values == {}

    def test_list_deduplicated_in_order(self) -> None:
        values, _ = parse_fields({"deps": ["b", "a", "b"]}, FIELDS, context="t")
        assert values["deps"] == ("b", "a")

    def test_map_copied(self) -> None:
        values, _ = parse_fields({"files": {"a": "/b"}}, FIELDS, context="t")
        assert values["files"] == {"a": "/b"}


class TestTypeErrors:
    @pytest.mark.parametrize("data", [
        {"name": 1},
        {"enabled": "yes"},
        {"jobs": "4"},
        {"jobs": True},
        {"deps": "zlib"},
        {"deps": ["zlib", 3]},
        {"files": ["a"]},
        {"files": {"a": 1}},
    ])
    def test_wrong_type_rejected(self, data: dict) -> None:
        with pytest.raises(SchemaTypeError):
            parse_fields(data, FIELDS, context="pkg/x.yml")

    def test_error_is_type_error_and_config_error(self) -> None:
        with pytest.raises(TypeError) as exc_info:
            parse_fields({"jobs": "many"}, FIELDS, context="pkg/x.yml")
        assert isinstance(exc_info.value, ConfigError)
        assert "pkg/x.yml" in str(exc_info.value)
        assert "jobs" in str(exc_info.value)
