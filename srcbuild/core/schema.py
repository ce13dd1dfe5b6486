"""字段 Schema：配方与全局配置的类型化解析

固定的「字段名（大小写不敏感）→ 属性 + 期望类型」映射，
取代按正则匹配键名的动态解析:
  - 未知键忽略（交还调用方记录）
  - 值为 None 视为未设置
  - 类型不符抛 SchemaTypeError，不产生部分结果

用法:
    fields = {"jobs": FieldSpec("jobs", FieldKind.INT)}
    values, unknown = parse_fields({"JOBS": 4}, fields, context="configuration.yml")
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from srcbuild.core.exceptions import SchemaTypeError


class FieldKind(str, Enum):
    """字段期望类型"""

    STR = "string"
    BOOL = "boolean"
    INT = "integer"
    STR_LIST = "list of strings"
    STR_MAP = "mapping of string to string"


@dataclass(frozen=True)
class FieldSpec:
    """单个字段的声明"""

    attr: str
    kind: FieldKind


_INVALID = object()


def _coerce(value: Any, kind: FieldKind) -> Any:
    """校验并规整单个值，类型不符时返回 _INVALID"""
    if kind is FieldKind.STR:
        return value if isinstance(value, str) else _INVALID
    if kind is FieldKind.BOOL:
        return value if isinstance(value, bool) else _INVALID
    if kind is FieldKind.INT:
        # bool 是 int 的子类，需要单独排除
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return _INVALID
    if kind is FieldKind.STR_LIST:
        if not isinstance(value, (list, tuple)):
            return _INVALID
        if not all(isinstance(v, str) for v in value):
            return _INVALID
        # 保序去重
        return tuple(dict.fromkeys(value))
    if kind is FieldKind.STR_MAP:
        if not isinstance(value, Mapping):
            return _INVALID
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in value.items()):
            return _INVALID
        return dict(value)
    raise ValueError(f"未知字段类型: {kind}")


def parse_fields(
    data: Mapping[Any, Any],
    fields: Mapping[str, FieldSpec],
    *,
    context: str,
) -> tuple[dict[str, Any], list[str]]:
    """按 schema 解析一组键值

    参数:
        data: 原始键值（通常来自 YAML）
        fields: 小写字段名 → FieldSpec
        context: 出错时用于定位的上下文（文件名或包名）

    返回:
        (属性名 → 已校验的值, 未识别的键列表)

    异常:
        SchemaTypeError: 任一字段类型不符
    """
    values: dict[str, Any] = {}
    unknown: list[str] = []
    for key, raw in data.items():
        spec = fields.get(str(key).lower())
        if spec is None:
            unknown.append(str(key))
            continue
        if raw is None:
            continue
        value = _coerce(raw, spec.kind)
        if value is _INVALID:
            raise SchemaTypeError(
                f"{context}: 字段 '{key}' 必须是 {spec.kind.value}，"
                f"实际为 {type(raw).__name__}"
            )
        values[spec.attr] = value
    return values, unknown
