"""配方变量替换

配方命令文本与导出/安装路径中可使用以下占位符:

  ${SRCDIR}   源码目录
  ${OBJDIR}   编译目录
  ${ROOTDIR}  项目安装根目录
  ${PKGNAME}  包的 metaname（去掉版本后缀）
  ${PKGVER}   包版本（无版本时为空串）

替换是纯文本替换：不转义、不递归展开，未知占位符原样保留，非字符串原样返回。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping


@dataclass(frozen=True)
class RecipeVariables:
    """一个配方可见的变量取值"""

    srcdir: str
    objdir: str
    rootdir: str
    pkgname: str
    pkgver: str

    @classmethod
    def of(
        cls, *, srcdir: str | Path, objdir: str | Path, rootdir: str | Path,
        pkgname: str, pkgver: str,
    ) -> RecipeVariables:
        return cls(str(srcdir), str(objdir), str(rootdir), pkgname, pkgver)

    def placeholders(self) -> dict[str, str]:
        return {
            "${SRCDIR}": self.srcdir,
            "${OBJDIR}": self.objdir,
            "${ROOTDIR}": self.rootdir,
            "${PKGNAME}": self.pkgname,
            "${PKGVER}": self.pkgver,
        }


_PLACEHOLDER_RE = re.compile(r"\$\{(?:SRCDIR|OBJDIR|ROOTDIR|PKGNAME|PKGVER)\}")


def expand(value: Any, variables: RecipeVariables) -> Any:
    """替换单个值中的占位符（单遍扫描，替换结果不再参与展开）"""
    if not isinstance(value, str):
        return value
    table = variables.placeholders()
    return _PLACEHOLDER_RE.sub(lambda m: table[m.group(0)], value)


def expand_map(mapping: Mapping[str, str], variables: RecipeVariables) -> dict[str, str]:
    """键和值都做替换"""
    return {expand(k, variables): expand(v, variables) for k, v in mapping.items()}
