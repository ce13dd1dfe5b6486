"""配方数据模型

数据类:
- Recipe: 单个包的完整定义（加载、补全默认命令、变量替换之后）

配方文件名即包标识，可带版本后缀，例如 pkg/libevent-2.0.21-stable.yml:
  name     = libevent-2.0.21-stable
  metaname = libevent
  version  = 2.0.21-stable
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from srcbuild.core.toolenv import ToolOverrides

# 短横线后紧跟数字开头的后缀视为版本，例如 -1.2.8、-2.0.21-stable
_VERSION_RE = re.compile(r"-(\d[\d.]*.*)$")


def split_name(identifier: str) -> tuple[str, str]:
    """拆分包标识为 (metaname, version)，无版本时 version 为空串"""
    match = _VERSION_RE.search(identifier)
    if match is None or match.start() == 0:
        return identifier, ""
    return identifier[:match.start()], match.group(1)


def _frozen_map() -> Mapping[str, str]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Recipe:
    """单个包的配方"""

    name: str
    metaname: str
    version: str
    source: str
    srcdir: Path
    objdir: Path
    configure: str = ""
    configure_flags: str = ""
    build: str = ""
    install_cmd: str = ""
    install_command: str = ""  # install_cmd + 默认安装命令
    export: Mapping[str, str] = field(default_factory=_frozen_map)
    install: Mapping[str, str] = field(default_factory=_frozen_map)
    export_deps: tuple[str, ...] = ()
    build_deps: tuple[str, ...] = ()
    autoconfigure: bool = True
    autobuild: bool = True
    autoinstall: bool = True
    bsdstyle: bool = False
    overrides: ToolOverrides = field(default_factory=ToolOverrides)

    @property
    def has_version(self) -> bool:
        return self.name != self.metaname

    @property
    def work_dir(self) -> Path:
        """build/install 命令的工作目录，BSD 风格在源码树内编译"""
        return self.srcdir if self.bsdstyle else self.objdir

    def summary(self) -> dict[str, object]:
        """格式化配方摘要用于列表查询"""
        return {
            "name": self.name,
            "metaname": self.metaname,
            "version": self.version,
            "source": self.source,
            "srcdir": str(self.srcdir),
            "objdir": str(self.objdir),
            "export_deps": list(self.export_deps),
            "build_deps": list(self.build_deps),
            "bsdstyle": self.bsdstyle,
        }
