"""全局工具链配置

进程级默认值：编译器/预处理器/链接器路径与参数、make 程序、并行任务数。
启动时从 configuration.yml 读取一次，项目确定安装根目录后追加一次头文件/库
搜索路径，此后只读。配置对象由 Workspace 显式传递，不做全局单例。

configuration.yml 示例（键名大小写不敏感）:

    MAKE: /usr/bin/make
    CC: /usr/bin/cc
    CPP: /usr/bin/cpp
    CXX: /usr/bin/c++
    CFLAGS: -g
    CPPFLAGS: -g
    CXXFLAGS: -g
    LDFLAGS: -L/usr/lib
    JOBS: 3
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping

from srcbuild.core.exceptions import ConfigError
from srcbuild.core.schema import FieldKind, FieldSpec, parse_fields
from srcbuild.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

CONFIG_FIELDS: dict[str, FieldSpec] = {
    "make": FieldSpec("make", FieldKind.STR),
    "cc": FieldSpec("cc", FieldKind.STR),
    "cpp": FieldSpec("cpp", FieldKind.STR),
    "cxx": FieldSpec("cxx", FieldKind.STR),
    "c++": FieldSpec("cxx", FieldKind.STR),
    "cflags": FieldSpec("cflags", FieldKind.STR),
    "cppflags": FieldSpec("cppflags", FieldKind.STR),
    "cxxflags": FieldSpec("cxxflags", FieldKind.STR),
    "ldflags": FieldSpec("ldflags", FieldKind.STR),
    "jobs": FieldSpec("jobs", FieldKind.INT),
}

INCLUDE_SUBDIRS = ("usr/include", "usr/local/include")
LIB_SUBDIRS = ("lib", "usr/lib", "usr/local/lib")


@dataclass
class Config:
    """全局工具链配置"""

    make: str = "make"
    cc: str = "cc"
    cpp: str = "cpp"
    cxx: str = "c++"
    cflags: str = ""
    cppflags: str = ""
    cxxflags: str = ""
    ldflags: str = ""
    jobs: int = 1

    # 未识别的配置项
    extra: dict = field(default_factory=dict)

    _search_root: Path | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, context: str = "configuration") -> Config:
        values, unknown = parse_fields(data, CONFIG_FIELDS, context=context)
        cfg = cls(**values)
        cfg.extra = {k: data[k] for k in unknown}
        if unknown:
            logger.debug("忽略未识别的配置项: %s", ", ".join(unknown))
        return cfg

    @classmethod
    def from_file(cls, path: str | Path) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        cfg = cls.from_dict(data, context=str(path))
        logger.info("配置已加载: %s", path)
        return cfg

    @property
    def search_root(self) -> Path | None:
        return self._search_root

    def add_search_paths(self, install_root: str | Path) -> None:
        """把项目安装根目录下的头文件/库目录加到编译参数最前面

        只允许调用一次：之后配置视为只读，供各阶段并发读取。
        """
        if self._search_root is not None:
            raise ConfigError(
                f"搜索路径已指向 {self._search_root}，不能再次追加"
            )
        root = Path(install_root)
        includes = [f"-I{root / d}" for d in INCLUDE_SUBDIRS]
        libs = [f"-L{root / d}" for d in LIB_SUBDIRS]
        self.cflags = " ".join([*includes, *libs, self.cflags]).strip()
        self.ldflags = " ".join([*libs, self.ldflags]).strip()
        self._search_root = root
        logger.debug("编译搜索路径: CFLAGS=%s LDFLAGS=%s", self.cflags, self.ldflags)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("_search_root", None)
        return data
