"""工具链配置合并

把全局配置与包级覆盖合并成某个包实际使用的工具链环境:
  - 工具路径（make/cc/cpp/cxx）: 包级非空值整体替换全局值
  - 编译参数（*flags）: 拼接为 "<全局> <包级>"，包级参数是追加而非覆盖
  - 并行数: 包级为正数时使用包级值，否则回退全局值

合并在生成默认命令时按需计算，不单独存储。
"""

from __future__ import annotations

from dataclasses import dataclass

from srcbuild.core.config import Config

FLAG_FIELDS = ("cflags", "cppflags", "cxxflags", "ldflags")
TOOL_FIELDS = ("make", "cc", "cpp", "cxx")


@dataclass(frozen=True)
class ToolOverrides:
    """配方中的包级工具链覆盖，空串/0 表示未覆盖"""

    make: str = ""
    cc: str = ""
    cpp: str = ""
    cxx: str = ""
    cflags: str = ""
    cppflags: str = ""
    cxxflags: str = ""
    ldflags: str = ""
    jobs: int = 0


@dataclass(frozen=True)
class ToolEnv:
    """合并后的有效工具链环境"""

    make: str
    cc: str
    cpp: str
    cxx: str
    cflags: str
    cppflags: str
    cxxflags: str
    ldflags: str
    jobs: int

    def assignments(self) -> list[tuple[str, str]]:
        """以 shell 变量形式导出的编译环境，顺序固定"""
        return [
            ("CC", self.cc),
            ("CPP", self.cpp),
            ("CXX", self.cxx),
            ("CFLAGS", self.cflags),
            ("CPPFLAGS", self.cppflags),
            ("CXXFLAGS", self.cxxflags),
            ("LDFLAGS", self.ldflags),
        ]

    def shell_prefix(self) -> str:
        """生成形如 ``CC="cc" \\`` 的多行变量前缀，后面紧跟要执行的命令"""
        return "".join(f'{name}="{value}" \\\n' for name, value in self.assignments())


def _join_flags(global_flags: str, package_flags: str) -> str:
    return f"{global_flags} {package_flags}".strip()


def merge_toolenv(config: Config, overrides: ToolOverrides) -> ToolEnv:
    """合并全局配置与包级覆盖"""
    tools = {
        name: getattr(overrides, name) or getattr(config, name)
        for name in TOOL_FIELDS
    }
    flags = {
        name: _join_flags(getattr(config, name), getattr(overrides, name))
        for name in FLAG_FIELDS
    }
    jobs = overrides.jobs if overrides.jobs > 0 else config.jobs
    return ToolEnv(**tools, **flags, jobs=jobs)
