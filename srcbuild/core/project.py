"""项目选择

project.yml 决定本次启用哪些配方以及安装根目录:

    name: myproject
    libevent-2.0.21-stable: true
    zlib: false

name:
  项目名，用来命名安装根目录 root/<name>，只允许 [A-Za-z0-9_]，默认 'default'。
<配方标识>:
  必须与 pkg/ 下某个配方文件名（去掉 .yml）完全一致；true 启用，false 或缺省不启用。
  只选中同名的那一个配方，不会隐式选中同一 metaname 的其他版本。

文件不存在、或一个包都没选时，退回到「选择全部配方」。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from srcbuild.core.config import Config
from srcbuild.core.exceptions import NameValidationError, SchemaTypeError
from srcbuild.core.layout import Layout
from srcbuild.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "default"

_PROJECT_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")

# 未提供 rootdirs.lst 时创建的安装根目录骨架
DEFAULT_ROOT_DIRS = (
    "bin",
    "etc",
    "include",
    "lib",
    "sbin",
    "share",
    "usr/bin",
    "usr/include",
    "usr/lib",
    "usr/local/bin",
    "usr/local/include",
    "usr/local/lib",
    "usr/sbin",
    "usr/share",
    "var",
)


@dataclass
class Project:
    """当前项目：名称 + 已启用的配方"""

    name: str = DEFAULT_PROJECT_NAME
    selected: list[str] = field(default_factory=list)
    select_all: bool = False


def validate_project_name(name: object) -> str:
    if not isinstance(name, str):
        raise SchemaTypeError(f"项目名必须是字符串，实际为 {type(name).__name__}")
    if not _PROJECT_NAME_RE.match(name):
        raise NameValidationError(f"项目名不能包含空格或特殊字符: {name!r}")
    return name


def read_project(path: str | Path, available: Iterable[str]) -> Project:
    """读取项目文件并确定启用的配方

    参数:
        path: 项目文件路径（可以不存在）
        available: 配方目录中能发现的全部配方标识，用于「全选」回退

    异常:
        SchemaTypeError: 包的取值不是布尔值，或项目名不是字符串
        NameValidationError: 项目名包含非法字符
    """
    project = Project()
    data = load_yaml(path)

    for key, value in data.items():
        if str(key).lower() == "name":
            project.name = validate_project_name(value)
            continue
        if not isinstance(value, bool):
            raise SchemaTypeError(f"包 {key} 的取值必须为 true 或 false")
        if value:
            project.selected.append(str(key))

    if not project.selected:
        logger.info("项目未选择任何包，默认选择全部")
        project.selected = list(available)
        project.select_all = True

    logger.info(
        "项目 %s: 已选择 %d 个包", project.name, len(project.selected),
    )
    return project


def _root_dirs(layout: Layout) -> list[str]:
    """读取安装根目录骨架，每行一个相对路径"""
    if not layout.rootdirs_file.is_file():
        return list(DEFAULT_ROOT_DIRS)
    lines = layout.rootdirs_file.read_text(encoding="utf-8").splitlines()
    return [line.strip().strip("/") for line in lines if line.strip()]


def prepare_install_root(
    project: Project, layout: Layout, config: Config, *, create: bool = True,
) -> Path:
    """创建项目安装根目录并把其头文件/库目录加入全局编译参数

    必须在加载配方（生成默认命令）与执行任何阶段之前调用，且只调用一次。
    create=False 时只计算路径、追加搜索参数，不触碰磁盘（只读查询用）。
    """
    root = layout.install_root(project.name)
    if create and not root.exists():
        for directory in _root_dirs(layout):
            (root / directory).mkdir(parents=True, exist_ok=True)
        logger.info("已创建安装根目录: %s", root)
    config.add_search_paths(root)
    return root


def write_selection(
    path: str | Path, identifiers: Iterable[str], *,
    enabled: bool, name: str = DEFAULT_PROJECT_NAME,
) -> dict[str, object]:
    """生成全部启用或全部禁用的项目文件"""
    project: dict[str, object] = {"name": validate_project_name(name)}
    for identifier in identifiers:
        project[identifier] = enabled
    save_yaml(path, project)
    logger.info("已生成项目文件: %s (%d 个包, %s)", path, len(project) - 1,
                "全部启用" if enabled else "全部禁用")
    return project
