"""工作区：一次构建会话的显式上下文

按固定顺序懒加载并缓存各组件，同一工作区内实例共享:

  layout → config → project（创建安装根目录并追加搜索路径，只做一次）
         → recipes → graph → executor

CLI 和 Web 层每次会话构造一个 Workspace，不使用全局单例。

用法:
    ws = Workspace("/path/to/bsys")
    ws.graph.plan("zlib")          # 只构建图，不执行
    report = ws.run("default")     # 执行
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from srcbuild.core.exceptions import ConfigError
from srcbuild.core.layout import Layout

if TYPE_CHECKING:
    from srcbuild.core.config import Config
    from srcbuild.core.executor import RunReport, StageExecutor
    from srcbuild.core.graph import StageGraph
    from srcbuild.core.project import Project
    from srcbuild.core.protocols import Fetcher
    from srcbuild.core.recipe.models import Recipe
    from srcbuild.utils.shell import CommandRunner

logger = logging.getLogger(__name__)


class Workspace:
    """懒加载的构建上下文

    Args:
        base_dir: 工作区根目录
        config_file: 全局配置文件（默认 <base>/configuration.yml）
        project_file: 项目文件（默认 <base>/project.yml）
        runner: 构建脚本执行器（默认 LocalRunner）
        fetcher: 源码拉取实现（默认 SourceFetcher）
        max_workers: 执行并行度
        read_only: 只读查询（不创建安装根目录，不允许执行）
    """

    def __init__(
        self,
        base_dir: str | Path = ".",
        *,
        config_file: str | Path | None = None,
        project_file: str | Path | None = None,
        runner: CommandRunner | None = None,
        fetcher: Fetcher | None = None,
        max_workers: int = 1,
        read_only: bool = False,
    ) -> None:
        self.layout = Layout.from_base(
            base_dir, config_file=config_file, project_file=project_file,
        )
        self.max_workers = max_workers
        self.read_only = read_only
        self._runner = runner
        self._fetcher = fetcher
        self._instances: dict[str, object] = {}

    @property
    def config(self) -> Config:
        if "config" not in self._instances:
            from srcbuild.core.config import Config
            self._instances["config"] = Config.from_file(self.layout.config_file)
        return self._instances["config"]  # type: ignore[return-value]

    @property
    def project(self) -> Project:
        if "project" not in self._instances:
            from srcbuild.core.project import prepare_install_root, read_project
            project = read_project(self.layout.project_file, self.layout.discover_recipes())
            self._instances["install_root"] = prepare_install_root(
                project, self.layout, self.config, create=not self.read_only,
            )
            self._instances["project"] = project
        return self._instances["project"]  # type: ignore[return-value]

    @property
    def install_root(self) -> Path:
        _ = self.project
        return self._instances["install_root"]  # type: ignore[return-value]

    @property
    def recipes(self) -> dict[str, Recipe]:
        if "recipes" not in self._instances:
            from srcbuild.core.recipe.loader import RecipeLoader
            loader = RecipeLoader(self.layout, self.config, self.install_root)
            self._instances["recipes"] = loader.load_many(self.project.selected)
        return self._instances["recipes"]  # type: ignore[return-value]

    @property
    def graph(self) -> StageGraph:
        if "graph" not in self._instances:
            from srcbuild.core.graph import GraphBuilder
            self._instances["graph"] = GraphBuilder(self.recipes).build()
        return self._instances["graph"]  # type: ignore[return-value]

    @property
    def runner(self) -> CommandRunner:
        if self._runner is None:
            from srcbuild.utils.shell import LocalRunner
            self._runner = LocalRunner()
        return self._runner

    @property
    def fetcher(self) -> Fetcher:
        if self._fetcher is None:
            from srcbuild.services.fetcher import SourceFetcher
            self._fetcher = SourceFetcher(self.layout.distfiles)
        return self._fetcher

    @property
    def executor(self) -> StageExecutor:
        if self.read_only:
            raise ConfigError("只读工作区不能执行阶段")
        if "executor" not in self._instances:
            from srcbuild.core.executor import StageExecutor
            self._instances["executor"] = StageExecutor(
                self.graph, self.recipes,
                runner=self.runner,
                fetcher=self.fetcher,
                install_root=self.install_root,
                base_dir=self.layout.base_dir,
                max_workers=self.max_workers,
            )
        return self._instances["executor"]  # type: ignore[return-value]

    def run(self, *targets: str) -> RunReport:
        """构建阶段图并执行目标"""
        return self.executor.run(*targets)

    def root_clean(self) -> bool:
        """删除全部项目安装根目录，返回是否有内容被删除"""
        if not self.layout.install_base.exists():
            return False
        shutil.rmtree(self.layout.install_base)
        logger.info("已删除安装根目录: %s", self.layout.install_base)
        return True
