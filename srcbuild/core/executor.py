"""阶段执行器

按依赖顺序驱动阶段图:
- 只执行目标的传递前驱，每个节点在执行器生命周期内最多执行一次
- 幂等跳过: srcdir 已存在跳过 fetch，objdir 已存在跳过 configure，
  导出映射为空跳过 export，安装映射与安装命令都为空跳过 install
- configure 失败先清理本包 objdir 再报错；build/install 失败直接报错，保留现场
- max_workers > 1 时用线程池并行执行互不依赖的节点

执行结果逐节点记录为 StageResult，汇总为 RunReport；
失败时抛出 StageExecutionError，report 属性携带本次运行的完整记录。
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping

from srcbuild.core.exceptions import (
    ExecutionError,
    FetchError,
    StageExecutionError,
    UnsupportedProtocolError,
)
from srcbuild.core.graph import DEFAULT_TARGET, NodeKey, StageGraph, StageKind, StageNode
from srcbuild.core.protocols import Fetcher
from srcbuild.core.recipe.models import Recipe
from srcbuild.utils.shell import CommandRunner

logger = logging.getLogger(__name__)


# =========================================================================
# 源码地址分类
# =========================================================================

class SourceKind(str, Enum):
    VCS = "vcs"
    ARCHIVE = "archive"


_ARCHIVE_PROTOCOLS = frozenset(("http", "https", "ftp", "file"))


def classify_source(url: str) -> SourceKind:
    """按协议判断源码是版本库还是归档

    协议为第一个 ':' 之前的部分；以 .git 结尾或协议中含 git 视为版本库。

    Raises:
        UnsupportedProtocolError: 协议为空或无法识别
    """
    protocol = url.split(":", 1)[0].strip().lower() if ":" in url else ""
    if not protocol:
        raise UnsupportedProtocolError(f"源码地址缺少协议: {url!r}")
    if url.rstrip("/").lower().endswith(".git") or "git" in protocol:
        return SourceKind.VCS
    if protocol in _ARCHIVE_PROTOCOLS:
        return SourceKind.ARCHIVE
    raise UnsupportedProtocolError(f"不支持的源码协议 '{protocol}': {url}")


# =========================================================================
# 执行结果
# =========================================================================

class StageStatus(str, Enum):
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class StageResult:
    """单个阶段节点的执行结果"""

    package: str
    stage: StageKind
    status: StageStatus
    duration: float = 0.0  # 秒
    message: str = ""
    error: Exception | None = field(default=None, repr=False, compare=False)

    @property
    def label(self) -> str:
        return f"{self.package}_{self.stage.value}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "package": self.package,
            "stage": self.stage.value,
            "status": self.status.value,
            "duration": round(self.duration, 3),
            "message": self.message,
        }


@dataclass
class RunReport:
    """一次 run() 的汇总"""

    targets: list[str] = field(default_factory=list)
    results: list[StageResult] = field(default_factory=list)

    def by_status(self, status: StageStatus) -> list[StageResult]:
        return [r for r in self.results if r.status is status]

    @property
    def success(self) -> bool:
        return not self.by_status(StageStatus.FAILED)

    def first_failure(self) -> StageResult | None:
        failed = self.by_status(StageStatus.FAILED)
        return failed[0] if failed else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "targets": list(self.targets),
            "success": self.success,
            "summary": {s.value: len(self.by_status(s)) for s in StageStatus},
            "results": [r.to_dict() for r in self.results],
        }


# =========================================================================
# 执行器
# =========================================================================

_Outcome = tuple[StageStatus, str]


class StageExecutor:
    """阶段执行器

    Args:
        graph: 已构建的阶段图
        recipes: 包标识 → 配方
        runner: 构建脚本执行器
        fetcher: 源码拉取实现
        install_root: 项目安装根目录（导出/安装映射的目标前缀）
        base_dir: 工作区根目录（映射中相对源路径的基准）
        max_workers: 并行度，1 为顺序执行
    """

    def __init__(
        self,
        graph: StageGraph,
        recipes: Mapping[str, Recipe],
        *,
        runner: CommandRunner,
        fetcher: Fetcher,
        install_root: str | Path,
        base_dir: str | Path,
        max_workers: int = 1,
    ) -> None:
        self.graph = graph
        self.recipes = recipes
        self.runner = runner
        self.fetcher = fetcher
        self.install_root = Path(install_root)
        self.base_dir = Path(base_dir)
        self.max_workers = max(1, max_workers)
        self._visited: set[NodeKey] = set()
        self._lock = threading.Lock()
        self._handlers: dict[StageKind, Callable[[Recipe, StageNode], _Outcome]] = {
            StageKind.FETCH: self._fetch,
            StageKind.CONFIGURE: self._configure,
            StageKind.EXPORT: self._export,
            StageKind.BUILD: self._build,
            StageKind.INSTALL: self._install,
            StageKind.CLEAN: self._clean,
            StageKind.UPDATE: self._update,
        }

    def run(self, *targets: str) -> RunReport:
        """执行目标（默认 default），成功返回 RunReport

        Raises:
            UnknownTargetError: 目标不存在（未执行任何节点）
            StageExecutionError: 某个节点执行失败，report 携带运行记录
            FetchError: 源码地址无法分派或下载失败
        """
        names = list(targets) or [DEFAULT_TARGET]
        plan = self.graph.plan(*names)
        report = RunReport(targets=names)
        logger.info("执行目标 %s: %d 个节点（并行度=%d）",
                    ", ".join(names), len(plan), self.max_workers)

        if self.max_workers == 1:
            self._run_sequential(plan, report)
        else:
            self._run_parallel(plan, report)

        failure = report.first_failure()
        if failure is not None and failure.error is not None:
            if isinstance(failure.error, StageExecutionError):
                failure.error.report = report
            raise failure.error
        return report

    # -----------------------------------------------------------------
    # 调度
    # -----------------------------------------------------------------

    def _run_sequential(self, plan: list[StageNode], report: RunReport) -> None:
        for index, node in enumerate(plan):
            result = self._execute(node)
            report.results.append(result)
            if result.status is StageStatus.FAILED:
                report.results += [self._cancelled(n) for n in plan[index + 1:]]
                return

    def _run_parallel(self, plan: list[StageNode], report: RunReport) -> None:
        """节点的全部前驱成功后才提交；失败节点的后继不再提交"""
        keys = [n.key for n in plan]
        scope = set(keys)
        dependents = self.graph.dependents(keys)
        waiting = {
            k: sum(1 for p in self.graph.nodes[k].predecessors if p in scope)
            for k in keys
        }
        results: dict[NodeKey, StageResult] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            running: dict[Future[StageResult], NodeKey] = {}

            def submit(ready: list[NodeKey]) -> None:
                for key in ready:
                    running[pool.submit(self._execute, self.graph.nodes[key])] = key

            submit([k for k in keys if waiting[k] == 0])
            while running:
                finished, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in finished:
                    key = running.pop(future)
                    result = future.result()
                    results[key] = result
                    if result.status is StageStatus.FAILED:
                        continue
                    ready = []
                    for dependent in dependents[key]:
                        waiting[dependent] -= 1
                        if waiting[dependent] == 0:
                            ready.append(dependent)
                    submit(ready)

        for node in plan:
            report.results.append(results.get(node.key) or self._cancelled(node))

    @staticmethod
    def _cancelled(node: StageNode) -> StageResult:
        return StageResult(node.package, node.stage, StageStatus.CANCELLED,
                           message="前驱失败，未执行")

    def _execute(self, node: StageNode) -> StageResult:
        with self._lock:
            if node.key in self._visited:
                return StageResult(node.package, node.stage, StageStatus.SKIPPED,
                                   message="已执行")
            self._visited.add(node.key)

        start = time.monotonic()
        try:
            status, message = self._invoke(node)
        except (StageExecutionError, FetchError) as e:
            logger.error("%s 失败: %s", node.label, e)
            # 失败节点不算已满足，后续 run() 会重新执行它
            with self._lock:
                self._visited.discard(node.key)
            return StageResult(node.package, node.stage, StageStatus.FAILED,
                               duration=time.monotonic() - start,
                               message=str(e), error=e)
        duration = time.monotonic() - start
        if status is StageStatus.SKIPPED:
            logger.info("%s 跳过: %s", node.label, message)
        else:
            logger.info("%s 完成 (%.1f秒)", node.label, duration)
        return StageResult(node.package, node.stage, status,
                           duration=duration, message=message)

    def _invoke(self, node: StageNode) -> _Outcome:
        recipe = self.recipes[node.package]
        try:
            return self._handlers[node.stage](recipe, node)
        except (StageExecutionError, FetchError):
            raise
        except (ExecutionError, OSError) as e:
            raise StageExecutionError(
                f"{node.label} 失败: {e}",
                package=node.package, stage=node.stage.value,
            ) from e

    def _run_script(self, node: StageNode, cwd: Path) -> None:
        logger.info("%s: 执行命令 (cwd=%s)", node.label, cwd)
        result = self.runner.run(node.command, cwd=cwd)
        if not result.success:
            raise StageExecutionError(
                f"{node.label} 命令失败 (rc={result.returncode})",
                package=node.package, stage=node.stage.value,
            )

    # -----------------------------------------------------------------
    # 各阶段
    # -----------------------------------------------------------------

    def _fetch(self, recipe: Recipe, node: StageNode) -> _Outcome:
        if node.is_complete():
            return StageStatus.SKIPPED, "源码目录已存在"
        kind = classify_source(node.command)
        recipe.srcdir.parent.mkdir(parents=True, exist_ok=True)
        logger.info("%s: 拉取 %s", node.label, node.command)
        if kind is SourceKind.VCS:
            self.fetcher.clone_repo(node.command, recipe.srcdir)
        else:
            self.fetcher.download_archive(node.command, recipe.srcdir)
        return StageStatus.DONE, ""

    def _configure(self, recipe: Recipe, node: StageNode) -> _Outcome:
        if node.is_complete():
            return StageStatus.SKIPPED, "目标目录已存在"
        recipe.objdir.mkdir(parents=True, exist_ok=True)
        try:
            if recipe.bsdstyle:
                link = recipe.srcdir / "obj"
                if not link.exists() and not link.is_symlink():
                    link.symlink_to(recipe.objdir)
            if not node.command.strip():
                return StageStatus.DONE, "无配置命令"
            self._run_script(node, recipe.objdir)
        except (ExecutionError, OSError):
            logger.warning("%s 配置失败，清理目标目录", recipe.name)
            self._remove_objdir(recipe)
            raise
        return StageStatus.DONE, ""

    def _export(self, recipe: Recipe, node: StageNode) -> _Outcome:
        if not recipe.export:
            return StageStatus.SKIPPED, "无导出项"
        self._materialize(recipe.export)
        return StageStatus.DONE, f"导出 {len(recipe.export)} 项"

    def _build(self, recipe: Recipe, node: StageNode) -> _Outcome:
        if not node.command.strip():
            return StageStatus.DONE, "无构建命令"
        self._run_script(node, recipe.work_dir)
        return StageStatus.DONE, ""

    def _install(self, recipe: Recipe, node: StageNode) -> _Outcome:
        if not recipe.install and not node.command.strip():
            return StageStatus.SKIPPED, "无安装项"
        if node.command.strip():
            self._run_script(node, recipe.work_dir)
        self._materialize(recipe.install)
        return StageStatus.DONE, ""

    def _clean(self, recipe: Recipe, node: StageNode) -> _Outcome:
        self._remove_objdir(recipe)
        return StageStatus.DONE, ""

    def _update(self, recipe: Recipe, node: StageNode) -> _Outcome:
        kind = classify_source(node.command)
        if not recipe.srcdir.exists():
            self._fetch(recipe, node)
        if kind is SourceKind.ARCHIVE:
            logger.info("%s: 归档源码无需更新", recipe.name)
            return StageStatus.DONE, "归档源码无需更新"
        self.fetcher.update_repo(recipe.srcdir)
        return StageStatus.DONE, ""

    # -----------------------------------------------------------------
    # 文件操作
    # -----------------------------------------------------------------

    def _remove_objdir(self, recipe: Recipe) -> None:
        if recipe.objdir.exists():
            shutil.rmtree(recipe.objdir)
        link = recipe.srcdir / "obj"
        if recipe.bsdstyle and link.is_symlink():
            link.unlink()
        logger.info("已清理: %s", recipe.objdir)

    def _materialize(self, mapping: Mapping[str, str]) -> None:
        """把 源路径 → 目标路径 映射复制到安装根目录下"""
        for src, dst in mapping.items():
            source = Path(src)
            if not source.is_absolute():
                source = self.base_dir / source
            target = self.install_root / dst.lstrip("/")
            if source.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
            target.chmod(0o755 if os.access(source, os.X_OK) else 0o644)
            logger.debug("  %s -> %s", source, target)
