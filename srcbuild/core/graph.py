"""阶段依赖图

把一组已加载的配方展开成「包 × 阶段」节点图，并登记可执行的目标名。

每个包七个节点: fetch / configure / export / build / install / clean / update

包内依赖（箭头指向前驱）:
  configure → fetch
  export    → configure
  build     → export
  install   → build
  clean、update 没有包内前驱

跨包依赖:
  build(P) → export(D)   对 P 的每个 exportdep D
  build(P) → install(D)  对 P 的每个 builddep D
  clean(P) → clean(D)    对 P 的每个 builddep D

目标名:
  <name>_<stage>       单个节点
  <metaname>_<stage>   带版本包的别名，指向同一节点（不会重复执行）
  <name> / <metaname>  等同 <name>_install
  fetch|configure|export|build|install|clean|update  全部已选包的汇总目标
  default              等同 install

依赖引用先按完整标识匹配，再按无歧义的 metaname 匹配；
无法解析时在任何阶段执行之前抛 UnresolvedDependencyError。
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping

from srcbuild.core.exceptions import (
    DependencyCycleError,
    UnknownTargetError,
    UnresolvedDependencyError,
)
from srcbuild.core.recipe.models import Recipe

logger = logging.getLogger(__name__)


class StageKind(str, Enum):
    """包生命周期阶段"""

    FETCH = "fetch"
    CONFIGURE = "configure"
    EXPORT = "export"
    BUILD = "build"
    INSTALL = "install"
    CLEAN = "clean"
    UPDATE = "update"


NodeKey = tuple[str, StageKind]

DEFAULT_TARGET = "default"

# 包内前驱
_CHAIN: dict[StageKind, StageKind] = {
    StageKind.CONFIGURE: StageKind.FETCH,
    StageKind.EXPORT: StageKind.CONFIGURE,
    StageKind.BUILD: StageKind.EXPORT,
    StageKind.INSTALL: StageKind.BUILD,
}


def stage_target(package: str, stage: StageKind) -> str:
    return f"{package}_{stage.value}"


@dataclass(frozen=True)
class StageNode:
    """阶段节点

    marker 是完成判据：路径已存在即视为该阶段已完成（fetch 看 srcdir，
    configure 看 objdir），其他阶段为空。
    """

    package: str
    stage: StageKind
    command: str = ""
    marker: str = ""
    predecessors: tuple[NodeKey, ...] = ()

    @property
    def key(self) -> NodeKey:
        return (self.package, self.stage)

    @property
    def label(self) -> str:
        return stage_target(self.package, self.stage)

    def is_complete(self) -> bool:
        return bool(self.marker) and Path(self.marker).exists()


@dataclass(frozen=True)
class Target:
    """可请求执行的目标，指向一个或多个节点"""

    name: str
    nodes: tuple[NodeKey, ...]
    kind: str = "stage"  # stage / alias / package / rollup


class StageGraph:
    """只读的阶段依赖图"""

    def __init__(self, nodes: Mapping[NodeKey, StageNode], targets: Mapping[str, Target]) -> None:
        self.nodes: Mapping[NodeKey, StageNode] = MappingProxyType(dict(nodes))
        self.targets: Mapping[str, Target] = MappingProxyType(dict(targets))

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, key: NodeKey) -> StageNode:
        return self.nodes[key]

    def resolve(self, target: str) -> Target:
        found = self.targets.get(target)
        if found is None:
            raise UnknownTargetError(f"目标不存在: {target}")
        return found

    def packages(self) -> list[str]:
        return list(dict.fromkeys(pkg for pkg, _ in self.nodes))

    def targets_for(self, package: str) -> list[str]:
        """列出直接指向某个包节点的目标名"""
        return [
            t.name for t in self.targets.values()
            if t.kind != "rollup" and any(pkg == package for pkg, _ in t.nodes)
        ]

    def plan(self, *targets: str) -> list[StageNode]:
        """按执行顺序列出目标的全部传递前驱（深度优先后序，顺序确定）"""
        order: list[NodeKey] = []
        seen: set[NodeKey] = set()
        for name in targets:
            for key in self.resolve(name).nodes:
                self._walk(key, seen, order)
        return [self.nodes[k] for k in order]

    def _walk(self, root: NodeKey, seen: set[NodeKey], order: list[NodeKey]) -> None:
        if root in seen:
            return
        seen.add(root)
        stack: list[tuple[NodeKey, Iterator[NodeKey]]] = [
            (root, iter(self.nodes[root].predecessors)),
        ]
        while stack:
            key, preds = stack[-1]
            for pred in preds:
                if pred not in seen:
                    seen.add(pred)
                    stack.append((pred, iter(self.nodes[pred].predecessors)))
                    break
            else:
                stack.pop()
                order.append(key)

    def dependents(self, keys: list[NodeKey] | None = None) -> dict[NodeKey, list[NodeKey]]:
        """反向边：节点 → 以它为前驱的节点，可限定在给定节点集合内"""
        ordered = list(keys) if keys is not None else list(self.nodes)
        scope = set(ordered)
        result: dict[NodeKey, list[NodeKey]] = {k: [] for k in ordered}
        for key in ordered:
            for pred in self.nodes[key].predecessors:
                if pred in scope:
                    result[pred].append(key)
        return result


class GraphBuilder:
    """从配方集合构建 StageGraph"""

    def __init__(self, recipes: Mapping[str, Recipe]) -> None:
        self.recipes = recipes
        self._aliases, self._ambiguous = self._index_metanames()

    def _index_metanames(self) -> tuple[dict[str, str], dict[str, list[str]]]:
        by_meta: dict[str, list[str]] = defaultdict(list)
        for name, recipe in self.recipes.items():
            if recipe.has_version:
                by_meta[recipe.metaname].append(name)
        aliases: dict[str, str] = {}
        ambiguous: dict[str, list[str]] = {}
        for meta, names in by_meta.items():
            if meta in self.recipes:
                ambiguous[meta] = [meta, *names]
            elif len(names) > 1:
                ambiguous[meta] = names
            else:
                aliases[meta] = names[0]
        return aliases, ambiguous

    def resolve_dependency(self, package: str, dependency: str) -> str:
        """把依赖引用解析为已选配方的完整标识"""
        if dependency in self.recipes:
            return dependency
        if dependency in self._aliases:
            return self._aliases[dependency]
        if dependency in self._ambiguous:
            raise UnresolvedDependencyError(
                f"包 '{package}' 的依赖 '{dependency}' 有歧义: "
                f"{', '.join(self._ambiguous[dependency])}",
                package=package, dependency=dependency,
            )
        raise UnresolvedDependencyError(
            f"包 '{package}' 依赖未知的包 '{dependency}'",
            package=package, dependency=dependency,
        )

    def build(self) -> StageGraph:
        nodes: dict[NodeKey, StageNode] = {}
        for name, recipe in self.recipes.items():
            for node in self._package_nodes(name, recipe):
                nodes[node.key] = node
        _check_acyclic(nodes)
        targets = self._targets()
        logger.info("阶段图已构建: %d 个包, %d 个节点, %d 个目标",
                    len(self.recipes), len(nodes), len(targets))
        return StageGraph(nodes, targets)

    def _package_nodes(self, name: str, recipe: Recipe) -> list[StageNode]:
        export_deps = [self.resolve_dependency(name, d) for d in recipe.export_deps]
        build_deps = [self.resolve_dependency(name, d) for d in recipe.build_deps]

        preds: dict[StageKind, list[NodeKey]] = {stage: [] for stage in StageKind}
        for stage, prior in _CHAIN.items():
            preds[stage].append((name, prior))
        preds[StageKind.BUILD] += [(d, StageKind.EXPORT) for d in export_deps]
        preds[StageKind.BUILD] += [(d, StageKind.INSTALL) for d in build_deps]
        preds[StageKind.CLEAN] += [(d, StageKind.CLEAN) for d in build_deps]

        commands = {
            StageKind.FETCH: recipe.source,
            StageKind.CONFIGURE: recipe.configure,
            StageKind.BUILD: recipe.build,
            StageKind.INSTALL: recipe.install_command,
            StageKind.UPDATE: recipe.source,
        }
        markers = {
            StageKind.FETCH: str(recipe.srcdir),
            StageKind.CONFIGURE: str(recipe.objdir),
        }
        return [
            StageNode(
                package=name, stage=stage,
                command=commands.get(stage, ""),
                marker=markers.get(stage, ""),
                predecessors=tuple(dict.fromkeys(preds[stage])),
            )
            for stage in StageKind
        ]

    def _targets(self) -> dict[str, Target]:
        targets: dict[str, Target] = {}

        def register(target: Target) -> None:
            if target.name in targets:
                logger.warning("目标名冲突，忽略: %s (%s)", target.name, target.kind)
                return
            targets[target.name] = target

        names = list(self.recipes)
        for stage in StageKind:
            register(Target(stage.value, tuple((n, stage) for n in names), kind="rollup"))
        register(Target(DEFAULT_TARGET, tuple((n, StageKind.INSTALL) for n in names), kind="rollup"))

        for name in names:
            for stage in StageKind:
                register(Target(stage_target(name, stage), ((name, stage),)))
        for name in names:
            register(Target(name, ((name, StageKind.INSTALL),), kind="package"))

        for meta, name in self._aliases.items():
            for stage in StageKind:
                register(Target(stage_target(meta, stage), ((name, stage),), kind="alias"))
            register(Target(meta, ((name, StageKind.INSTALL),), kind="alias"))
        for meta, candidates in self._ambiguous.items():
            logger.warning("metaname %s 对应多个配方 (%s)，不创建别名",
                           meta, ", ".join(candidates))
        return targets


def _check_acyclic(nodes: Mapping[NodeKey, StageNode]) -> None:
    """三色深度优先检测环，发现即报出环上的节点"""
    white, gray, black = 0, 1, 2
    color = dict.fromkeys(nodes, white)
    for start in nodes:
        if color[start] != white:
            continue
        color[start] = gray
        stack: list[tuple[NodeKey, Iterator[NodeKey]]] = [
            (start, iter(nodes[start].predecessors)),
        ]
        while stack:
            key, preds = stack[-1]
            for pred in preds:
                if color[pred] == gray:
                    path = [k for k, _ in stack]
                    cycle = [*path[path.index(pred):], pred]
                    raise DependencyCycleError(
                        "依赖成环: " + " -> ".join(stage_target(p, s) for p, s in cycle)
                    )
                if color[pred] == white:
                    color[pred] = gray
                    stack.append((pred, iter(nodes[pred].predecessors)))
                    break
            else:
                color[key] = black
                stack.pop()
