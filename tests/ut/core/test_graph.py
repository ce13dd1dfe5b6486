"""阶段依赖图测试"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from srcbuild.core.exceptions import (
    DependencyCycleError,
    UnknownTargetError,
    UnresolvedDependencyError,
)
from srcbuild.core.graph import GraphBuilder, StageGraph, StageKind
from srcbuild.core.recipe.models import Recipe, split_name

BASE = Path("/b")


def _recipe(name: str, **kwargs: Any) -> Recipe:
    metaname, version = split_name(name)
    inner = (metaname, name) if version else (metaname,)
    return Recipe(
        name=name, metaname=metaname, version=version,
        source=kwargs.pop("source", f"https://example.org/{name}.tar.gz"),
        srcdir=BASE.joinpath("src", *inner),
        objdir=BASE.joinpath("obj", *inner),
        **kwargs,
    )


def _graph(*recipes: Recipe) -> StageGraph:
    return GraphBuilder({r.name: r for r in recipes}).build()


def _labels(graph: StageGraph, *targets: str) -> list[str]:
    return [n.label for n in graph.plan(*targets)]


class TestNodes:
    def test_seven_nodes_per_package(self) -> None:
        g = _graph(_recipe("zlib"), _recipe("openssl"))
        assert len(g) == 14
        assert g.packages() == ["zlib", "openssl"]

    def test_intra_package_chain(self) -> None:
        g = _graph(_recipe("zlib"))
        node = lambda s: g.node(("zlib", s))  # noqa: E731
        assert node(StageKind.CONFIGURE).predecessors == (("zlib", StageKind.FETCH),)
        assert node(StageKind.EXPORT).predecessors == (("zlib", StageKind.CONFIGURE),)
        assert node(StageKind.BUILD).predecessors == (("zlib", StageKind.EXPORT),)
        assert node(StageKind.INSTALL).predecessors == (("zlib", StageKind.BUILD),)
        assert node(StageKind.FETCH).predecessors == ()
        assert node(StageKind.CLEAN).predecessors == ()
        assert node(StageKind.UPDATE).predecessors == ()

    def test_commands_and_markers(self) -> None:
        r = _recipe("zlib", configure="./configure", build="make", install_command="make install")
        g = _graph(r)
        assert g.node(("zlib", StageKind.FETCH)).command == r.source
        assert g.node(("zlib", StageKind.FETCH)).marker == str(r.srcdir)
        assert g.node(("zlib", StageKind.CONFIGURE)).marker == str(r.objdir)
        assert g.node(("zlib", StageKind.INSTALL)).command == "make install"
        assert g.node(("zlib", StageKind.EXPORT)).marker == ""

    def test_cross_package_edges(self) -> None:
        g = _graph(
            _recipe("zlib"), _recipe("openssl"),
            _recipe("app", build_deps=("zlib",), export_deps=("openssl",)),
        )
        build = g.node(("app", StageKind.BUILD))
        assert ("openssl", StageKind.EXPORT) in build.predecessors
        assert ("zlib", StageKind.INSTALL) in build.predecessors
        assert g.node(("app", StageKind.CLEAN)).predecessors == (("zlib", StageKind.CLEAN),)

    def test_graph_immutable(self) -> None:
        g = _graph(_recipe("zlib"))
        with pytest.raises(TypeError):
            g.nodes[("x", StageKind.FETCH)] = None  # type: ignore[index]


class TestDependencyResolution:
    def test_unknown_dependency(self) -> None:
        with pytest.raises(UnresolvedDependencyError) as exc_info:
            _graph(_recipe("app", build_deps=("missing",)))
        assert exc_info.value.package == "app"
        assert exc_info.value.dependency == "missing"

    def test_metaname_alias(self) -> None:
        g = _graph(_recipe("zlib-1.2.8"), _recipe("app", build_deps=("zlib",)))
        assert ("zlib-1.2.8", StageKind.INSTALL) in g.node(("app", StageKind.BUILD)).predecessors

    def test_ambiguous_metaname(self) -> None:
        with pytest.raises(UnresolvedDependencyError, match="歧义"):
            _graph(_recipe("zlib-1.2.8"), _recipe("zlib-1.3"), _recipe("app", build_deps=("zlib",)))

    def test_exact_identifier_wins(self) -> None:
        g = _graph(_recipe("zlib"), _recipe("zlib-1.3"), _recipe("app", build_deps=("zlib",)))
        assert ("zlib", StageKind.INSTALL) in g.node(("app", StageKind.BUILD)).predecessors

    def test_cycle_detected(self) -> None:
        with pytest.raises(DependencyCycleError, match="依赖成环"):
            _graph(_recipe("a", build_deps=("b",)), _recipe("b", build_deps=("a",)))

    def test_export_cycle_is_not_a_cycle(self) -> None:
        # export 只依赖本包 configure，互相导出不成环
        g = _graph(_recipe("a", export_deps=("b",)), _recipe("b", export_deps=("a",)))
        assert len(g) == 14


class TestTargets:
    def test_stage_and_package_targets(self) -> None:
        g = _graph(_recipe("zlib"))
        assert g.resolve("zlib_build").nodes == (("zlib", StageKind.BUILD),)
        assert g.resolve("zlib").nodes == (("zlib", StageKind.INSTALL),)

    def test_alias_targets_share_nodes(self) -> None:
        g = _graph(_recipe("libevent-2.0.21-stable"))
        full = g.resolve("libevent-2.0.21-stable_fetch")
        alias = g.resolve("libevent_fetch")
        assert alias.nodes == full.nodes
        assert alias.kind == "alias"
        assert g.resolve("libevent").nodes == (("libevent-2.0.21-stable", StageKind.INSTALL),)

    def test_ambiguous_alias_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        g = _graph(_recipe("zlib-1.2.8"), _recipe("zlib-1.3"))
        assert "zlib_fetch" not in g.targets
        assert "zlib-1.3_fetch" in g.targets
        assert "zlib" in caplog.text

    def test_rollups_and_default(self) -> None:
        g = _graph(_recipe("zlib"), _recipe("openssl"))
        assert g.resolve("clean").nodes == (
            ("zlib", StageKind.CLEAN), ("openssl", StageKind.CLEAN),
        )
        assert g.resolve("default").nodes == g.resolve("install").nodes
        assert g.resolve("install").kind == "rollup"

    def test_unknown_target(self) -> None:
        with pytest.raises(UnknownTargetError):
            _graph(_recipe("zlib")).resolve("zlib_deploy")

    def test_targets_for_package(self) -> None:
        g = _graph(_recipe("zlib-1.2.8"), _recipe("openssl"))
        names = g.targets_for("zlib-1.2.8")
        assert "zlib-1.2.8_build" in names
        assert "zlib_build" in names
        assert "zlib" in names
        assert "install" not in names
        assert not any(n.startswith("openssl") for n in names)


class TestPlan:
    def test_single_package_order(self) -> None:
        g = _graph(_recipe("zlib"))
        assert _labels(g, "zlib") == [
            "zlib_fetch", "zlib_configure", "zlib_export", "zlib_build", "zlib_install",
        ]

    def test_dependencies_first(self) -> None:
        g = _graph(
            _recipe("zlib"), _recipe("openssl"),
            _recipe("app", export_deps=("openssl",), build_deps=("zlib",)),
        )
        plan = _labels(g, "app_build")
        assert plan.index("openssl_export") < plan.index("app_build")
        assert plan.index("zlib_install") < plan.index("app_build")
        assert plan.index("app_export") < plan.index("app_build")
        assert "openssl_build" not in plan
        assert len(plan) == len(set(plan))

    def test_alias_and_full_name_planned_once(self) -> None:
        g = _graph(_recipe("zlib-1.2.8"))
        plan = _labels(g, "zlib_build", "zlib-1.2.8_build")
        assert plan.count("zlib-1.2.8_build") == 1

    def test_clean_order(self) -> None:
        g = _graph(_recipe("zlib"), _recipe("app", build_deps=("zlib",)))
        assert _labels(g, "app_clean") == ["zlib_clean", "app_clean"]

    def test_deterministic(self) -> None:
        recipes = [_recipe("a"), _recipe("b", build_deps=("a",)), _recipe("c", build_deps=("a", "b"))]
        assert _labels(_graph(*recipes), "install") == _labels(_graph(*recipes), "install")

    def test_dependents(self) -> None:
        g = _graph(_recipe("zlib"), _recipe("app", build_deps=("zlib",)))
        deps = g.dependents()
        assert ("app", StageKind.BUILD) in deps[("zlib", StageKind.INSTALL)]
