"""测试共享 fixture：工作区目录树 + 记录型 Runner / Fetcher

  bsys            在 tmp_path 下搭建 pkg/、configuration.yml、project.yml
  fake_runner     记录每次脚本执行，可按关键字让命令失败
  fake_fetcher    记录拉取调用，并在目标目录生成最小源码树
  make_workspace  用上面三者构造 Workspace
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from srcbuild.services.workspace import Workspace
from srcbuild.utils.shell import CommandResult


@dataclass
class RunnerCall:
    command: str
    cwd: Path


class FakeRunner:
    """CommandRunner 假实现：命令中包含 fail_on 任一关键字即返回失败"""

    def __init__(self) -> None:
        self.calls: list[RunnerCall] = []
        self.fail_on: set[str] = set()
        self._lock = threading.Lock()

    def run(
        self, command: str, *, cwd: str | Path = ".",
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        with self._lock:
            self.calls.append(RunnerCall(command, Path(cwd)))
        if any(word in command for word in self.fail_on):
            return CommandResult(returncode=2, stderr="失败")
        return CommandResult(returncode=0)

    def commands(self) -> list[str]:
        return [c.command for c in self.calls]


class FakeFetcher:
    """Fetcher 假实现：按调用顺序记录 (操作, 地址, 目录)"""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Path]] = []
        self._lock = threading.Lock()

    def _record(self, op: str, url: str, dest: Path) -> None:
        with self._lock:
            self.calls.append((op, url, Path(dest)))

    def download_archive(self, url: str, dest_dir: Path) -> None:
        self._record("download", url, dest_dir)
        Path(dest_dir).mkdir(parents=True)
        (Path(dest_dir) / "configure").write_text("#!/bin/sh\n", encoding="utf-8")

    def clone_repo(self, url: str, dest_dir: Path) -> None:
        self._record("clone", url, dest_dir)
        (Path(dest_dir) / ".git").mkdir(parents=True)

    def update_repo(self, dest_dir: Path) -> None:
        self._record("update", "", dest_dir)

    def ops(self) -> list[str]:
        return [op for op, _, _ in self.calls]


@dataclass
class BsysTree:
    """临时工作区目录树"""

    base: Path
    written: list[str] = field(default_factory=list)

    def recipe(self, identifier: str, **fields: Any) -> Path:
        fields.setdefault("source", f"https://example.org/{identifier}.tar.gz")
        path = self.base / "pkg" / f"{identifier}.yml"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(fields, allow_unicode=True), encoding="utf-8")
        self.written.append(identifier)
        return path

    def config(self, **fields: Any) -> Path:
        path = self.base / "configuration.yml"
        path.write_text(yaml.safe_dump(fields), encoding="utf-8")
        return path

    def project(self, **entries: Any) -> Path:
        path = self.base / "project.yml"
        path.write_text(yaml.safe_dump(entries), encoding="utf-8")
        return path


@pytest.fixture()
def bsys(tmp_path: Path) -> BsysTree:
    (tmp_path / "pkg").mkdir()
    return BsysTree(base=tmp_path)


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture()
def make_workspace(
    bsys: BsysTree, fake_runner: FakeRunner, fake_fetcher: FakeFetcher,
) -> Callable[..., Workspace]:
    def factory(**kwargs: Any) -> Workspace:
        kwargs.setdefault("runner", fake_runner)
        kwargs.setdefault("fetcher", fake_fetcher)
        return Workspace(bsys.base, **kwargs)
    return factory
