"""领域协议定义

集中定义执行器与外部能力之间的接口契约（Protocol），
执行器只依赖抽象，具体实现由 Workspace 注入，测试中替换为记录型假实现。

使用 typing.Protocol 而非 ABC，使得现有类无需修改继承关系即可满足协议。
命令执行协议 CommandRunner 与其默认实现放在 srcbuild.utils.shell。
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


# =========================================================================
# 源码拉取协议
# =========================================================================

class Fetcher(Protocol):
    """源码拉取协议

    三个操作都以包的 srcdir 为目标目录；失败时抛 FetchError 或 ExecutionError。
    """

    def download_archive(self, url: str, dest_dir: Path) -> None:
        """下载归档并解压到 dest_dir"""
        ...

    def clone_repo(self, url: str, dest_dir: Path) -> None:
        """克隆版本库到 dest_dir"""
        ...

    def update_repo(self, dest_dir: Path) -> None:
        """更新 dest_dir 中已有的版本库"""
        ...
