"""srcbuild 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
工作区位置通过 group 选项指定，每条命令构造自己的 Workspace。
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

import click

from srcbuild import __version__
from srcbuild.core.exceptions import SrcBuildError
from srcbuild.services.workspace import Workspace
from srcbuild.utils.logger import setup_logging


def _workspace(ctx: click.Context, **kwargs: object) -> Workspace:
    """按 group 选项构造工作区"""
    opts = ctx.find_root().obj or {}
    return Workspace(
        opts.get("base_dir", "."),
        config_file=opts.get("config_file"),
        project_file=opts.get("project_file"),
        **kwargs,  # type: ignore[arg-type]
    )


@contextmanager
def _errors() -> Iterator[None]:
    """把业务异常转换为 click 错误（非零退出码 + 提示）"""
    try:
        yield
    except SrcBuildError as e:
        raise click.ClickException(f"[{e.code}] {e}") from e


@click.group()
@click.version_option(version=__version__)
@click.option("--base-dir", "-C", default=".", type=click.Path(file_okay=False),
              help="工作区根目录（含 pkg/）")
@click.option("--config", "config_file", default=None, type=click.Path(dir_okay=False),
              help="全局配置文件，默认 <base>/configuration.yml")
@click.option("--project", "project_file", default=None, type=click.Path(dir_okay=False),
              help="项目文件，默认 <base>/project.yml")
@click.pass_context
def main(
    ctx: click.Context, base_dir: str,
    config_file: str | None, project_file: str | None,
) -> None:
    """srcbuild - 源码包构建编排工具"""
    setup_logging(
        level=os.getenv("SRCBUILD_LOG_LEVEL", "INFO"),
        json_output=os.getenv("SRCBUILD_LOG_JSON", "") == "1",
    )
    ctx.obj = {
        "base_dir": base_dir,
        "config_file": config_file,
        "project_file": project_file,
    }


# 注册各领域子命令
from srcbuild.cli.cmd_build import register as _reg_build  # noqa: E402
from srcbuild.cli.cmd_project import register as _reg_project  # noqa: E402

_reg_build(main)
_reg_project(main)
