"""CLI 项目命令（全选/全不选、清理安装根目录、看板）"""

from __future__ import annotations

import click

from srcbuild.cli import _errors, _workspace
from srcbuild.core.project import DEFAULT_PROJECT_NAME, write_selection


def register(group: click.Group) -> None:
    group.add_command(allyes)
    group.add_command(allno)
    group.add_command(rootclean)
    group.add_command(dashboard)


def _write_all(ctx: click.Context, name: str, enabled: bool) -> None:
    with _errors():
        layout = _workspace(ctx).layout
        identifiers = layout.discover_recipes()
        write_selection(layout.project_file, identifiers, enabled=enabled, name=name)
    click.echo(f"项目文件已生成: {layout.project_file} ({len(identifiers)} 个包)")


@click.command()
@click.option("--name", default=DEFAULT_PROJECT_NAME, help="项目名")
@click.pass_context
def allyes(ctx: click.Context, name: str) -> None:
    """生成启用全部包的项目文件"""
    _write_all(ctx, name, enabled=True)


@click.command()
@click.option("--name", default=DEFAULT_PROJECT_NAME, help="项目名")
@click.pass_context
def allno(ctx: click.Context, name: str) -> None:
    """生成禁用全部包的项目文件"""
    _write_all(ctx, name, enabled=False)


@click.command()
@click.pass_context
def rootclean(ctx: click.Context) -> None:
    """删除 root/ 下全部安装内容"""
    ws = _workspace(ctx)
    if ws.root_clean():
        click.echo(f"已删除: {ws.layout.install_base}")
    else:
        click.echo("安装根目录不存在，无需清理。")


@click.command()
@click.option("--port", default=8888, help="监听端口")
@click.option("--host", default="127.0.0.1", help="监听地址")
@click.pass_context
def dashboard(ctx: click.Context, port: int, host: str) -> None:
    """启动轻量级 Web 看板"""
    from srcbuild.web.app import create_app, run_server
    opts = ctx.find_root().obj or {}
    run_server(create_app(**opts), port=port, host=host)
