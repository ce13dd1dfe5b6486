"""CLI 构建命令（执行、计划、目标与包列表）"""

from __future__ import annotations

import click

from srcbuild.cli import _errors, _workspace
from srcbuild.core.exceptions import StageExecutionError


def register(group: click.Group) -> None:
    group.add_command(run)
    group.add_command(plan)
    group.add_command(targets)
    group.add_command(packages)


@click.command()
@click.argument("target", nargs=-1)
@click.option("--parallel", "-j", default=1, type=click.IntRange(min=1),
              help="并行执行的阶段数")
@click.pass_context
def run(ctx: click.Context, target: tuple[str, ...], parallel: int) -> None:
    """执行目标（默认 install）"""
    names = target or ("install",)
    with _errors():
        ws = _workspace(ctx, max_workers=parallel)
        try:
            report = ws.run(*names)
        except StageExecutionError as e:
            if e.report is not None:
                _print_summary(e.report.to_dict()["summary"])
            raise
    _print_summary(report.to_dict()["summary"])


def _print_summary(summary: dict[str, int]) -> None:
    click.echo(
        f"完成 {summary['done']}，跳过 {summary['skipped']}，"
        f"失败 {summary['failed']}，取消 {summary['cancelled']}"
    )


@click.command()
@click.argument("target", nargs=-1)
@click.pass_context
def plan(ctx: click.Context, target: tuple[str, ...]) -> None:
    """列出目标的执行顺序（不执行）"""
    with _errors():
        nodes = _workspace(ctx, read_only=True).graph.plan(*(target or ("install",)))
    for i, node in enumerate(nodes, 1):
        click.echo(f"  {i:3d}. {node.label}")


@click.command()
@click.option("--package", "-p", default="", help="只列出指定包的目标")
@click.pass_context
def targets(ctx: click.Context, package: str) -> None:
    """列出可执行的目标"""
    with _errors():
        graph = _workspace(ctx, read_only=True).graph
    if package:
        names = graph.targets_for(package)
        if not names:
            raise click.ClickException(f"包不存在: {package}")
    else:
        names = list(graph.targets)
    for name in names:
        click.echo(f"  {name:40s} {graph.targets[name].kind}")


@click.command()
@click.pass_context
def packages(ctx: click.Context) -> None:
    """列出当前项目选中的包"""
    with _errors():
        ws = _workspace(ctx, read_only=True)
        recipes = ws.recipes
    click.echo(f"项目 {ws.project.name}: {len(recipes)} 个包")
    for name, recipe in recipes.items():
        deps = ", ".join([*recipe.build_deps, *recipe.export_deps]) or "-"
        click.echo(f"  {name:30s} {recipe.version or '-':15s} 依赖: {deps}")
        click.echo(f"  {'':30s} {recipe.source}")
