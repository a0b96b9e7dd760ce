"""CLI - 安装 / 更新依赖"""

from __future__ import annotations

import click

from jbundler.cli import _fail, _manager
from jbundler.core.exceptions import JBError


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(update)


@click.command()
@click.argument("uris", nargs=-1)
@click.option("--single", is_flag=True, help="不解析该包自身的嵌套依赖")
@click.option("--legacy-name", default="", help="兼容导入用的别名（只能配合单个 URI）")
@click.pass_context
def install(ctx: click.Context, uris: tuple[str, ...], single: bool, legacy_name: str) -> None:
    """安装清单中的依赖，或追加 URIS 指定的依赖"""
    try:
        locked = _manager(ctx).install(uris, single=single, legacy_name=legacy_name)
    except JBError as e:
        raise _fail(e) from e
    click.echo(f"已安装 {len(locked)} 个依赖包")


@click.command()
@click.argument("uris", nargs=-1)
@click.pass_context
def update(ctx: click.Context, uris: tuple[str, ...]) -> None:
    """忽略锁定重新解析全部依赖，或只更新 URIS 指定的依赖"""
    try:
        locked = _manager(ctx).update(uris)
    except JBError as e:
        raise _fail(e) from e
    click.echo(f"已更新，共 {len(locked)} 个依赖包")
