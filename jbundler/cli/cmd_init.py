"""CLI - 初始化清单"""

from __future__ import annotations

import click

from jbundler.cli import _fail, _manager
from jbundler.core.exceptions import JBError


def register(group: click.Group) -> None:
    group.add_command(init)


@click.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """在当前目录创建 jsonnetfile.json"""
    try:
        path = _manager(ctx).init()
    except JBError as e:
        raise _fail(e) from e
    click.echo(f"已创建: {path}")
