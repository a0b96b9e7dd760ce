"""jbundler 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os
from typing import Any

import click

from jbundler import __version__
from jbundler.core.config import DEFAULT_CONFIG_FILE, init_config
from jbundler.core.exceptions import JBError
from jbundler.utils.logger import setup_logging


def _manager(ctx: click.Context) -> Any:
    """按全局选项构造 DepManager"""
    from jbundler.core.dep_manager import DepManager
    opts = ctx.find_object(dict) or {}
    return DepManager(
        ".", vendor_dir=opts.get("jsonnetpkg_home"),
        quiet=opts.get("quiet"),
    )


def _fail(e: JBError) -> click.ClickException:
    return click.ClickException(f"[{e.code}] {e}")


@click.group()
@click.version_option(version=__version__)
@click.option("--jsonnetpkg-home", default=None, help="vendor 目录（默认 vendor）")
@click.option("--quiet", "-q", is_flag=True, help="不输出 git 命令的过程信息")
@click.option("--config", "-c", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
@click.pass_context
def main(ctx: click.Context, jsonnetpkg_home: str | None, quiet: bool, config: str) -> None:
    """jb - jsonnet 依赖包管理"""
    try:
        cfg = init_config(config)
    except JBError as e:
        raise _fail(e) from e
    setup_logging(
        level=os.getenv("JB_LOG_LEVEL", cfg.log_level),
        json_output=os.getenv("JB_LOG_JSON", "") == "1",
    )
    ctx.ensure_object(dict)
    ctx.obj["jsonnetpkg_home"] = jsonnetpkg_home
    # 未指定 -q 时沿用配置文件的 git_quiet
    ctx.obj["quiet"] = quiet or None


# 注册各领域子命令
from jbundler.cli.cmd_init import register as _reg_init  # noqa: E402
from jbundler.cli.cmd_install import register as _reg_install  # noqa: E402

_reg_init(main)
_reg_install(main)
