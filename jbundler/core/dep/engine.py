"""依赖安装入口

ensure() 接收清单的直接依赖、vendor 目录和已有锁定，保证所有直接与嵌套
依赖以正确版本出现在 vendor 中:

  已锁定且 vendor 文件与 sha256 校验和一致 → 不做任何事；
  否则从上游重新获取，若之前已锁定还要比对校验和。
  嵌套依赖已出现在锁定中时以锁定为准，用户可以借此 `jb install`
  指定想要的版本。

最后清理 vendor 中的未知目录和符号链接，返回完整的锁定集合。
任何致命错误原样抛出，不返回部分结果。
"""

from __future__ import annotations

import functools
import logging
from pathlib import Path

from jbundler.core.dep.fetcher import TMP_DIR, new_package
from jbundler.core.dep.models import JsonnetFile, OrderedDeps
from jbundler.core.dep.resolver import PackageFactory, PackageResolver
from jbundler.core.dep.vendor import (
    clean_legacy_name,
    clean_legacy_symlinks,
    clean_unknown,
    link_legacy,
)
from jbundler.utils.context import Context, background
from jbundler.utils.net import DEFAULT_TIMEOUT
from jbundler.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


def ensure(
    manifest: JsonnetFile,
    vendor_dir: str | Path,
    old_locks: OrderedDeps | None = None,
    *,
    base_dir: str | Path | None = None,
    ctx: Context | None = None,
    quiet: bool = False,
    executor: CommandExecutor | None = None,
    archive_timeout: float = DEFAULT_TIMEOUT,
    package_factory: PackageFactory | None = None,
) -> OrderedDeps:
    """解析、安装并整理 vendor，返回新的锁定集合

    Args:
        manifest: 顶层清单
        vendor_dir: vendor 根目录
        old_locks: 之前持久化的锁定（不会被修改）
        base_dir: 顶层本地依赖的相对基准目录，默认当前目录
        ctx: 运行上下文，取消 / 超时会终止进行中的 git 与下载
        quiet: 不透传 git 输出
        package_factory: 自定义安装器工厂（测试用）
    """
    vendor = Path(vendor_dir)
    (vendor / TMP_DIR).mkdir(parents=True, exist_ok=True)

    if package_factory is None:
        package_factory = functools.partial(
            new_package, quiet=quiet, executor=executor,
            archive_timeout=archive_timeout,
        )
    resolver = PackageResolver(
        vendor, ctx=ctx or background(), base_dir=base_dir,
        package_factory=package_factory,
    )

    locks = old_locks.copy() if old_locks is not None else OrderedDeps()
    result = resolver.resolve(manifest.dependencies, locks)
    logger.debug("本次运行安装了 %d 个包", resolver.fetch_count)

    clean_legacy_name(result)

    clean_unknown(vendor, result)
    # 先删除全部符号链接，需要时再重建
    clean_legacy_symlinks(vendor, result)
    if manifest.legacy_imports:
        link_legacy(vendor, result)

    return result
