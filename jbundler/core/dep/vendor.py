"""vendor 目录整理

解析完成后让 vendor 目录与锁定集合一致:
- 删除不属于任何依赖的目录（多级名称的中间目录保留）
- 删除所有符号链接（本地依赖自身路径及其内部除外）
- 开启 legacyImports 时为非本地依赖重建 <别名> -> <名称> 的兼容链接
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import replace
from pathlib import Path

from jbundler.core.dep.models import OrderedDeps
from jbundler.utils.fs import remove_all

logger = logging.getLogger(__name__)


def known(locks: OrderedDeps, rel_path: str) -> bool:
    """rel_path 是某个依赖名的前缀，或以某个依赖名为前缀"""
    p = Path(rel_path).as_posix()
    for dep in locks:
        k = dep.name()
        if p.startswith(k) or k.startswith(p):
            return True
    return False


def clean_unknown(vendor_dir: str | Path, locks: OrderedDeps) -> list[Path]:
    """删除 vendor 下未知的目录，返回被删除的路径"""
    vendor = Path(vendor_dir)
    unknown: list[Path] = []

    for root, dirnames, _ in os.walk(vendor):
        dirnames.sort()
        keep = []
        for d in dirnames:
            path = Path(root) / d
            # 指向目录的符号链接不算目录，交给 clean_legacy_symlinks
            if path.is_symlink():
                continue
            if known(locks, os.path.relpath(path, vendor)):
                keep.append(d)
            else:
                unknown.append(path)
        # 未知目录整体删除，无需再向下遍历
        dirnames[:] = keep

    for path in unknown:
        remove_all(path)
        rel = os.path.relpath(path, vendor)
        if not rel.startswith(".tmp"):
            logger.info("CLEAN %s", path)
    return unknown


def clean_legacy_symlinks(vendor_dir: str | Path, locks: OrderedDeps) -> None:
    """删除 vendor 下所有符号链接，本地依赖路径及其内部不动"""
    vendor = Path(vendor_dir)
    locals_ = {vendor / d.name() for d in locks if d.is_local}

    for root, dirnames, filenames in os.walk(vendor):
        dirnames.sort()
        keep = []
        for d in dirnames:
            path = Path(root) / d
            if path in locals_:
                continue
            if path.is_symlink():
                path.unlink()
                continue
            keep.append(d)
        dirnames[:] = keep

        for f in filenames:
            path = Path(root) / f
            if path in locals_:
                continue
            if path.is_symlink():
                path.unlink()


def link_legacy(vendor_dir: str | Path, locks: OrderedDeps) -> list[Path]:
    """为非本地依赖创建兼容别名链接，返回已创建的链接"""
    vendor = Path(vendor_dir)
    created: list[Path] = []
    for dep in locks:
        # 本地依赖仍使用相对导入
        if dep.is_local:
            continue

        legacy = vendor / dep.legacy_name()
        target = vendor / dep.name()
        if _legacy_name_taken(legacy, dep.name()):
            continue

        legacy.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(os.path.relpath(target, legacy.parent), legacy)
        created.append(legacy)
    return created


def _legacy_name_taken(legacy: Path, name: str) -> bool:
    try:
        st = legacy.lstat()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("无法检查别名 %s: %s", legacy, e)
        return True

    if legacy.is_symlink():
        logger.warning(
            "无法将 '%s' 链接为 '%s': 包 '%s' 已占用该名称，绝对路径导入仍可用",
            name, legacy, os.readlink(legacy),
        )
        return True

    kind = "目录" if stat.S_ISDIR(st.st_mode) else "文件"
    logger.warning(
        "无法将 '%s' 链接为 '%s': 同名%s已存在，绝对路径导入仍可用",
        name, legacy, kind,
    )
    return True


def clean_legacy_name(deps: OrderedDeps) -> None:
    """清除与来源推导结果相同的别名，只保留用户显式覆盖的值"""
    for name in deps.keys():
        dep = deps.get(name)
        if dep is not None and dep.legacy_name_compat == dep.source.legacy_name():
            deps.set(name, replace(dep, legacy_name_compat=""))
