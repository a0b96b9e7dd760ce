"""目录内容校验和

hash_dir 按字典序深度优先遍历目录，把所有文件内容依次送入同一个
SHA-256，结果为标准 base64 编码（与已有锁文件兼容）。符号链接（无论指向
文件还是目录）都不参与计算。

注意: 文件名、权限和目录结构都不参与计算。只要遍历顺序下的文件内容
序列不变，重命名或调整目录层级得到的校验和相同，已有锁文件依赖这一点。
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from jbundler.core.dep.models import Dependency

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def hash_dir(path: str | Path) -> str:
    """计算目录内容校验和，遍历中的 I/O 错误直接抛出"""
    sha256 = hashlib.sha256()
    _feed(Path(path), sha256)
    return base64.b64encode(sha256.digest()).decode("ascii")


def _feed(directory: Path, sha256: Any) -> None:
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        # 只计算普通文件；包内符号链接会被 vendor 整理删除，不能参与校验
        if entry.is_symlink():
            continue
        if entry.is_dir(follow_symlinks=False):
            _feed(Path(entry.path), sha256)
            continue
        with open(entry.path, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
                sha256.update(chunk)


def check(dep: Dependency, vendor_dir: str | Path) -> bool:
    """vendor 中的副本是否仍可信

    本地目录依赖开发期间会变化，只要存在即视为完好；
    其他依赖没有 sum 时需要重新下载，有 sum 则重新计算比对。
    """
    path = Path(vendor_dir) / dep.name()
    if dep.is_local:
        return path.exists()

    if not dep.sum:
        return False
    if not path.is_dir():
        return False

    logger.debug("校验 %s", path)
    return hash_dir(path) == dep.sum
