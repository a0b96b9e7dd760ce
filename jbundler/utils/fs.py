"""文件系统工具"""

from __future__ import annotations

import shutil
from pathlib import Path


def remove_all(path: str | Path) -> None:
    """删除 path 及其内容；符号链接只删除链接本身；不存在时静默返回"""
    p = Path(path)
    if p.is_symlink() or p.is_file():
        p.unlink()
    elif p.is_dir():
        shutil.rmtree(p)
