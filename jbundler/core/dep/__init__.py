"""依赖解析、安装与 vendor 整理

拆分说明:
- models.py: 数据模型
- parser.py: 包 URI 解析
- jsonnetfile.py: 清单 / 锁文件编解码
- checksum.py: 目录校验和
- fetcher.py: 本地 / git 安装器
- resolver.py: 递归解析
- vendor.py: vendor 目录整理
- engine.py: ensure() 入口
"""

from jbundler.core.dep.engine import ensure
from jbundler.core.dep.models import (
    Dependency,
    GitSource,
    JsonnetFile,
    LocalSource,
    OrderedDeps,
)
from jbundler.core.dep.resolver import PackageResolver
from jbundler.core.dep.vendor import clean_legacy_name

__all__ = [
    "Dependency",
    "GitSource",
    "JsonnetFile",
    "LocalSource",
    "OrderedDeps",
    "PackageResolver",
    "clean_legacy_name",
    "ensure",
]
