"""依赖解析器 - 递归遍历清单，产出扁平锁定集合

规则:
- 已锁定的依赖沿用锁定版本；vendor 副本校验和一致（本地依赖只需存在）即命中缓存
- 未锁定或校验失败: 删除旧副本，重新安装；锁文件中原有 sum 与新副本不一致即致命
- 新锁记录同时写回共享的 locks，兄弟和嵌套解析都能看到，避免重复下载
- 非 single 依赖若自带 jsonnetfile.json，以它的真实路径为父目录递归解析
- 嵌套结果只补充本层尚未出现的名字: 先解析到的（本层直接依赖优先）胜出，
  不同层之间的版本冲突不报错
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from jbundler.core.dep import jsonnetfile
from jbundler.core.dep.checksum import check, hash_dir
from jbundler.core.dep.fetcher import Package, new_package
from jbundler.core.dep.models import Dependency, OrderedDeps
from jbundler.core.exceptions import IntegrityError
from jbundler.utils.context import Context, background
from jbundler.utils.fs import remove_all

logger = logging.getLogger(__name__)

PackageFactory = Callable[[Dependency, Path], Package]


class PackageResolver:
    """依赖解析器（单线程、同步）

    locks 作为显式的可变累加器贯穿整个递归；_expanded 记录已展开过嵌套
    清单的包名，保证依赖成环时递归终止。
    """

    def __init__(
        self,
        vendor_dir: str | Path,
        *,
        ctx: Context | None = None,
        base_dir: str | Path | None = None,
        package_factory: PackageFactory | None = None,
    ) -> None:
        self.vendor_dir = Path(vendor_dir)
        self.ctx = ctx or background()
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.package_factory = package_factory or new_package
        self.fetch_count = 0
        self._expanded: set[str] = set()

    def resolve(
        self,
        direct: OrderedDeps,
        locks: OrderedDeps,
        parent_dir: Path | None = None,
    ) -> OrderedDeps:
        """解析 direct 及其嵌套依赖，返回本层结果集合（会修改 locks）"""
        logger.info(
            "处理 %d 个直接依赖 (vendor=%s, parent=%s)",
            len(direct), self.vendor_dir, parent_dir or self.base_dir,
        )
        result = OrderedDeps()

        for dep in direct:
            name = dep.name()
            locked = locks.get(name)
            expected_sum = ""

            if locked is not None:
                dep = replace(dep, version=locked.version)
                if check(locked, self.vendor_dir):
                    logger.debug("缓存命中: %s@%s", name, locked.version)
                    result.set(name, locked)
                    continue
                expected_sum = locked.sum

            remove_all(self.vendor_dir / name)
            fresh = self.download(dep, parent_dir)
            if expected_sum and fresh.sum != expected_sum:
                raise IntegrityError(name, expected_sum, fresh.sum)

            result.set(name, fresh)
            locks.set(name, fresh)

        for dep in result.values():
            nested = self._resolve_nested(dep, locks)
            if nested is None:
                continue
            for n in nested:
                if n.name() not in result:
                    result.set(n.name(), n)

        return result

    def download(self, dep: Dependency, parent_dir: Path | None = None) -> Dependency:
        """安装单个依赖，返回带实际版本和校验和的新锁记录"""
        name = dep.name()
        package = self.package_factory(dep, parent_dir or self.base_dir)
        logger.info("下载 %s -> %s (版本 %s)", name, self.vendor_dir, dep.version or "-")
        version = package.install(name, self.vendor_dir, dep.version, self.ctx)
        self.fetch_count += 1

        # 本地依赖开发期间会变化，不计算校验和
        checksum = "" if dep.is_local else hash_dir(self.vendor_dir / name)
        return replace(dep, version=version, sum=checksum)

    def _resolve_nested(self, dep: Dependency, locks: OrderedDeps) -> OrderedDeps | None:
        if dep.single:
            return None
        name = dep.name()
        if name in self._expanded:
            return None

        pkg_dir = self.vendor_dir / name
        if not pkg_dir.is_dir():
            return None
        manifest = pkg_dir / jsonnetfile.FILE
        if not jsonnetfile.exists(manifest):
            return None

        self._expanded.add(name)
        logger.debug("加载嵌套清单 %s", manifest)
        nested = jsonnetfile.load(manifest)
        return self.resolve(nested.dependencies, locks, parent_dir=pkg_dir.resolve())
