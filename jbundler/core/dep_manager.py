"""依赖包管理器

命令层与引擎之间的一层: 读写清单 / 锁文件，调用 ensure()。

用法:
    from jbundler.core.dep_manager import DepManager

    dm = DepManager(".")
    dm.init()
    dm.install(["github.com/grafana/jsonnet-libs/grafana-builder@master"])
    dm.update()                       # 忽略全部锁定，重新解析
    dm.update(["github.com/x/y"])     # 只更新指定的包
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from jbundler.core.config import get_config
from jbundler.core.dep import jsonnetfile
from jbundler.core.dep.engine import ensure
from jbundler.core.dep.models import Dependency, JsonnetFile, OrderedDeps
from jbundler.core.dep.parser import parse
from jbundler.core.dep.vendor import clean_legacy_name
from jbundler.core.exceptions import ConfigError, ValidationError
from jbundler.utils.context import Context
from jbundler.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class DepManager:
    """清单目录下的依赖管理"""

    def __init__(
        self,
        directory: str | Path = ".",
        vendor_dir: str | None = None,
        *,
        quiet: bool | None = None,
        timeout: int | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        cfg = get_config()
        self.directory = Path(directory)
        self.vendor_dir = self.directory / (vendor_dir or cfg.vendor_dir)
        self.quiet = cfg.git_quiet if quiet is None else quiet
        self.timeout = cfg.timeout if timeout is None else timeout
        self.archive_timeout = cfg.archive_timeout
        self.executor = executor

    @property
    def manifest_path(self) -> Path:
        return self.directory / jsonnetfile.FILE

    @property
    def lock_path(self) -> Path:
        return self.directory / jsonnetfile.LOCK_FILE

    def init(self) -> Path:
        """创建空清单，已存在则报错"""
        if jsonnetfile.exists(self.manifest_path):
            raise ConfigError(f"{self.manifest_path} 已存在")
        jsonnetfile.write(self.manifest_path, JsonnetFile())
        logger.info("已创建 %s", self.manifest_path)
        return self.manifest_path

    def install(
        self,
        uris: Sequence[str] = (),
        *,
        single: bool = False,
        legacy_name: str = "",
    ) -> OrderedDeps:
        """安装清单中的依赖，可同时追加 / 替换 uris 指定的依赖"""
        if len(uris) > 1 and legacy_name:
            raise ValidationError("--legacy-name 不能与多个 URI 同时使用")

        manifest_bytes = jsonnetfile.read_bytes(self.manifest_path)
        manifest = self._decode(manifest_bytes, self.manifest_path)
        lock_bytes = jsonnetfile.read_bytes(self.lock_path, required=False)
        lock = self._decode(lock_bytes, self.lock_path)

        for uri in uris:
            dep = parse(self.directory, uri)
            if single:
                dep.single = True
            if legacy_name:
                dep.legacy_name_compat = legacy_name

            name = dep.name()
            if not _dep_equal(manifest.dependencies.get(name), dep):
                # 命令行给出的依赖与清单不同: 写入清单并忽略其锁定
                manifest.dependencies.set(name, dep)
                lock.dependencies.delete(name)

        locked = self._ensure(manifest, lock.dependencies)
        clean_legacy_name(manifest.dependencies)

        jsonnetfile.write_changed(manifest_bytes, manifest, self.manifest_path)
        self._write_lock(lock_bytes, locked)
        return locked

    def update(self, uris: Sequence[str] = ()) -> OrderedDeps:
        """忽略锁定重新解析；给出 uris 时只放开这些包的锁定"""
        manifest_bytes = jsonnetfile.read_bytes(self.manifest_path)
        manifest = self._decode(manifest_bytes, self.manifest_path)
        lock_bytes = jsonnetfile.read_bytes(self.lock_path, required=False)
        lock = self._decode(lock_bytes, self.lock_path)

        locks = lock.dependencies
        if uris:
            for uri in uris:
                locks.delete(parse(self.directory, uri).name())
        else:
            locks = OrderedDeps()

        locked = self._ensure(manifest, locks)
        self._write_lock(lock_bytes, locked)
        return locked

    def _ensure(self, manifest: JsonnetFile, locks: OrderedDeps) -> OrderedDeps:
        logger.info("安装依赖到 %s", self.vendor_dir)
        return ensure(
            manifest, self.vendor_dir, locks,
            base_dir=self.directory,
            ctx=Context(timeout=self.timeout or None),
            quiet=self.quiet,
            executor=self.executor,
            archive_timeout=self.archive_timeout,
        )

    def _write_lock(self, original: bytes, locked: OrderedDeps) -> None:
        lock = JsonnetFile(dependencies=locked, legacy_imports=False)
        jsonnetfile.write_changed(original, lock, self.lock_path)

    @staticmethod
    def _decode(data: bytes, path: Path) -> JsonnetFile:
        try:
            return jsonnetfile.unmarshal(data)
        except ConfigError as e:
            raise ConfigError(f"{path}: {e}") from e


def _dep_equal(a: Dependency | None, b: Dependency) -> bool:
    if a is None:
        return False
    return a.name() == b.name() and a.version == b.version and a.source == b.source
