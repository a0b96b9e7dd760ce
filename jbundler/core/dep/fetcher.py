"""依赖包安装器

职责:
- LocalPackage: 本地目录依赖，vendor/<name> 指向源目录的相对符号链接
- GitPackage: git 依赖，按策略列表依次尝试，首个成功即返回
    1. ArchiveStrategy: GitHub 归档下载（失败只告警，继续下一个策略）
    2. CloneStrategy:   git init + 浅拉取（失败回退完整拉取）+ 稀疏检出
- 每次安装独占 vendor/.tmp 下的临时目录，任何退出路径都会清理
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import shutil
import tarfile
import tempfile
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from jbundler.core.dep.models import Dependency, GitSource, LocalSource
from jbundler.core.exceptions import (
    DependencyError,
    ExecutionError,
    JBError,
    OperationCancelled,
)
from jbundler.utils.context import Context
from jbundler.utils.fs import remove_all
from jbundler.utils.net import DEFAULT_TIMEOUT, download_file
from jbundler.utils.shell import CommandExecutor, get_executor, run_git

logger = logging.getLogger(__name__)

TMP_DIR = ".tmp"

GITHUB_REMOTE_RE = re.compile(r"^(https|ssh)://github\.com/.+$")
COMMIT_SHA_RE = re.compile(r"^[0-9a-f]{40,}$")
_LS_REMOTE_SHA_RE = re.compile(r"^([0-9a-f]{40,})\b")


class Package(Protocol):
    """安装器协议: 把包落到 vendor_dir/<name>，返回实际锁定的版本"""

    def install(self, name: str, vendor_dir: Path, version: str, ctx: Context) -> str:
        ...


# =========================================================================
# 本地目录
# =========================================================================

class LocalPackage:
    """本地目录依赖

    directory 相对 parent_dir 解析: 顶层为清单所在目录，
    嵌套解析时为引用它的包的真实路径。
    """

    def __init__(self, source: LocalSource, parent_dir: Path) -> None:
        self.source = source
        self.parent_dir = parent_dir

    def install(self, name: str, vendor_dir: Path, version: str, ctx: Context) -> str:
        ctx.check(f"install {name}")
        src = Path(os.path.abspath(self.parent_dir / self.source.directory))
        if not src.is_dir():
            raise DependencyError(f"本地依赖目录不存在: {src}")

        dest = vendor_dir / name
        dest.parent.mkdir(parents=True, exist_ok=True)
        remove_all(dest)
        link = os.path.relpath(src, dest.parent)
        os.symlink(link, dest, target_is_directory=True)
        logger.info("LINK %s -> %s", dest, link)
        return version


# =========================================================================
# git
# =========================================================================

@dataclass
class InstallJob:
    """单次 git 安装的上下文，在策略之间共享"""

    source: GitSource
    name: str
    version: str
    dest: Path
    tmp_dir: Path
    ctx: Context
    executor: CommandExecutor
    quiet: bool
    archive_timeout: float

    @property
    def archive_path(self) -> Path:
        return Path(f"{self.tmp_dir}.tar.gz")

    def git(self, args: list[str], *, capture: bool = False) -> str:
        return run_git(
            args, cwd=self.tmp_dir, ctx=self.ctx,
            executor=self.executor, quiet=self.quiet or capture,
        )


class InstallStrategy(Protocol):
    name: str
    # True 表示失败可以回退到下一个策略
    optional: bool

    def applies(self, source: GitSource) -> bool:
        ...

    def install(self, job: InstallJob) -> str:
        ...


class ArchiveStrategy:
    """GitHub 归档快速路径: 解析 commit → 下载 tar.gz → 解压"""

    name = "archive"
    optional = True

    def applies(self, source: GitSource) -> bool:
        return bool(GITHUB_REMOTE_RE.match(source.remote()))

    def install(self, job: InstallJob) -> str:
        sha = self.resolve_ref(job)
        if not sha:
            raise DependencyError(f"无法将 {job.version} 解析为 commit")

        url = f"{job.source.remote().removesuffix('.git')}/archive/{sha}.tar.gz"
        timeout = job.archive_timeout
        remaining = job.ctx.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining)
        job.ctx.check(f"download {url}")
        download_file(url, job.archive_path, timeout=timeout, ctx=job.ctx)

        extract_archive(job.archive_path, job.tmp_dir, job.source.subdir)
        src = job.tmp_dir / job.source.subdir if job.source.subdir else job.tmp_dir
        if not src.is_dir():
            raise DependencyError(f"归档中不存在子目录: {job.source.subdir}")
        move_into_place(src, job.dest)
        return sha

    @staticmethod
    def resolve_ref(job: InstallJob) -> str:
        """通过 ls-remote 精确匹配 ref；匹配不到且形如完整 commit 时原样使用"""
        try:
            out = job.git(
                ["ls-remote", "--heads", "--tags", "--refs", "--quiet",
                 job.source.remote(), job.version],
                capture=True,
            )
        except ExecutionError as e:
            logger.debug("ls-remote 失败: %s", e)
            out = ""
        m = _LS_REMOTE_SHA_RE.match(out)
        if m:
            return m.group(1)
        if COMMIT_SHA_RE.match(job.version):
            return job.version
        return ""


class CloneStrategy:
    """git 克隆路径，总是可用；失败即致命"""

    name = "clone"
    optional = False

    def applies(self, source: GitSource) -> bool:
        return True

    def install(self, job: InstallJob) -> str:
        remote = job.source.remote()
        subdir = job.source.subdir

        logger.info("git init")
        job.git(["init"])
        logger.info("git remote add origin %s", remote)
        job.git(["remote", "add", "origin", remote])

        logger.info("git fetch --tags --depth 1 origin %s", job.version)
        try:
            job.git(["fetch", "--tags", "--depth", "1", "origin", job.version])
        except ExecutionError as e:
            logger.info("浅拉取失败，回退为完整拉取: %s", e)
            job.git(["fetch", "origin"])

        # 指定了子目录时只检出该目录
        if subdir:
            job.git(["config", "core.sparsecheckout", "true"])
            sparse = job.tmp_dir / ".git" / "info" / "sparse-checkout"
            sparse.parent.mkdir(parents=True, exist_ok=True)
            sparse.write_text(f"{subdir}/*\n", encoding="utf-8")

        logger.info("git -c advice.detachedHead=false checkout %s", job.version)
        job.git(["-c", "advice.detachedHead=false", "checkout", job.version])
        commit = job.git(["rev-parse", "HEAD"], capture=True)

        shutil.rmtree(job.tmp_dir / ".git")
        src = job.tmp_dir / subdir if subdir else job.tmp_dir
        if not src.is_dir():
            raise DependencyError(f"仓库中不存在子目录: {subdir} ({remote}@{job.version})")
        move_into_place(src, job.dest)
        return commit


def default_strategies() -> list[InstallStrategy]:
    return [ArchiveStrategy(), CloneStrategy()]


class GitPackage:
    """git 依赖安装器"""

    def __init__(
        self,
        source: GitSource,
        *,
        quiet: bool = False,
        executor: CommandExecutor | None = None,
        archive_timeout: float = DEFAULT_TIMEOUT,
        strategies: list[InstallStrategy] | None = None,
    ) -> None:
        self.source = source
        self.quiet = quiet
        self.executor = executor or get_executor()
        self.archive_timeout = archive_timeout
        self.strategies = strategies if strategies is not None else default_strategies()

    def install(self, name: str, vendor_dir: Path, version: str, ctx: Context) -> str:
        tmp_root = vendor_dir / TMP_DIR
        tmp_root.mkdir(parents=True, exist_ok=True)
        tmp_dir = Path(tempfile.mkdtemp(prefix=tmp_prefix(name, version), dir=str(tmp_root)))
        job = InstallJob(
            source=self.source, name=name, version=version,
            dest=vendor_dir / name, tmp_dir=tmp_dir, ctx=ctx,
            executor=self.executor, quiet=self.quiet,
            archive_timeout=self.archive_timeout,
        )
        try:
            return self._run_strategies(job)
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            job.archive_path.unlink(missing_ok=True)

    def _run_strategies(self, job: InstallJob) -> str:
        for strategy in self.strategies:
            if not strategy.applies(self.source):
                continue
            ctx_label = f"{strategy.name} {job.name}"
            job.ctx.check(ctx_label)
            try:
                return strategy.install(job)
            except OperationCancelled:
                raise
            except (JBError, OSError, tarfile.TarError) as e:
                if not strategy.optional:
                    raise
                logger.warning("%s 安装失败: %s", strategy.name, e)
                logger.warning("改用下一个安装方式重试...")
                _reset_dir(job.tmp_dir)
        raise DependencyError(f"没有可用的安装方式: {job.name}")


def tmp_prefix(name: str, version: str) -> str:
    """由包名和版本派生的临时目录前缀（sha256 前 16 字节的 hex）"""
    key = f"jsonnetpkg-{name.replace('/', '-')}-{version.replace('/', '-')}"
    return hashlib.sha256(key.encode("utf-8")).digest()[:16].hex()


def new_package(
    dep: Dependency,
    parent_dir: Path,
    *,
    quiet: bool = False,
    executor: CommandExecutor | None = None,
    archive_timeout: float = DEFAULT_TIMEOUT,
) -> Package:
    """按来源类型选择安装器"""
    if isinstance(dep.source, GitSource):
        return GitPackage(
            dep.source, quiet=quiet, executor=executor,
            archive_timeout=archive_timeout,
        )
    if isinstance(dep.source, LocalSource):
        return LocalPackage(dep.source, parent_dir)
    raise DependencyError("必须指定 git 或 local 来源")


# =========================================================================
# 归档 / 目录工具
# =========================================================================

def extract_archive(archive: Path, dst: Path, subdir: str = "") -> None:
    """解压 tar.gz，去掉归档顶层目录；指定 subdir 时丢弃其外的条目"""
    with tarfile.open(archive, "r:gz") as tf:
        tf.extractall(
            path=str(dst), members=_strip_members(tf, subdir),
            filter="data",
        )


def _strip_members(tf: tarfile.TarFile, subdir: str) -> Iterator[tarfile.TarInfo]:
    prefix = subdir.strip("/")
    for member in tf:
        parts = member.name.split("/", 1)
        if len(parts) < 2 or not parts[1]:
            continue
        suffix = parts[1]
        if prefix and suffix != prefix and not suffix.startswith(prefix + "/"):
            continue
        if not (member.isdir() or member.isreg() or member.issym()):
            continue
        member.name = suffix
        yield member


def move_into_place(src: Path, dest: Path) -> None:
    """把 src 移到 dest，先删除 dest 已有内容"""
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        remove_all(dest)
        shutil.move(str(src), str(dest))
    except OSError as e:
        raise DependencyError(f"移动包失败 {src} -> {dest}: {e}") from e


def _reset_dir(path: Path) -> None:
    remove_all(path)
    path.mkdir(parents=True, exist_ok=True)
