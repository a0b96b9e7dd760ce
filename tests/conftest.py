"""共享 fixture - 配置隔离 + 模拟 git + 模拟安装器

  FakeGit              模拟 git 子进程: init / remote / fetch / config /
                       checkout / rev-parse / ls-remote，按 repo_files 写出工作区
  FakeRegistry         模拟上游仓库: name -> 文件内容，install 时写入 vendor，
                       可带嵌套 jsonnetfile.json，记录每次安装
"""

from __future__ import annotations

from pathlib import Path

import pytest

from jbundler.core.dep import jsonnetfile
from jbundler.core.dep.models import (
    GIT_SCHEME_HTTPS,
    Dependency,
    GitSource,
    JsonnetFile,
    OrderedDeps,
)
from jbundler.utils.context import Context
from jbundler.utils.shell import CommandResult

FAKE_SHA = "0123456789abcdef0123456789abcdef01234567"


@pytest.fixture(autouse=True)
def _reset_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """每个测试使用默认配置"""
    import jbundler.core.config as cfgmod
    monkeypatch.setattr(cfgmod, "_current", None)


# =========================================================================
# 模拟 git
# =========================================================================

class FakeGit:
    """实现 CommandExecutor 协议的 git 模拟器"""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.repo_files: dict[str, str] = {"main.libsonnet": "{}"}
        self.head = FAKE_SHA
        self.ls_remote_output = ""
        self.fail: set[str] = set()

    def execute(self, cmd, *, cwd=".", env=None, ctx=None, capture=True):  # type: ignore[no-untyped-def]
        args = list(cmd)[1:]
        self.calls.append(args)
        sub = args[0] if args[0] != "-c" else args[2]
        if sub in self.fail or " ".join(args) in self.fail:
            return CommandResult(returncode=128, stdout="", stderr=f"fatal: {sub} failed")

        work = Path(cwd)
        if sub == "init":
            (work / ".git" / "info").mkdir(parents=True, exist_ok=True)
        elif sub == "checkout":
            self._checkout(work)
        elif sub == "rev-parse":
            return CommandResult(returncode=0, stdout=self.head + "\n", stderr="")
        elif sub == "ls-remote":
            return CommandResult(returncode=0, stdout=self.ls_remote_output, stderr="")
        return CommandResult(returncode=0, stdout="", stderr="")

    def _checkout(self, work: Path) -> None:
        sparse = work / ".git" / "info" / "sparse-checkout"
        prefix = ""
        if sparse.exists():
            prefix = sparse.read_text().strip().removesuffix("*")
        for rel, content in self.repo_files.items():
            if prefix and not rel.startswith(prefix):
                continue
            target = work / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)

    def subcommands(self) -> list[str]:
        return [a[0] if a[0] != "-c" else a[2] for a in self.calls]


@pytest.fixture()
def fake_git() -> FakeGit:
    return FakeGit()


# =========================================================================
# 模拟上游仓库（解析器测试用）
# =========================================================================

def git_dep(
    repo: str, version: str = "master", *, user: str = "org",
    subdir: str = "", single: bool = False,
) -> Dependency:
    source = GitSource(
        scheme=GIT_SCHEME_HTTPS, host="github.com", user=user,
        repo=repo, subdir=subdir,
    )
    return Dependency(source=source, version=version, single=single)


class FakePackage:
    def __init__(self, registry: FakeRegistry, dep: Dependency) -> None:
        self.registry = registry
        self.dep = dep

    def install(self, name: str, vendor_dir: Path, version: str, ctx: Context) -> str:
        self.registry.installs.append((name, version))
        files = dict(self.registry.files.get(name, {"main.libsonnet": name}))
        nested = self.registry.nested.get(name)
        if nested:
            files[jsonnetfile.FILE] = jsonnetfile.marshal(
                JsonnetFile(dependencies=OrderedDeps(nested)),
            )
        dest = vendor_dir / name
        for rel, content in files.items():
            target = dest / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return self.registry.resolved.get(version, version)


class FakeRegistry:
    """name -> 文件内容 / 嵌套依赖；作为 package_factory 传给解析器"""

    def __init__(self) -> None:
        self.files: dict[str, dict[str, str]] = {}
        self.nested: dict[str, list[Dependency]] = {}
        self.resolved: dict[str, str] = {}
        self.installs: list[tuple[str, str]] = []

    def __call__(self, dep: Dependency, parent_dir: Path) -> FakePackage:
        return FakePackage(self, dep)

    def installed_names(self) -> list[str]:
        return [n for n, _ in self.installs]


@pytest.fixture()
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture()
def make_dep():
    """git 依赖工厂: make_dep("repo", "v1", subdir="lib", single=True)"""
    return git_dep
