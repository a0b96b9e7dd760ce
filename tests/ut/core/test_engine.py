"""ensure() 端到端测试: 解析 + vendor 整理"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from jbundler.core.dep.engine import ensure
from jbundler.core.dep.fetcher import new_package
from jbundler.core.dep.models import Dependency, JsonnetFile, LocalSource, OrderedDeps


def _manifest(*deps: Dependency, legacy: bool = True) -> JsonnetFile:
    return JsonnetFile(dependencies=OrderedDeps(list(deps)), legacy_imports=legacy)


class TestEnsure:
    def test_stale_package_cleaned(self, tmp_path: Path, registry, make_dep) -> None:
        vendor = tmp_path / "vendor"
        (vendor / "github.com/a/c").mkdir(parents=True)
        (vendor / "github.com/a/c/old.libsonnet").write_text("old")

        result = ensure(
            _manifest(make_dep("b", user="a")), vendor,
            base_dir=tmp_path, package_factory=registry,
        )

        assert result.keys() == ["github.com/a/b"]
        assert (vendor / "github.com/a/b").is_dir()
        assert (vendor / "github.com/a").is_dir()
        assert not (vendor / "github.com/a/c").exists()
        assert not (vendor / ".tmp").exists()

    def test_old_locks_not_mutated(self, tmp_path: Path, registry, make_dep) -> None:
        old = OrderedDeps()
        ensure(
            _manifest(make_dep("b")), tmp_path / "vendor", old,
            base_dir=tmp_path, package_factory=registry,
        )
        assert len(old) == 0

    def test_legacy_link_created(self, tmp_path: Path, registry, make_dep) -> None:
        vendor = tmp_path / "vendor"
        ensure(_manifest(make_dep("b", user="a")), vendor, base_dir=tmp_path, package_factory=registry)
        assert os.readlink(vendor / "b") == "github.com/a/b"

    def test_legacy_imports_off(self, tmp_path: Path, registry, make_dep) -> None:
        vendor = tmp_path / "vendor"
        os.makedirs(vendor)
        os.symlink("github.com/a/b", vendor / "b")
        ensure(
            _manifest(make_dep("b", user="a"), legacy=False), vendor,
            base_dir=tmp_path, package_factory=registry,
        )
        assert not os.path.lexists(vendor / "b")

    def test_regular_file_at_alias(self, tmp_path: Path, registry, make_dep, caplog) -> None:
        vendor = tmp_path / "vendor"
        vendor.mkdir()
        (vendor / "b").write_text("mine")
        with caplog.at_level(logging.WARNING):
            ensure(_manifest(make_dep("b", user="a")), vendor, base_dir=tmp_path, package_factory=registry)
        assert (vendor / "b").read_text() == "mine"
        assert "已存在" in caplog.text

    def test_derived_legacy_name_cleared(self, tmp_path: Path, registry, make_dep) -> None:
        dep = make_dep("b", user="a")
        dep.legacy_name_compat = "b"
        result = ensure(_manifest(dep), tmp_path / "vendor", base_dir=tmp_path, package_factory=registry)
        assert result.get("github.com/a/b").legacy_name_compat == ""

    def test_package_with_symlink_installed_once(
        self, tmp_path: Path, registry, make_dep,
    ) -> None:
        """包内的符号链接被整理删除后，第二次运行仍命中缓存"""

        class _LinkingPackage:
            def __init__(self, dep, parent_dir) -> None:
                self.inner = registry(dep, parent_dir)

            def install(self, name, vendor_dir, version, ctx):
                commit = self.inner.install(name, vendor_dir, version, ctx)
                os.symlink("main.libsonnet", vendor_dir / name / "alias.libsonnet")
                return commit

        manifest = _manifest(make_dep("a"))
        vendor = tmp_path / "vendor"
        locks = ensure(manifest, vendor, base_dir=tmp_path, package_factory=_LinkingPackage)
        assert not os.path.lexists(vendor / "github.com/org/a/alias.libsonnet")

        again = ensure(manifest, vendor, locks, base_dir=tmp_path, package_factory=_LinkingPackage)

        assert registry.installed_names() == ["github.com/org/a"]
        assert again == locks


class TestLocalDependencies:
    def test_local_symlink_without_sum(self, tmp_path: Path) -> None:
        project = tmp_path / "project"
        project.mkdir()
        lib = tmp_path / "mylib"
        lib.mkdir()
        (lib / "main.libsonnet").write_text("{}")
        vendor = project / "vendor"

        result = ensure(
            _manifest(Dependency(source=LocalSource("../mylib"))), vendor,
            base_dir=project,
        )

        dep = result.get("mylib")
        assert dep.sum == ""
        assert dep.version == ""
        assert (vendor / "mylib").is_symlink()
        assert (vendor / "mylib" / "main.libsonnet").exists()

    def test_local_present_is_cache_hit(self, tmp_path: Path) -> None:
        (tmp_path / "mylib").mkdir()
        manifest = _manifest(Dependency(source=LocalSource("mylib")))
        vendor = tmp_path / "vendor"
        locks = ensure(manifest, vendor, base_dir=tmp_path)
        # 本地依赖内容变化不触发重新安装
        (tmp_path / "mylib" / "new.libsonnet").write_text("{}")
        again = ensure(manifest, vendor, locks, base_dir=tmp_path)
        assert again == locks
        assert (vendor / "mylib").is_symlink()

    def test_nested_local_relative_to_package(
        self, tmp_path: Path, registry, make_dep,
    ) -> None:
        """git 包清单中的本地依赖相对该包自身目录解析"""
        vendor = tmp_path / "vendor"
        registry.files["github.com/org/a"] = {"main.libsonnet": "a", "sub/x.libsonnet": "x"}
        registry.nested["github.com/org/a"] = [Dependency(source=LocalSource("sub"))]

        def factory(dep, parent_dir):
            if dep.is_local:
                return new_package(dep, parent_dir)
            return registry(dep, parent_dir)

        result = ensure(_manifest(make_dep("a")), vendor, base_dir=tmp_path, package_factory=factory)

        assert result.keys() == ["github.com/org/a", "sub"]
        assert (vendor / "sub").is_symlink()
        assert (vendor / "sub" / "x.libsonnet").read_text() == "x"
