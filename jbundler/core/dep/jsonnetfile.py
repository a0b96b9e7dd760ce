"""清单 / 锁文件编解码

jsonnetfile.json 由用户维护，jsonnetfile.lock.json 完全由 ensure() 生成。
编码保持依赖的插入顺序；内容与读入时一致则不回写，避免无意义的 diff。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from jbundler.core.dep.models import (
    Dependency,
    GitSource,
    JsonnetFile,
    LocalSource,
    OrderedDeps,
    Source,
)
from jbundler.core.dep.parser import parse_remote
from jbundler.core.exceptions import ConfigError, ValidationError
from jbundler.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

FILE = "jsonnetfile.json"
LOCK_FILE = "jsonnetfile.lock.json"

VERSION = 1


def unmarshal(data: bytes) -> JsonnetFile:
    """解码清单 / 锁文件内容，空内容返回空 JsonnetFile"""
    if not data or not data.strip():
        return JsonnetFile()
    try:
        raw = json.loads(data)
    except ValueError as e:
        raise ConfigError(f"JSON 格式错误: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError("顶层必须是 JSON 对象")

    version = raw.get("version", VERSION)
    if version != VERSION:
        raise ConfigError(f"不支持的文件版本: {version}，仅支持 {VERSION}")

    deps = OrderedDeps()
    for i, entry in enumerate(raw.get("dependencies") or []):
        try:
            dep = dependency_from_dict(entry)
        except ValidationError as e:
            raise ConfigError(f"dependencies[{i}] 无效: {e}") from e
        deps.set(dep.name(), dep)

    return JsonnetFile(
        dependencies=deps,
        legacy_imports=bool(raw.get("legacyImports", True)),
    )


def marshal(jf: JsonnetFile) -> str:
    """编码为两空格缩进的 JSON，末尾带换行"""
    payload = {
        "version": VERSION,
        "dependencies": [dependency_to_dict(d) for d in jf.dependencies],
        "legacyImports": jf.legacy_imports,
    }
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def dependency_from_dict(entry: Any) -> Dependency:
    if not isinstance(entry, dict):
        raise ValidationError(f"依赖项必须是对象: {entry!r}")
    source = source_from_dict(entry.get("source") or {})
    return Dependency(
        source=source,
        version=str(entry.get("version", "")),
        sum=str(entry.get("sum", "")),
        legacy_name_compat=str(entry.get("name", "")),
        single=bool(entry.get("single", False)),
    )


def dependency_to_dict(dep: Dependency) -> dict[str, Any]:
    out: dict[str, Any] = {
        "source": source_to_dict(dep.source),
        "version": dep.version,
    }
    if dep.sum:
        out["sum"] = dep.sum
    if dep.legacy_name_compat:
        out["name"] = dep.legacy_name_compat
    if dep.single:
        out["single"] = True
    return out


def source_from_dict(data: dict[str, Any]) -> Source:
    """git 与 local 必须恰好指定其一"""
    git = data.get("git")
    local = data.get("local")
    if git and local:
        raise ValidationError("git 与 local 来源只能指定其一", details=[str(data)])
    if git:
        remote = git.get("remote", "")
        if not remote:
            raise ValidationError("git 来源缺少 remote")
        return parse_remote(remote, git.get("subdir", ""))
    if local:
        directory = local.get("directory", "")
        if not directory:
            raise ValidationError("local 来源缺少 directory")
        return LocalSource(directory=directory)
    raise ValidationError("必须指定 git 或 local 来源", details=[str(data)])


def source_to_dict(source: Source) -> dict[str, Any]:
    if isinstance(source, GitSource):
        return {"git": {"remote": source.remote(), "subdir": source.subdir}}
    return {"local": {"directory": source.directory}}


def exists(path: str | Path) -> bool:
    """path 是文件返回 True，不存在返回 False，是目录则报错"""
    p = Path(path)
    if not p.exists():
        return False
    if p.is_dir():
        raise ConfigError(f"{p} 是目录而不是文件")
    return True


def read_bytes(path: str | Path, *, required: bool = True) -> bytes:
    """读取原始内容；required=False 时文件不存在返回 b\"\" """
    p = Path(path)
    if not exists(p):
        if required:
            raise ConfigError(f"无法加载 {p}: 文件不存在")
        return b""
    return p.read_bytes()


def load(path: str | Path) -> JsonnetFile:
    p = Path(path)
    try:
        return unmarshal(read_bytes(p))
    except ConfigError as e:
        raise ConfigError(f"{p}: {e}") from e


def write(path: str | Path, jf: JsonnetFile) -> None:
    atomic_write(Path(path), marshal(jf))


def write_changed(original: bytes, modified: JsonnetFile, path: str | Path) -> bool:
    """仅当 modified 与原始内容解码结果不同时写入，返回是否写入"""
    if unmarshal(original) == modified:
        logger.debug("未变化，跳过写入: %s", path)
        return False
    write(path, modified)
    logger.debug("已写入: %s", path)
    return True
