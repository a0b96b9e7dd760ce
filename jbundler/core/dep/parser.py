"""包 URI 解析

支持的写法:
  github.com/user/repo[/subdir][@version]
  https://host/user/repo[.git][/subdir][@version]
  https://host/group/subgroup/repo.git[/subdir][@version]
  ssh://git@host/user/repo.git[/subdir][@version]
  git@host:user/repo.git[/subdir][@version]
  ./relative/dir          （本地目录，必须存在）
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from jbundler.core.dep.models import (
    GIT_SCHEME_HTTPS,
    GIT_SCHEME_SSH,
    Dependency,
    GitSource,
    LocalSource,
)
from jbundler.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_GIT_VERSION = "master"

_SCP_RE = re.compile(r"^git@(?P<host>[^:/]+):(?P<path>.+)$")
_HTTPS_RE = re.compile(
    r"^(?:https://)?(?P<host>[a-zA-Z0-9-]+(?:\.[a-zA-Z0-9-]+)+(?::\d+)?)/(?P<path>.+)$"
)
# 路径中出现 ".git" 段时以它为仓库边界，允许多级 group
_DOT_GIT_RE = re.compile(r"^(?P<user>.+?)/(?P<repo>[^/]+)\.git(?:/(?P<subdir>.*))?$")


def parse(base_dir: str | Path, uri: str) -> Dependency:
    """解析用户给出的包引用，失败抛 ValidationError"""
    if not uri:
        raise ValidationError("包 URI 为空")
    dep = parse_git(uri)
    if dep is not None:
        return dep
    dep = parse_local(base_dir, uri)
    if dep is not None:
        return dep
    raise ValidationError(f"无法解析包 URI `{uri}`")


def parse_git(uri: str) -> Dependency | None:
    split = _split_scheme(uri)
    if split is None:
        return None
    scheme, host, path = split

    path, _, version = path.partition("@")
    source = _source_from_path(scheme, host, path)
    if source is None:
        return None
    return Dependency(source=source, version=version or DEFAULT_GIT_VERSION)


def parse_remote(remote: str, subdir: str = "") -> GitSource:
    """把锁文件中的 remote URL 还原为 GitSource"""
    split = _split_scheme(remote)
    source = _source_from_path(*split) if split is not None else None
    if source is None:
        raise ValidationError(f"无法解析 git remote `{remote}`")
    if subdir:
        source = GitSource(
            scheme=source.scheme, host=source.host,
            user=source.user, repo=source.repo, subdir=subdir.strip("/"),
        )
    return source


def parse_local(base_dir: str | Path, uri: str) -> Dependency | None:
    clean = os.path.normpath(uri)
    if not (Path(base_dir) / clean).is_dir():
        logger.debug("不是本地目录: %s (base=%s)", clean, base_dir)
        return None
    return Dependency(source=LocalSource(directory=clean), version="")


def _split_scheme(uri: str) -> tuple[str, str, str] | None:
    if uri.startswith(GIT_SCHEME_SSH):
        host, _, path = uri[len(GIT_SCHEME_SSH):].partition("/")
        if not host or not path:
            return None
        return GIT_SCHEME_SSH, host, path

    m = _SCP_RE.match(uri)
    if m:
        return GIT_SCHEME_SSH, m.group("host"), m.group("path")

    m = _HTTPS_RE.match(uri)
    if m:
        return GIT_SCHEME_HTTPS, m.group("host"), m.group("path")
    return None


def _source_from_path(scheme: str, host: str, path: str) -> GitSource | None:
    path = path.strip("/")
    m = _DOT_GIT_RE.match(path)
    if m:
        user, repo = m.group("user"), m.group("repo")
        subdir = m.group("subdir") or ""
    else:
        parts = path.split("/")
        if len(parts) < 2:
            return None
        user, repo, subdir = parts[0], parts[1], "/".join(parts[2:])

    if not user or not repo:
        return None
    return GitSource(
        scheme=scheme, host=host, user=user, repo=repo,
        subdir=subdir.strip("/"),
    )
