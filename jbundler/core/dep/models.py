"""依赖包数据模型

数据类:
- GitSource / LocalSource: 两种来源（封闭联合类型 Source）
- Dependency: 单个依赖声明 / 锁记录
- OrderedDeps: 保持插入顺序的 name -> Dependency 映射
- JsonnetFile: 清单与锁文件共用的结构
"""

from __future__ import annotations

import os
import posixpath
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Union

GIT_SCHEME_HTTPS = "https://"
GIT_SCHEME_SSH = "ssh://git@"


@dataclass(frozen=True)
class GitSource:
    """git 远程仓库来源"""

    scheme: str
    host: str
    user: str
    repo: str
    subdir: str = ""

    def remote(self) -> str:
        return f"{self.scheme}{self.host}/{self.user}/{self.repo}.git"

    def name(self) -> str:
        parts = [self.host, self.user, self.repo]
        if self.subdir:
            parts.append(self.subdir.strip("/"))
        return posixpath.join(*parts)

    def legacy_name(self) -> str:
        path = posixpath.join(self.repo, self.subdir).rstrip("/")
        return posixpath.basename(path)


@dataclass(frozen=True)
class LocalSource:
    """本地目录来源，directory 为相对引用它的清单所在目录的路径"""

    directory: str

    def name(self) -> str:
        return os.path.basename(os.path.normpath(self.directory))

    def legacy_name(self) -> str:
        return self.name()


Source = Union[GitSource, LocalSource]


@dataclass
class Dependency:
    """单个依赖包

    name() 只由 source 推导，同一逻辑包无论如何声明都落到同一 vendor 路径。
    """

    source: Source
    version: str = ""
    sum: str = ""
    legacy_name_compat: str = ""
    single: bool = False

    def name(self) -> str:
        return self.source.name()

    def legacy_name(self) -> str:
        if self.legacy_name_compat:
            return self.legacy_name_compat
        return self.source.legacy_name()

    @property
    def is_local(self) -> bool:
        return isinstance(self.source, LocalSource)


class OrderedDeps:
    """保持插入顺序的依赖映射

    序列化顺序即插入顺序（不按字母排序），让锁文件 diff 最小；
    重复 set 同名依赖原地覆盖，不改变已有顺序。
    """

    def __init__(self, deps: list[Dependency] | None = None) -> None:
        self._items: dict[str, Dependency] = {}
        for d in deps or []:
            self.set(d.name(), d)

    def get(self, name: str) -> Dependency | None:
        return self._items.get(name)

    def set(self, name: str, dep: Dependency) -> None:
        self._items[name] = dep

    def delete(self, name: str) -> None:
        self._items.pop(name, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def values(self) -> list[Dependency]:
        return list(self._items.values())

    def copy(self) -> OrderedDeps:
        return OrderedDeps(list(self._items.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Dependency]:
        return iter(list(self._items.values()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OrderedDeps):
            return NotImplemented
        return list(self._items.items()) == list(other._items.items())

    def __repr__(self) -> str:
        return f"OrderedDeps({self.keys()!r})"


@dataclass
class JsonnetFile:
    """清单 (jsonnetfile.json) 与锁文件 (jsonnetfile.lock.json) 的内存表示"""

    dependencies: OrderedDeps = field(default_factory=OrderedDeps)
    legacy_imports: bool = True
