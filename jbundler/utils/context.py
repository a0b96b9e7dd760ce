"""运行上下文 - 超时与取消信号

一次顶层 ensure() 创建一个 Context，沿调用链传给每个 git 子进程和归档下载。
外部超时或中断通过它终止进行中的网络 / 子进程操作。
"""

from __future__ import annotations

import threading
import time

from jbundler.core.exceptions import OperationCancelled


class Context:
    """携带截止时间和取消标志的运行上下文"""

    def __init__(self, timeout: float | None = None) -> None:
        self.deadline: float | None = (
            time.monotonic() + timeout if timeout else None
        )
        self._event = threading.Event()

    def cancel(self) -> None:
        """发出取消信号（可从其他线程调用）"""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        """距截止时间的剩余秒数，无截止时间返回 None"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self, operation: str = "") -> None:
        """已取消或超时则抛 OperationCancelled"""
        if self.cancelled:
            label = f": {operation}" if operation else ""
            raise OperationCancelled(f"操作已取消或超时{label}")


def background() -> Context:
    """无截止时间、不会被取消的默认上下文"""
    return Context()
