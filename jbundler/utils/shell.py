"""Shell 命令执行工具 - 统一子进程调用

通过 CommandExecutor 协议抽象子进程执行，方便测试替换。
所有调用都接收 Context，取消或超时时终止子进程，不留孤儿进程。
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from jbundler.core.exceptions import ExecutionError, OperationCancelled
from jbundler.utils.context import Context

logger = logging.getLogger(__name__)

# 轮询子进程状态的间隔（秒），决定取消信号的响应延迟
_POLL_INTERVAL = 0.2


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议 - 抽象子进程调用

    测试时可注入 mock 实现，无需 patch subprocess。
    capture=False 时输出直接透传到终端，返回结果的 stdout/stderr 为空。
    """

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        ctx: Context | None = None,
        capture: bool = True,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


# =========================================================================
# 默认实现: 本地子进程执行器
# =========================================================================

class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        ctx: Context | None = None,
        capture: bool = True,
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
        if ctx is not None:
            ctx.check(" ".join(args))

        stream = subprocess.PIPE if capture else None
        proc = subprocess.Popen(
            args, cwd=cwd, env=env, text=True,
            stdin=subprocess.DEVNULL, stdout=stream, stderr=stream,
        )
        try:
            while True:
                try:
                    out, err = proc.communicate(timeout=_POLL_INTERVAL)
                    break
                except subprocess.TimeoutExpired:
                    if ctx is not None and ctx.cancelled:
                        proc.kill()
                        proc.communicate()
                        raise OperationCancelled(
                            f"操作已取消或超时: {' '.join(args)}",
                        ) from None
        except BaseException:
            # KeyboardInterrupt 等同样需要终止子进程
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            raise

        return CommandResult(
            returncode=proc.returncode,
            stdout=out or "",
            stderr=err or "",
        )


# =========================================================================
# 全局默认执行器（可替换）
# =========================================================================

_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    """获取全局默认命令执行器"""
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认命令执行器（用于测试）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor


# =========================================================================
# git 便捷函数
# =========================================================================

def run_git(
    args: list[str], *, cwd: str | Path = ".",
    ctx: Context | None = None,
    executor: CommandExecutor | None = None,
    quiet: bool = True,
) -> str:
    """执行 git 命令，失败抛 ExecutionError，返回去除首尾空白的 stdout

    Args:
        args: git 子命令及参数
        cwd: 工作目录
        ctx: 运行上下文（取消 / 超时）
        executor: 命令执行器，不传则使用全局默认
        quiet: False 时输出透传到终端（不捕获 stdout）
    """
    cmd = ["git", *args]
    logger.debug("  git: %s (cwd=%s)", " ".join(args), cwd)
    r = (executor or get_executor()).execute(
        cmd, cwd=str(cwd), ctx=ctx, capture=quiet,
    )
    if not r.success:
        raise ExecutionError(
            f"git {args[0]} 失败 (rc={r.returncode}): {r.stderr.strip()[:500]}"
        )
    return r.stdout.strip()
