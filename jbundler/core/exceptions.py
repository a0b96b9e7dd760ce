"""统一异常体系

所有业务异常继承 JBError，替代散落的 ValueError / RuntimeError。
CLI 层据此输出友好提示并以非零状态退出。
"""

from __future__ import annotations


class JBError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(JBError):
    """清单 / 锁文件 / 配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(JBError):
    """输入数据校验失败（包 URI、来源字段、ref 等）"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class DependencyError(JBError):
    """依赖包拉取或安装失败"""

    code = "DEPENDENCY_ERROR"


class ExecutionError(JBError):
    """外部命令（git 等）执行失败"""

    code = "EXECUTION_ERROR"


class IntegrityError(JBError):
    """重新拉取后的校验和与锁文件记录不一致"""

    code = "INTEGRITY_ERROR"

    def __init__(self, name: str, expected: str, actual: str) -> None:
        super().__init__(
            f"校验和不匹配 {name}: 期望 {expected}, 实际 {actual}",
        )
        self.name = name
        self.expected = expected
        self.actual = actual


class OperationCancelled(JBError):
    """运行上下文被取消或已超时"""

    code = "CANCELLED"
