"""网络工具 - URL 安全校验与文件下载"""

from __future__ import annotations

import logging
import urllib.error
import urllib.request
from pathlib import Path
from urllib.parse import urlparse

from jbundler.core.exceptions import (
    DependencyError,
    OperationCancelled,
    ValidationError,
)
from jbundler.utils.context import Context

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = frozenset(("http", "https"))

DEFAULT_TIMEOUT = 60.0

_CHUNK_SIZE = 64 * 1024


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https，防止 file:// 等非预期协议访问

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )


def download_file(
    url: str, dest: Path, *,
    timeout: float | None = None,
    ctx: Context | None = None,
) -> None:
    """下载 url 到 dest，非 200 状态或网络错误抛 DependencyError

    timeout 只约束单次读取；整体截止时间与取消由 ctx 控制，每读一块检查一次，
    取消时删除不完整的 dest 并抛 OperationCancelled。
    """
    validate_url_scheme(url, context="download")
    try:
        with urllib.request.urlopen(  # nosec B310
            url, timeout=timeout or DEFAULT_TIMEOUT,
        ) as resp:
            status = resp.status
            logger.info("GET %s %d", url, status)
            if status != 200:
                raise DependencyError(f"下载失败: {url} - 非预期状态码 {status}")
            with open(dest, "wb") as f:
                while True:
                    if ctx is not None:
                        ctx.check(f"download {url}")
                    chunk = resp.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    f.write(chunk)
    except OperationCancelled:
        dest.unlink(missing_ok=True)
        raise
    except (urllib.error.HTTPError, urllib.error.URLError, OSError) as e:
        dest.unlink(missing_ok=True)
        raise DependencyError(f"下载失败: {url} - {e}") from e
