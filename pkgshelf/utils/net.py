"""网络工具 — URL 安全校验与 HTTP 读取"""

from __future__ import annotations

import shutil
import urllib.request
from pathlib import Path
from urllib.parse import urlparse

from pkgshelf.core.exceptions import ValidationError

_ALLOWED_SCHEMES = frozenset(("http", "https"))


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


def http_get(url: str, *, timeout: float, context: str = "") -> bytes:
    """GET 请求并返回响应体

    Raises:
        ValidationError: URL 协议不允许
        urllib.error.URLError / OSError: 传输失败（由调用方按领域转换）
    """
    validate_url_scheme(url, context=context)
    req = urllib.request.Request(url, headers={"Accept": "application/json"})
    with urllib.request.urlopen(req, timeout=timeout) as resp:  # nosec B310
        return resp.read()


def download_to(url: str, dest: Path, *, timeout: float, context: str = "") -> Path:
    """流式下载到 dest，失败时删除残留文件"""
    validate_url_scheme(url, context=context)
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp, \
                open(dest, "wb") as f:  # nosec B310
            shutil.copyfileobj(resp, f)
    except BaseException:
        dest.unlink(missing_ok=True)
        raise
    return dest
