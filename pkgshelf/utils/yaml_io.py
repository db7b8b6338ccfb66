"""YAML 文件统一读写工具

清单、锁文件、包元数据和配置共用：统一 utf-8、空值保护、原子写入。
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# 防止异常大文件耗尽内存
MAX_YAML_SIZE = 10 * 1024 * 1024


def atomic_write(path: Path, content: str) -> None:
    """原子写入：同目录临时文件写完后 rename，中途崩溃不会留下半个文件"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, str(path))
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def load_yaml(path: str | Path) -> dict[str, Any]:
    """安全读取 YAML 文件

    文件不存在、为空或顶层不是字典时返回空字典。

    异常:
        yaml.YAMLError: YAML 格式错误
        ValueError: 文件超过 MAX_YAML_SIZE
    """
    p = Path(path)
    if not p.exists():
        return {}

    size = p.stat().st_size
    if size > MAX_YAML_SIZE:
        raise ValueError(
            f"YAML 文件过大: {p} ({size} 字节), 超过限制 {MAX_YAML_SIZE} 字节"
        )

    try:
        with open(p, encoding="utf-8") as f:
            result = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("解析 YAML 文件失败: %s, 错误: %s", p, e)
        raise

    if result is None:
        return {}
    if not isinstance(result, dict):
        logger.warning(
            "%s 内容不是字典类型 (实际类型: %s)，返回空字典",
            p, type(result).__name__,
        )
        return {}
    return result


def save_yaml(path: str | Path, data: Any) -> None:
    """原子写入 YAML 文件，保持键顺序"""
    content = yaml.safe_dump(
        data, default_flow_style=False,
        allow_unicode=True, sort_keys=False,
    )
    atomic_write(Path(path), content)
