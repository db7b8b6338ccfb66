"""pkgshelf 日志配置

普通文本与结构化 JSON 两种输出格式，均写到 stderr。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

_TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器，便于 CI 流水线消费"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            # 记录事件发生时间而非格式化时间
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def reset_logging() -> None:
    """清理根日志器上已注册的所有 handlers"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR）
        json_output: 为 True 时输出 JSON（适用于 CI）

    重复调用不会叠加 handler。
    """
    reset_logging()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    root.addHandler(handler)
