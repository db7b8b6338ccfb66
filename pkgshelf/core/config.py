"""集中配置管理

支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from pkgshelf.core.exceptions import ConfigError
from pkgshelf.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """全局配置"""

    # 文件
    manifest: str = "shelf.yml"
    lockfile: str = ""  # 为空时取清单同名 .lock 文件

    # 目录
    store_dir: str = "deps/store"
    staging_dir: str = "deps/staging"
    scm_dir: str = "deps/scm"

    # universe 并发拉取的线程上限
    max_workers: int = 8

    # 网络（秒）
    catalog_timeout: int = 30
    download_timeout: int = 300
    download_retries: int = 2

    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigError(f"max_workers 必须 >= 1: {self.max_workers}")
        if self.download_retries < 0:
            raise ConfigError(f"download_retries 不能为负: {self.download_retries}")
        if self.catalog_timeout <= 0 or self.download_timeout <= 0:
            raise ConfigError("超时时间必须为正数")

    @property
    def lockfile_path(self) -> Path:
        if self.lockfile:
            return Path(self.lockfile)
        return Path(self.manifest).with_suffix(".lock")

    @classmethod
    def from_file(cls, path: str = "configs/pkgshelf.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件无效 {path}: {e}") from e
        cfg.extra = extra
        return cfg


# 首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/pkgshelf.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
