"""pkgshelf - 版本化包的安装编排器"""

__version__ = "0.3.0"
