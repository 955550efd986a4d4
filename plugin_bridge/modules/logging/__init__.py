"""
plugin_bridge 日志模块

提供日志记录功能。
"""

from .logger import configure_from_config, get_logger, reset_logging

__all__ = [
    "configure_from_config",
    "get_logger",
    "reset_logging",
]
