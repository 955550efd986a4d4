"""
配置模块

- schemas: 插件子进程配置 Schema
- service: 从 TOML 加载配置
- migration: 已迁移配置项保护
"""

from .migration import ConfigMigrationGuard, ConfigMigrationKey, GuardedConfig, to_plain
from .schemas import BridgeSettings, LoggingSettings
from .service import load_settings

__all__ = [
    "ConfigMigrationGuard",
    "ConfigMigrationKey",
    "GuardedConfig",
    "to_plain",
    "BridgeSettings",
    "LoggingSettings",
    "load_settings",
]
