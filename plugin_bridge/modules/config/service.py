"""
配置加载

从 TOML 文件加载插件子进程配置，并用 BridgeSettings 校验。
"""

import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from plugin_bridge.modules.config.schemas import BridgeSettings
from plugin_bridge.modules.logging import get_logger

logger = get_logger("ConfigService")


def read_toml(path: str | Path) -> Dict[str, Any]:
    """读取 TOML 文件（不保留注释）"""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_settings(path: Optional[str | Path] = None, **overrides: Any) -> BridgeSettings:
    """
    加载插件子进程配置

    配置文件可以把字段写在顶层，也可以写在 [bridge] 表中。

    Args:
        path: TOML 配置文件路径；为 None 或文件不存在时使用默认值
        **overrides: 覆盖文件中的字段（值为 None 的字段会被忽略）

    Returns:
        BridgeSettings: 校验后的配置

    Raises:
        tomllib.TOMLDecodeError: 配置文件格式错误
        ValidationError: 配置内容不符合 Schema
    """
    data: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            raw = read_toml(config_path)
            data = dict(raw.get("bridge", raw))
            logger.debug(f"已加载配置文件: {config_path}")
        else:
            logger.warning(f"配置文件不存在，使用默认配置: {config_path}")

    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return BridgeSettings.model_validate(data)
    except ValidationError as e:
        logger.error(f"配置校验失败: {e}")
        raise
