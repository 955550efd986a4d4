"""
加载用户配置文件中的 setup 函数
"""

import importlib.util
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable

from plugin_bridge.modules.errors import SetupRoutineLoadError
from plugin_bridge.modules.logging import get_logger

logger = get_logger("SetupLoader")


def load_setup_routine(
    required_file: str, testing_type: str = "e2e", attr: str = "setup_node_events"
) -> Callable[..., Any]:
    """
    从 Python 文件中加载 setup 函数

    查找顺序：
    1. 模块级 config[testing_type][attr]
    2. 模块级函数 attr

    Args:
        required_file: 用户配置文件路径
        testing_type: 测试类型
        attr: setup 函数名称

    Returns:
        setup 函数

    Raises:
        SetupRoutineLoadError: 文件不存在、导入失败或找不到 setup 函数
    """
    path = Path(required_file).resolve()
    if not path.is_file():
        raise SetupRoutineLoadError(required_file, FileNotFoundError(f"文件不存在: {path}"))

    module_name = f"_plugin_bridge_user_config_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise SetupRoutineLoadError(required_file, ImportError(f"无法为 {path} 创建模块说明"))

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        logger.opt(exception=e).error(f"执行配置文件失败: {path}")
        raise SetupRoutineLoadError(required_file, e) from e

    config = getattr(module, "config", None)
    if isinstance(config, Mapping):
        scoped = config.get(testing_type)
        if isinstance(scoped, Mapping) and callable(scoped.get(attr)):
            logger.debug(f"使用 config[{testing_type!r}][{attr!r}] 作为 setup 函数")
            return scoped[attr]

    routine = getattr(module, attr, None)
    if callable(routine):
        logger.debug(f"使用模块函数 {attr} 作为 setup 函数")
        return routine

    raise SetupRoutineLoadError(required_file, AttributeError(f"配置文件中没有找到 {testing_type} 的 {attr}"))
