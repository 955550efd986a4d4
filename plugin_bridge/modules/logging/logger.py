"""日志配置模块。

此模块提供延迟初始化的日志配置，避免在导入时添加处理器。
子进程启动时应调用 configure_from_config() 进行配置。
"""

import os
import sys
import time

from loguru import logger as loguru_logger

# 模块级状态变量
_CONFIGURED = False  # 追踪 configure_from_config() 是否已被调用
_HANDLER_IDS: list[int] = []  # 追踪处理器 ID 以便清理
_DEFAULT_HANDLER_ID: int | None = None  # 追踪默认处理器

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[pid]}</cyan> | <cyan>{extra[module]}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[pid]} | {extra[module]} - {message}"


def _ensure_default_handler():
    """确保默认 stderr 处理器存在（延迟初始化）。

    若 configure_from_config() 尚未被调用，则创建一个默认的 stderr 处理器。
    这确保了在配置前调用 get_logger() 仍然能正常工作。
    """
    global _DEFAULT_HANDLER_ID
    if _DEFAULT_HANDLER_ID is None and not _CONFIGURED:
        loguru_logger.remove()
        _DEFAULT_HANDLER_ID = loguru_logger.add(
            sys.stderr,
            level="INFO",
            colorize=True,
            format=_CONSOLE_FORMAT,
        )
    return _DEFAULT_HANDLER_ID


def _build_module_filter(filter_config):
    """根据 filter 配置构建模块过滤器，WARNING 及以上级别总是显示"""
    if not filter_config:
        return None
    if callable(filter_config):
        return filter_config

    filter_modules = set(filter_config)
    warning_no = loguru_logger.level("WARNING").no

    def module_filter(record):
        module = record["extra"].get("module", "unknown")
        return module in filter_modules or record["level"].no >= warning_no

    return module_filter


def configure_from_config(config_dict: dict | None = None) -> None:
    """从配置字典配置日志。

    此函数应在子进程启动时调用一次。
    调用此函数后，get_logger() 将使用配置的处理器。

    Args:
        config_dict: 日志配置字典，包含以下键：
            - enabled: bool - 启用文件日志（默认：False）
            - directory: str - 日志目录路径（默认："logs"）
            - level: str - 文件日志级别（默认："DEBUG"）
            - rotation: str - 文件轮转触发条件（默认："10 MB"）
            - retention: str - 日志保留时间（默认："7 days"）
            - split_by_session: bool - 是否按会话分割日志文件（默认：False）
            - console_level: str - 控制台日志级别（默认："INFO"）
            - filter: list[str] - 模块过滤器列表（仅显示这些模块的日志）
    """
    global _CONFIGURED, _DEFAULT_HANDLER_ID

    _CONFIGURED = True
    config_dict = config_dict or {}

    enabled = config_dict.get("enabled", False)
    directory = config_dict.get("directory", "logs")
    level = config_dict.get("level", "DEBUG")
    rotation = config_dict.get("rotation", "10 MB")
    retention = config_dict.get("retention", "7 days")
    split_by_session = config_dict.get("split_by_session", False)
    console_level = config_dict.get("console_level", "INFO")

    # 完全移除已有处理器（包括 loguru 自带的默认处理器）以避免日志重复
    loguru_logger.remove()
    _DEFAULT_HANDLER_ID = None
    _HANDLER_IDS.clear()

    stderr_handler_id = loguru_logger.add(
        sys.stderr,
        level=console_level,
        colorize=True,
        format=_CONSOLE_FORMAT,
        filter=_build_module_filter(config_dict.get("filter")),
    )
    _HANDLER_IDS.append(stderr_handler_id)

    if not enabled:
        return

    if not os.path.exists(directory):
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            loguru_logger.bind(module="Logging", pid=os.getpid()).warning(
                f"无法创建日志目录 {directory}，将仅使用控制台输出: {e}"
            )
            return

    if split_by_session:
        # 按会话分割：每个子进程生成新文件
        file_path = os.path.join(directory, f"plugin_bridge_{time.strftime('%Y%m%d_%H%M%S')}_{os.getpid()}.log")
    else:
        file_path = os.path.join(directory, "plugin_bridge_{time}.log")

    file_handler_id = loguru_logger.add(
        file_path,
        level=level,
        format=_FILE_FORMAT,
        rotation=rotation,
        retention=retention,
        encoding="utf-8",
    )
    _HANDLER_IDS.append(file_handler_id)


def reset_logging() -> None:
    """移除所有已配置的处理器，恢复到未配置状态（主要用于测试）"""
    global _CONFIGURED, _DEFAULT_HANDLER_ID
    loguru_logger.remove()
    _HANDLER_IDS.clear()
    _DEFAULT_HANDLER_ID = None
    _CONFIGURED = False


def get_logger(module_name: str):
    """获取绑定了模块名的 logger 实例。

    若尚未调用 configure_from_config()，则会自动创建一个默认的 stderr 处理器。
    每条日志附带当前进程号，便于区分多个插件子进程的输出。

    Args:
        module_name: 模块名称，用于标识日志来源

    Returns:
        绑定了模块名的 loguru logger 实例
    """
    _ensure_default_handler()
    return loguru_logger.bind(module=module_name, pid=os.getpid())


__all__ = ["get_logger", "configure_from_config", "reset_logging"]
