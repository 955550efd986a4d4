"""
错误定义与序列化

插件子进程中所有可预期的错误都继承自 BridgeError，并带有一个错误类型代码（type），
父进程根据该代码决定如何展示错误。

- get_error(): 按错误类型代码构造错误实例
- warning(): 构造并记录非致命警告
- serialize_error(): 将异常转换为可跨进程传输的字典
"""

import traceback
from typing import Any, Callable, Dict, List, Optional

from plugin_bridge.modules.logging import get_logger

logger = get_logger("Errors")


class BridgeError(Exception):
    """插件桥接层错误基类

    Attributes:
        type: 错误类型代码
        details: 附加细节（通常是底层异常的描述）
    """

    type: str = "PLUGIN_BRIDGE_ERROR"
    is_bridge_error = True

    def __init__(self, message: str, details: Optional[str] = None):
        self.details = details
        super().__init__(message)


class InvalidEventNameError(BridgeError):
    """注册了非法的事件名称"""

    type = "PLUGINS_INVALID_EVENT_NAME_ERROR"

    def __init__(self, required_file: str, event: Any, user_events: List[str], error: Optional[BaseException] = None):
        self.required_file = required_file
        self.event = event
        self.user_events = list(user_events)
        super().__init__(
            f"{required_file} 注册了非法的事件名称: {event!r}\n" f"可用的事件名称: {', '.join(self.user_events)}",
            details=str(error) if error else None,
        )


class DevServerDoubleRegistrationError(BridgeError):
    """同一会话中重复注册 dev-server:start"""

    type = "SETUP_NODE_EVENTS_DO_NOT_SUPPORT_DEV_SERVER"

    def __init__(self, required_file: str):
        self.required_file = required_file
        super().__init__(
            f"{required_file} 中的 setup 函数重复注册了 dev-server:start 事件。\n"
            "每个会话只允许绑定一个 dev server。"
        )


class SetupNodeEventsError(BridgeError):
    """用户的 setup 函数执行失败或未通过校验"""

    type = "CONFIG_FILE_SETUP_NODE_EVENTS_ERROR"

    def __init__(self, required_file: str, testing_type: Optional[str], cause: Optional[BaseException] = None):
        self.required_file = required_file
        self.testing_type = testing_type
        self.cause = cause
        super().__init__(
            f"{required_file} 中 {testing_type} 的 setup 函数执行出错: {cause}",
            details=_format_cause(cause),
        )
        if cause is not None:
            self.__cause__ = cause


class SetupRoutineLoadError(BridgeError):
    """无法从配置文件加载 setup 函数"""

    type = "CONFIG_FILE_REQUIRE_ERROR"

    def __init__(self, required_file: str, cause: Optional[BaseException] = None):
        self.required_file = required_file
        self.cause = cause
        super().__init__(f"加载配置文件失败: {required_file} ({cause})", details=_format_cause(cause))
        if cause is not None:
            self.__cause__ = cause


class MigratedOptionError(BridgeError):
    """访问了已迁移（当前版本不再支持）的配置项

    Attributes:
        key: 出错的配置项路径，例如 "baseUrl" 或 "e2e.integrationFolder"
        call_site: 发生写入 / 校验时的调用栈
    """

    type = "MIGRATED_OPTION_INVALID"

    def __init__(self, key: str, call_site: Optional[str] = None):
        self.key = key
        self.call_site = call_site
        super().__init__(
            f"配置项 {key} 已被迁移，当前版本不再支持在此位置设置。",
            details=call_site,
        )


class BridgeWarning:
    """非致命警告，只记录日志，不中断流程"""

    def __init__(self, type: str, message: str, data: Any = None):
        self.type = type
        self.message = message
        self.data = data

    def __repr__(self) -> str:
        return f"BridgeWarning(type={self.type!r}, message={self.message!r})"


def _format_cause(cause: Optional[BaseException]) -> Optional[str]:
    if cause is None:
        return None
    return "".join(traceback.format_exception(type(cause), cause, cause.__traceback__))


_ERROR_FACTORIES: Dict[str, Callable[..., BridgeError]] = {
    InvalidEventNameError.type: InvalidEventNameError,
    DevServerDoubleRegistrationError.type: DevServerDoubleRegistrationError,
    SetupNodeEventsError.type: SetupNodeEventsError,
    SetupRoutineLoadError.type: SetupRoutineLoadError,
    MigratedOptionError.type: MigratedOptionError,
}

_WARNING_MESSAGES: Dict[str, Callable[..., str]] = {
    "DUPLICATE_TASK_KEY": lambda keys: (
        f"检测到重复的 task 名称: {', '.join(keys)}。后注册的处理器将覆盖先注册的处理器。"
    ),
}


def get_error(kind: str, *args: Any) -> BridgeError:
    """
    按错误类型代码构造错误实例

    Args:
        kind: 错误类型代码（如 "MIGRATED_OPTION_INVALID"）
        *args: 传递给对应错误类的参数

    Raises:
        KeyError: 未知的错误类型代码
    """
    try:
        factory = _ERROR_FACTORIES[kind]
    except KeyError:
        raise KeyError(f"未知的错误类型: {kind}") from None
    return factory(*args)


def warning(kind: str, *args: Any) -> BridgeWarning:
    """构造并记录一条非致命警告"""
    message = _WARNING_MESSAGES[kind](*args)
    logger.warning(message)
    return BridgeWarning(kind, message, data=args[0] if len(args) == 1 else list(args))


def is_bridge_error(err: BaseException) -> bool:
    return bool(getattr(err, "is_bridge_error", False))


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, BaseException):
        return serialize_error(value)
    return repr(value)


def serialize_error(err: BaseException) -> Dict[str, Any]:
    """
    将异常转换为可跨进程传输的字典

    返回的字典包含 name、message、stack，以及异常实例上的公开属性
    （如 type、key、user_events），所有值都是 JSON 安全的。
    """
    serialized: Dict[str, Any] = {
        "name": type(err).__name__,
        "message": str(err),
        "stack": "".join(traceback.format_exception(type(err), err, err.__traceback__)),
    }
    if is_bridge_error(err):
        serialized["type"] = err.type
        serialized["is_bridge_error"] = True

    for attr, value in vars(err).items():
        if attr.startswith("_") or attr in serialized:
            continue
        serialized[attr] = _json_safe(value)

    return serialized
