"""
事件注册校验

在用户 setup 函数调用 on(event, handler) 时校验事件名称与处理器类型。
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from plugin_bridge.modules.events.names import PluginEvents


@dataclass
class EventValidationResult:
    """
    事件校验结果

    Attributes:
        is_valid: 是否通过校验
        user_events: 事件名称非法时，列出用户可注册的事件名称
        error: 未通过校验的原因
    """

    is_valid: bool
    user_events: Optional[List[str]] = None
    error: Optional[Exception] = None


def _is_function(event: str, handler: Any) -> Optional[str]:
    if callable(handler):
        return None
    return f"事件 {event} 的处理器必须是可调用对象，收到: {type(handler).__name__}"


def _is_task_mapping(event: str, handler: Any) -> Optional[str]:
    if not isinstance(handler, Mapping):
        return f"事件 {event} 的处理器必须是 任务名 -> 可调用对象 的映射，收到: {type(handler).__name__}"
    for key, value in handler.items():
        if not isinstance(key, str):
            return f"事件 {event} 的任务名必须是字符串，收到: {key!r}"
        if not callable(value):
            return f"任务 {key} 的处理器必须是可调用对象，收到: {type(value).__name__}"
    return None


_EVENT_VALIDATORS: Dict[str, Callable[[str, Any], Optional[str]]] = {
    PluginEvents.AFTER_RUN: _is_function,
    PluginEvents.AFTER_SCREENSHOT: _is_function,
    PluginEvents.AFTER_SPEC: _is_function,
    PluginEvents.BEFORE_BROWSER_LAUNCH: _is_function,
    PluginEvents.BEFORE_RUN: _is_function,
    PluginEvents.BEFORE_SPEC: _is_function,
    PluginEvents.DEV_SERVER_START: _is_function,
    PluginEvents.FILE_PREPROCESSOR: _is_function,
    PluginEvents.TASK: _is_task_mapping,
    PluginEvents.GET_TASK_BODY: _is_function,
    PluginEvents.GET_TASK_KEYS: _is_function,
}


def validate_event(event: Any, handler: Any, config: Optional[Mapping] = None) -> EventValidationResult:
    """
    校验一次事件注册

    Args:
        event: 事件名称
        handler: 事件处理器（task 事件为映射）
        config: 当前配置（保留给需要按配置校验的事件使用）

    Returns:
        EventValidationResult: 事件名未知时带有 user_events；处理器类型错误时只带有 error
    """
    validator = _EVENT_VALIDATORS.get(event) if isinstance(event, str) else None
    if validator is None:
        return EventValidationResult(
            is_valid=False,
            user_events=list(PluginEvents.get_user_events()),
            error=ValueError(f"注册了非法的事件名称: {event!r}"),
        )

    reason = validator(event, handler)
    if reason is not None:
        return EventValidationResult(is_valid=False, error=TypeError(reason))

    return EventValidationResult(is_valid=True)
