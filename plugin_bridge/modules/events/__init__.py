"""
事件系统

- names: 事件名称与通道消息常量
- validator: 事件注册校验
- registry: 事件注册表
"""

from .names import ChannelMessages, PluginEvents, WRAPPED_LIFECYCLE_EVENTS
from .registry import EventRegistry, Registration, RegistrationProjection
from .validator import EventValidationResult, validate_event

__all__ = [
    "ChannelMessages",
    "PluginEvents",
    "WRAPPED_LIFECYCLE_EVENTS",
    "EventRegistry",
    "Registration",
    "RegistrationProjection",
    "EventValidationResult",
    "validate_event",
]
