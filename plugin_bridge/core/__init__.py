"""
插件桥接核心

- SetupOrchestrator: 运行用户 setup 函数
- Dispatcher: 执行已注册的处理器
- PluginBridge: 把它们连接到父子进程通道
"""

from .channel import LocalChannel, ProtocolChannel
from .dispatcher import Dispatcher
from .invocation import (
    TASK_NO_ARGUMENT,
    UNDEFINED_SERIALIZED,
    UNHANDLED_TASK,
    InvocationIds,
    InvocationOutcome,
    decode_outcome,
    wrap_child_promise,
)
from .run_plugins import PluginBridge
from .setup_orchestrator import SetupOrchestrator, SetupReply

__all__ = [
    "LocalChannel",
    "ProtocolChannel",
    "Dispatcher",
    "TASK_NO_ARGUMENT",
    "UNDEFINED_SERIALIZED",
    "UNHANDLED_TASK",
    "InvocationIds",
    "InvocationOutcome",
    "decode_outcome",
    "wrap_child_promise",
    "PluginBridge",
    "SetupOrchestrator",
    "SetupReply",
]
