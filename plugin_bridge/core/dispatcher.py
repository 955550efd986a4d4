"""
Dispatcher - 执行已注册的事件处理器

父进程通过 execute:plugins 消息发送 (event, ids, args)，Dispatcher 按事件类型路由：
- dev-server:start / file:preprocessor / before:browser:launch: 委托给对应执行器
- before:run / before:spec / after:run / after:spec / after:screenshot: 通用的 wrap_child_promise
- task / _get:task:keys / _get:task:body: 本地处理
- 其他: 记录日志后忽略

每次调用相互独立，可以并发执行，结果只通过 invocation_id 关联。
"""

import inspect
from typing import Any, Dict, List, Optional, Sequence

from plugin_bridge.core.executors import Executor, default_executors
from plugin_bridge.core.invocation import (
    UNHANDLED_TASK,
    InvocationIds,
    decode_task_argument,
    wrap_child_promise,
)
from plugin_bridge.modules.events.names import WRAPPED_LIFECYCLE_EVENTS, PluginEvents
from plugin_bridge.modules.events.registry import EventRegistry
from plugin_bridge.modules.logging import get_logger


class Dispatcher:
    """执行命令路由"""

    def __init__(self, channel, registry: EventRegistry, executors: Optional[Dict[str, Executor]] = None):
        """
        初始化 Dispatcher

        Args:
            channel: 父子进程通道
            registry: 本会话的事件注册表
            executors: 替换默认执行器（按事件名称覆盖）
        """
        self.channel = channel
        self.registry = registry
        self.executors: Dict[str, Executor] = default_executors()
        if executors:
            self.executors.update(executors)
        self.logger = get_logger("Dispatcher")

    def invoke(self, event_id: Optional[int], args: Sequence[Any] = ()) -> Any:
        """按注册 ID 调用处理器，返回值可能是可等待对象"""
        registration = self.registry.get(event_id)
        return registration.handler(*args)

    async def execute(self, event: str, ids: Any, args: Optional[Sequence[Any]] = None) -> None:
        """
        执行一条命令

        Args:
            event: 事件名称
            ids: {"eventId": ..., "invocationId": ...}
            args: 传给处理器的参数
        """
        args = list(args or [])
        ids = InvocationIds.coerce(ids)
        self.logger.debug(f"执行插件事件: {event} ({ids.event_id}, {ids.invocation_id})")

        if event in self.executors:
            await self.executors[event](self.channel, self.invoke, ids, args)
        elif event in WRAPPED_LIFECYCLE_EVENTS:
            await wrap_child_promise(self.channel, self.invoke, ids, args)
        elif event == PluginEvents.TASK:
            await self.task_execute(ids, args)
        elif event == PluginEvents.GET_TASK_KEYS:
            await self.task_get_keys(ids)
        elif event == PluginEvents.GET_TASK_BODY:
            await self.task_get_body(ids, args)
        else:
            self.logger.warning(f"收到未知的执行消息: {event} {args}")

    # ==================== task ====================

    async def task_execute(self, ids: Any, args: Sequence[Any]) -> None:
        """执行 task：args[0] 为任务名，args[1] 为参数；未绑定的任务名返回 UNHANDLED_TASK"""
        task = args[0] if len(args) > 0 else None
        arg = decode_task_argument(args[1] if len(args) > 1 else None)

        def invoke(event_id: Optional[int], invoke_args: Sequence[Any] = ()) -> Any:
            handler = self.registry.task_handlers().get(task)
            if callable(handler):
                return handler(*invoke_args)
            self.logger.debug(f"task {task!r} 没有绑定处理器")
            return UNHANDLED_TASK

        await wrap_child_promise(self.channel, invoke, ids, [arg])

    async def task_get_keys(self, ids: Any) -> None:
        def invoke(event_id: Optional[int], invoke_args: Sequence[Any] = ()) -> List[str]:
            return list(self.registry.task_handlers().keys())

        await wrap_child_promise(self.channel, invoke, ids)

    async def task_get_body(self, ids: Any, args: Sequence[Any]) -> None:
        task = args[0] if args else None

        def invoke(event_id: Optional[int], invoke_args: Sequence[Any] = ()) -> str:
            handler = self.registry.task_handlers().get(task)
            if not callable(handler):
                return ""
            try:
                return inspect.getsource(handler)
            except (OSError, TypeError):
                return repr(handler)

        await wrap_child_promise(self.channel, invoke, ids)
