"""
父子进程通道

ProtocolChannel 描述插件子进程与父进程之间的双工消息通道：
- send(message, *args): 向父进程发送一条具名消息
- on(message, handler): 订阅父进程发来的具名消息

真正的进程间传输（分帧、序列化）不在本包范围内。LocalChannel 是进程内实现，
用于测试以及在同一进程内嵌入桥接层的场景。
"""

import asyncio
import inspect
from collections import defaultdict
from typing import Any, Callable, Dict, List, Protocol, Tuple

from plugin_bridge.modules.logging import get_logger


class ProtocolChannel(Protocol):
    """双工消息通道协议"""

    def send(self, message: str, *args: Any) -> None: ...

    def on(self, message: str, handler: Callable[..., Any]) -> None: ...


class LocalChannel:
    """
    进程内通道

    - 发送的消息按顺序记录在 sent 中，也可以通过 on_sent 订阅
    - receive() 模拟父进程发来的消息；协程处理器在后台任务中执行
    - 单个处理器异常不影响其他处理器
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable[..., Any]]] = defaultdict(list)
        self._sent_listeners: Dict[str, List[Callable[..., Any]]] = defaultdict(list)
        self._background_tasks: set = set()
        self.sent: List[Tuple[str, Tuple[Any, ...]]] = []
        self.logger = get_logger("LocalChannel")

    # ==================== 子进程 -> 父进程 ====================

    def send(self, message: str, *args: Any) -> None:
        self.sent.append((message, args))
        self.logger.debug(f"发送消息: {message}")
        for listener in list(self._sent_listeners.get(message, [])):
            listener(*args)

    def on_sent(self, message: str, listener: Callable[..., Any]) -> None:
        """订阅子进程发出的消息（父进程一侧）"""
        self._sent_listeners[message].append(listener)

    def messages(self, message: str) -> List[Tuple[Any, ...]]:
        """获取某个消息名称的所有已发送参数"""
        return [args for name, args in self.sent if name == message]

    # ==================== 父进程 -> 子进程 ====================

    def on(self, message: str, handler: Callable[..., Any]) -> None:
        self._handlers[message].append(handler)
        self.logger.debug(f"注册消息处理器: {message}")

    def off(self, message: str, handler: Callable[..., Any]) -> None:
        handlers = self._handlers.get(message, [])
        if handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self._handlers[message]

    def receive(self, message: str, *args: Any) -> None:
        """
        投递一条父进程消息

        必须在事件循环中调用（协程处理器会以后台任务的方式执行）。
        """
        handlers = self._handlers.get(message, [])
        if not handlers:
            self.logger.debug(f"消息 {message} 没有处理器")
            return

        for handler in list(handlers):
            try:
                result = handler(*args)
            except Exception as e:
                self.logger.opt(exception=e).error(f"消息处理器执行错误 (消息: {message}): {e}")
                continue

            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._background_tasks.add(task)
                task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Future) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.opt(exception=exc).error(f"后台消息处理失败: {exc}")

    async def drain(self) -> None:
        """等待所有后台处理完成"""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def listener_count(self, message: str) -> int:
        return len(self._handlers.get(message, []))
