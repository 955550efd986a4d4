"""
调用结果的序列化约定

父子进程通道会把 None 与"未返回值"混为一谈，因此约定了几个固定的哨兵字符串：
- UNDEFINED_SERIALIZED: 处理器没有返回值（返回 None）
- TASK_NO_ARGUMENT: 调用 task 时没有传参数
- UNHANDLED_TASK: task 名称没有绑定处理器（这是一个正常的返回值，不是错误）

所有委托执行最终都通过 wrap_child_promise() 上报结果，结果消息名称中带有调用方提供的
invocation_id，不同调用之间的完成顺序没有任何保证。
"""

import inspect
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from plugin_bridge.modules.errors import serialize_error
from plugin_bridge.modules.events.names import ChannelMessages
from plugin_bridge.modules.logging import get_logger

logger = get_logger("Invocation")

UNDEFINED_SERIALIZED = "__plugin_bridge_undefined__"
TASK_NO_ARGUMENT = "__plugin_bridge_task_no_argument__"
UNHANDLED_TASK = "__plugin_bridge_unhandled__"

# invoke(event_id, args) -> 值或可等待对象
Invoke = Callable[[Optional[int], Sequence[Any]], Any]


class InvocationIds(BaseModel):
    """
    执行命令携带的 ID

    Attributes:
        event_id: 注册 ID
        invocation_id: 调用方提供的调用 ID，用于关联请求与结果
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True, coerce_numbers_to_str=True)

    event_id: Optional[int] = Field(default=None, alias="eventId")
    invocation_id: Optional[str] = Field(default=None, alias="invocationId")

    @classmethod
    def coerce(cls, ids: Any) -> "InvocationIds":
        """接受 InvocationIds、字典（别名或字段名均可）或 None"""
        if isinstance(ids, cls):
            return ids
        return cls.model_validate(ids or {})


class InvocationOutcome(BaseModel):
    """接收方解码后的调用结果"""

    invocation_id: str
    error: Optional[Dict[str, Any]] = None
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None


def encode_value(value: Any) -> Any:
    return UNDEFINED_SERIALIZED if value is None else value


def decode_value(value: Any) -> Any:
    """把 UNDEFINED_SERIALIZED 还原为 None"""
    if isinstance(value, str) and value == UNDEFINED_SERIALIZED:
        return None
    return value


def decode_task_argument(arg: Any) -> Any:
    """把 TASK_NO_ARGUMENT（字符串或 {TASK_NO_ARGUMENT: True} 形式）还原为 None"""
    if isinstance(arg, str) and arg == TASK_NO_ARGUMENT:
        return None
    if isinstance(arg, Mapping) and arg.get(TASK_NO_ARGUMENT):
        return None
    return arg


def is_unhandled_task(value: Any) -> bool:
    return isinstance(value, str) and value == UNHANDLED_TASK


def decode_outcome(invocation_id: str, error: Optional[Dict[str, Any]] = None, value: Any = None) -> InvocationOutcome:
    """父进程一侧：把 promise:fulfilled 消息的参数解码为 InvocationOutcome"""
    if error is not None:
        return InvocationOutcome(invocation_id=invocation_id, error=error, value=None)
    return InvocationOutcome(invocation_id=invocation_id, value=decode_value(value))


async def call_handler(handler: Callable[..., Any], args: Sequence[Any]) -> Any:
    """调用处理器；同步与异步处理器都支持"""
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def wrap_child_promise(channel, invoke: Invoke, ids: Any, args: Sequence[Any] = ()) -> None:
    """
    执行一次调用并上报结果

    成功时发送 (None, value)，value 为 None 时替换为 UNDEFINED_SERIALIZED；
    失败时发送 (serialized_error, None)。异常不会向外传播。

    Args:
        channel: 父子进程通道
        invoke: 调用函数
        ids: 执行命令携带的 ID
        args: 传给处理器的参数列表
    """
    ids = InvocationIds.coerce(ids)
    message = ChannelMessages.promise_fulfilled(ids.invocation_id)

    try:
        value = invoke(ids.event_id, list(args))
        if inspect.isawaitable(value):
            value = await value
    except Exception as err:
        logger.debug(f"调用 {ids.invocation_id} 失败 (事件 ID: {ids.event_id}): {err}")
        channel.send(message, serialize_error(err), None)
        return

    channel.send(message, None, encode_value(value))
