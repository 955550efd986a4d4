"""
Dispatcher 单元测试

测试内容：
- 按事件类型路由
- task 执行、任务名列表与任务源码
- 并发调用按完成顺序上报

运行: pytest tests/core/test_dispatcher.py -v
"""

import asyncio

import pytest

from plugin_bridge.core.channel import LocalChannel
from plugin_bridge.core.dispatcher import Dispatcher
from plugin_bridge.core.invocation import (
    TASK_NO_ARGUMENT,
    UNDEFINED_SERIALIZED,
    UNHANDLED_TASK,
    decode_outcome,
)
from plugin_bridge.modules.events.registry import EventRegistry


def _outcome(channel: LocalChannel, invocation_id: str):
    (error, value), = channel.messages(f"promise:fulfilled:{invocation_id}")
    return decode_outcome(invocation_id, error, value)


def greet(name):
    return f"hello {name}"


# =============================================================================
# 生命周期事件
# =============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("event", ["before:run", "before:spec", "after:run", "after:spec", "after:screenshot"])
async def test_lifecycle_events_are_wrapped(dispatcher: Dispatcher, registry: EventRegistry, channel, event):
    """测试生命周期事件按注册 ID 调用处理器并展开参数"""
    calls = []

    def handler(*args):
        calls.append(args)
        return "done"

    registration = registry.register(event, handler)

    await dispatcher.execute(event, {"eventId": registration.event_id, "invocationId": "inv"}, ["spec.py", {"x": 1}])

    assert calls == [("spec.py", {"x": 1})]
    assert channel.messages("promise:fulfilled:inv") == [(None, "done")]


@pytest.mark.asyncio
async def test_handler_returning_none_reports_sentinel(dispatcher: Dispatcher, registry: EventRegistry, channel):
    registration = registry.register("after:run", lambda results: None)

    await dispatcher.execute("after:run", {"eventId": registration.event_id, "invocationId": "1"}, [{}])

    assert channel.messages("promise:fulfilled:1") == [(None, UNDEFINED_SERIALIZED)]
    assert _outcome(channel, "1").value is None


@pytest.mark.asyncio
async def test_failing_handler_does_not_affect_siblings(dispatcher: Dispatcher, registry: EventRegistry, channel):
    """测试单次调用失败只影响自己的结果"""
    def broken(*args):
        raise ValueError("broken handler")

    bad = registry.register("before:spec", broken)
    good = registry.register("after:spec", lambda *args: "ok")

    await asyncio.gather(
        dispatcher.execute("before:spec", {"eventId": bad.event_id, "invocationId": "bad"}, []),
        dispatcher.execute("after:spec", {"eventId": good.event_id, "invocationId": "good"}, []),
    )

    assert _outcome(channel, "bad").error["message"] == "broken handler"
    assert _outcome(channel, "good").value == "ok"
    assert registry.get(bad.event_id).handler is broken


@pytest.mark.asyncio
async def test_concurrent_invocations_report_in_completion_order(
    dispatcher: Dispatcher, registry: EventRegistry, channel
):
    """测试并发调用：B 先完成时先上报 B，两个结果都完整"""
    release_a = asyncio.Event()

    async def slow(*args):
        await release_a.wait()
        return "A"

    async def fast(*args):
        return "B"

    a = registry.register("before:spec", slow)
    b = registry.register("after:spec", fast)

    task_a = asyncio.create_task(dispatcher.execute("before:spec", {"eventId": a.event_id, "invocationId": "A"}, []))
    task_b = asyncio.create_task(dispatcher.execute("after:spec", {"eventId": b.event_id, "invocationId": "B"}, []))
    await task_b
    release_a.set()
    await task_a

    assert [name for name, _ in channel.sent] == ["promise:fulfilled:B", "promise:fulfilled:A"]
    assert _outcome(channel, "A").value == "A"
    assert _outcome(channel, "B").value == "B"


@pytest.mark.asyncio
async def test_unknown_event_is_noop(dispatcher: Dispatcher, channel):
    await dispatcher.execute("after:everything", {"eventId": 0, "invocationId": "x"}, [])

    assert channel.sent == []


@pytest.mark.asyncio
async def test_custom_executor_receives_invoke(channel, registry: EventRegistry):
    """测试委托执行器收到 (channel, invoke, ids, args)"""
    received = []

    async def executor(exec_channel, invoke, ids, args):
        received.append((exec_channel, ids.event_id, args))
        exec_channel.send("custom", invoke(ids.event_id, args))

    registration = registry.register("dev-server:start", lambda options: {"port": options["port"]})
    dispatcher = Dispatcher(channel, registry, executors={"dev-server:start": executor})

    await dispatcher.execute("dev-server:start", {"eventId": registration.event_id, "invocationId": "1"}, [{"port": 8}])

    assert received == [(channel, registration.event_id, [{"port": 8}])]
    assert channel.messages("custom") == [({"port": 8},)]


# =============================================================================
# task
# =============================================================================


@pytest.mark.asyncio
async def test_task_execute_calls_named_task(dispatcher: Dispatcher, registry: EventRegistry, channel):
    registration = registry.register("task", {"greet": greet})

    await dispatcher.execute("task", {"eventId": registration.event_id, "invocationId": "t1"}, ["greet", "world"])

    assert _outcome(channel, "t1").value == "hello world"


@pytest.mark.asyncio
async def test_task_no_argument_sentinel_decoded(dispatcher: Dispatcher, registry: EventRegistry, channel):
    """测试 TASK_NO_ARGUMENT 在调用前还原为 None"""
    received = []
    registration = registry.register("task", {"record": lambda arg: received.append(arg) or "recorded"})

    await dispatcher.execute(
        "task", {"eventId": registration.event_id, "invocationId": "t2"}, ["record", TASK_NO_ARGUMENT]
    )
    await dispatcher.execute(
        "task", {"eventId": registration.event_id, "invocationId": "t3"}, ["record", {TASK_NO_ARGUMENT: True}]
    )

    assert received == [None, None]


@pytest.mark.asyncio
async def test_unhandled_task_resolves_to_marker(dispatcher: Dispatcher, registry: EventRegistry, channel):
    """测试未绑定的任务名返回 UNHANDLED_TASK（不是错误）"""
    registration = registry.register("task", {"greet": greet})

    await dispatcher.execute("task", {"eventId": registration.event_id, "invocationId": "t4"}, ["missing", None])

    outcome = _outcome(channel, "t4")
    assert outcome.ok
    assert outcome.value == UNHANDLED_TASK


@pytest.mark.asyncio
async def test_async_task_is_awaited(dispatcher: Dispatcher, registry: EventRegistry, channel):
    async def fetch(arg):
        await asyncio.sleep(0)
        return {"fetched": arg}

    registration = registry.register("task", {"fetch": fetch})

    await dispatcher.execute("task", {"eventId": registration.event_id, "invocationId": "t5"}, ["fetch", 7])

    assert _outcome(channel, "t5").value == {"fetched": 7}


@pytest.mark.asyncio
async def test_task_get_keys(dispatcher: Dispatcher, registry: EventRegistry, channel):
    registry.reserve_internal_events()
    registry.register("task", {"b": greet, "a": greet})
    registry.register("task", {"c": greet})
    keys_id = registry.find("_get:task:keys").event_id

    await dispatcher.execute("_get:task:keys", {"eventId": keys_id, "invocationId": "k"}, [])

    assert _outcome(channel, "k").value == ["b", "a", "c"]


@pytest.mark.asyncio
async def test_task_get_body(dispatcher: Dispatcher, registry: EventRegistry, channel):
    """测试获取任务源码；未绑定的任务返回空字符串"""
    registry.reserve_internal_events()
    registry.register("task", {"greet": greet})
    body_id = registry.find("_get:task:body").event_id

    await dispatcher.execute("_get:task:body", {"eventId": body_id, "invocationId": "b1"}, ["greet"])
    await dispatcher.execute("_get:task:body", {"eventId": body_id, "invocationId": "b2"}, ["missing"])

    assert "def greet(name):" in _outcome(channel, "b1").value
    assert _outcome(channel, "b2").value == ""
