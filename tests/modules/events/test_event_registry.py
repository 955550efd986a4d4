"""
EventRegistry 单元测试

测试内容：
- ID 分配（从 0 开始、按调用顺序、不复用）
- task 合并规则
- 非法事件与重复 dev-server 注册的上报

运行: pytest tests/modules/events/test_event_registry.py -v
"""

from unittest.mock import patch

from plugin_bridge.modules.errors import (
    DevServerDoubleRegistrationError,
    InvalidEventNameError,
    SetupNodeEventsError,
)
from plugin_bridge.modules.events.names import PluginEvents
from plugin_bridge.modules.events.registry import EventRegistry, RegistrationProjection


def _handler(*args):
    return None


# =============================================================================
# ID 分配
# =============================================================================


def test_ids_start_at_zero_in_call_order(registry: EventRegistry):
    """测试 ID 从 0 开始并按调用顺序分配"""
    first = registry.register("before:run", _handler)
    second = registry.register("after:run", _handler)
    third = registry.register("after:spec", _handler)

    assert [first.event_id, second.event_id, third.event_id] == [0, 1, 2]
    assert registry.registrations == [
        RegistrationProjection(event="before:run", event_id=0),
        RegistrationProjection(event="after:run", event_id=1),
        RegistrationProjection(event="after:spec", event_id=2),
    ]


def test_reserve_internal_events(registry: EventRegistry):
    """测试内部事件占用最前面的 ID"""
    registry.reserve_internal_events()
    registration = registry.register("before:spec", _handler)

    assert registry.find(PluginEvents.GET_TASK_BODY).event_id == 0
    assert registry.find(PluginEvents.GET_TASK_KEYS).event_id == 1
    assert registration.event_id == 2
    assert registry.get(0).handler() is None


def test_rejected_registration_does_not_consume_id(registry: EventRegistry, reported_errors):
    """测试校验失败的注册不会占用 ID"""
    registry.register("before:run", _handler)
    assert registry.register("not:an:event", _handler) is None
    registration = registry.register("after:run", _handler)

    assert registration.event_id == 1
    assert len(reported_errors) == 1


def test_projection_dumps_with_alias(registry: EventRegistry):
    """测试对外视图按协议字段名序列化"""
    registry.register("before:run", _handler)

    assert registry.registrations[0].model_dump(by_alias=True) == {"event": "before:run", "eventId": 0}


# =============================================================================
# task 合并
# =============================================================================


def test_task_merge_disjoint_keys(registry: EventRegistry):
    """测试两次注册 task（键不重复）得到一条记录，映射为并集"""
    def hello(arg):
        return "hello"

    def bye(arg):
        return "bye"

    first = registry.register("task", {"hello": hello})
    second = registry.register("task", {"bye": bye})

    assert first is second
    assert first.event_id == 0
    assert registry.task_handlers() == {"hello": hello, "bye": bye}
    assert [r.event for r in registry.registrations] == ["task"]


def test_task_merge_does_not_consume_id(registry: EventRegistry):
    """测试 task 合并不会分配新的 ID"""
    registry.register("task", {"a": _handler})
    registry.register("task", {"b": _handler})
    registration = registry.register("before:run", _handler)

    assert registration.event_id == 1


def test_task_merge_duplicate_key_warns_once_and_later_wins(registry: EventRegistry):
    """测试重复的 task 键只产生一次警告，后注册的处理器生效"""
    def first(arg):
        return 1

    def second(arg):
        return 2

    registry.register("task", {"shared": first, "only_first": first})

    with patch("plugin_bridge.modules.events.registry.warning") as mock_warning:
        registry.register("task", {"shared": second})

    mock_warning.assert_called_once_with("DUPLICATE_TASK_KEY", ["shared"])
    assert registry.task_handlers()["shared"] is second
    assert registry.task_handlers()["only_first"] is first


def test_task_merge_keeps_user_mapping_untouched(registry: EventRegistry):
    """测试合并不会修改用户传入的映射"""
    user_tasks = {"a": _handler}
    registry.register("task", user_tasks)
    registry.register("task", {"b": _handler})

    assert user_tasks == {"a": _handler}


def test_task_handlers_empty_without_task(registry: EventRegistry):
    assert registry.task_handlers() == {}


# =============================================================================
# 错误上报
# =============================================================================


def test_invalid_event_name_reported(registry: EventRegistry, reported_errors):
    """测试非法事件名称上报 InvalidEventNameError，并列出可用事件"""
    result = registry.register("before:everything", _handler)

    assert result is None
    assert not registry.has("before:everything")
    assert len(reported_errors) == 1
    err = reported_errors[0]
    assert isinstance(err, InvalidEventNameError)
    assert err.event == "before:everything"
    assert "task" in err.user_events
    assert PluginEvents.GET_TASK_BODY not in err.user_events


def test_invalid_handler_reported_as_setup_error(registry: EventRegistry, reported_errors):
    """测试处理器类型错误上报 SetupNodeEventsError"""
    result = registry.register("before:run", "not callable")

    assert result is None
    assert len(reported_errors) == 1
    err = reported_errors[0]
    assert isinstance(err, SetupNodeEventsError)
    assert err.testing_type == "e2e"


def test_dev_server_double_registration(registry: EventRegistry, reported_errors):
    """测试重复注册 dev-server:start 失败且不替换第一次注册"""
    def first_server(options):
        return {"port": 1}

    def second_server(options):
        return {"port": 2}

    first = registry.register("dev-server:start", first_server)
    second = registry.register("dev-server:start", second_server)

    assert second is None
    assert isinstance(reported_errors[0], DevServerDoubleRegistrationError)
    assert registry.find("dev-server:start") is first
    assert registry.get(first.event_id).handler is first_server
    assert len(registry.registrations) == 1


def test_registration_errors_without_reporter_do_not_raise():
    """测试没有上报回调时只记录日志"""
    registry = EventRegistry("config.py")

    assert registry.register("unknown", _handler) is None
    assert registry.registrations == []


def test_custom_validator_receives_config():
    """测试校验器收到当前配置"""
    seen = []

    def validator(event, handler, config):
        from plugin_bridge.modules.events.validator import EventValidationResult

        seen.append(config)
        return EventValidationResult(is_valid=True)

    config = {"testingType": "component"}
    registry = EventRegistry("config.py", config=config, validator=validator)
    registry.register("anything", _handler)

    assert seen == [config]
    assert registry.has("anything")
