"""
事件注册表

记录用户 setup 函数通过 on(event, handler) 注册的事件处理器，并为每次注册分配
稳定的整数 ID。注册表实例按会话创建，不存在跨会话共享的全局状态。

特殊规则：
- task 事件只保留一条注册记录，后续注册的任务映射会合并到已有映射中
- dev-server:start 每个会话只允许注册一次
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from plugin_bridge.modules.errors import BridgeError, get_error, warning
from plugin_bridge.modules.events.names import PluginEvents
from plugin_bridge.modules.events.validator import EventValidationResult, validate_event
from plugin_bridge.modules.logging import get_logger

EventValidator = Callable[[Any, Any, Optional[Mapping]], EventValidationResult]


class RegistrationProjection(BaseModel):
    """注册记录的对外视图（不包含处理器，处理器无法跨进程传输）"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    event: str = Field(description="事件名称")
    event_id: int = Field(alias="eventId", description="注册 ID")


@dataclass
class Registration:
    """
    一次事件注册

    Attributes:
        event_id: 注册 ID（从 0 开始单调递增，不会复用）
        event: 事件名称
        handler: 处理器；task 事件为 任务名 -> 可调用对象 的映射
    """

    event_id: int
    event: str
    handler: Any

    def projection(self) -> RegistrationProjection:
        return RegistrationProjection(event=self.event, event_id=self.event_id)


def _noop(*args: Any) -> None:
    return None


class EventRegistry:
    """
    事件注册表

    校验失败只会中止当前这一次注册，错误通过 on_error 回调立即上报，
    不会向 setup 函数抛出异常。
    """

    def __init__(
        self,
        required_file: str,
        config: Optional[Mapping] = None,
        validator: EventValidator = validate_event,
        on_error: Optional[Callable[[BridgeError], None]] = None,
    ):
        """
        初始化事件注册表

        Args:
            required_file: 用户配置文件路径（用于错误信息）
            config: 当前配置，传给校验器作为上下文
            validator: 事件校验器
            on_error: 注册失败时的上报回调
        """
        self.required_file = required_file
        self.config = config
        self._validator = validator
        self._on_error = on_error
        self._event_id_count = 0
        self._registered_by_id: Dict[int, Registration] = {}
        self._registered_by_name: Dict[str, int] = {}
        self._registrations: List[RegistrationProjection] = []
        self.logger = get_logger("EventRegistry")

    # ==================== 注册 API ====================

    def reserve_internal_events(self) -> None:
        """预先注册父子进程通信使用的内部事件（占位处理器，实际行为由 Dispatcher 实现）"""
        self.register(PluginEvents.GET_TASK_BODY, _noop)
        self.register(PluginEvents.GET_TASK_KEYS, _noop)

    def register(self, event: str, handler: Any) -> Optional[Registration]:
        """
        注册事件处理器（即传给用户 setup 函数的 on 回调）

        Args:
            event: 事件名称
            handler: 事件处理器

        Returns:
            注册记录；校验失败或 task 合并时返回已有记录或 None
        """
        result = self._validator(event, handler, self.config)
        if not result.is_valid:
            if result.user_events:
                err = get_error(
                    "PLUGINS_INVALID_EVENT_NAME_ERROR", self.required_file, event, result.user_events, result.error
                )
            else:
                testing_type = self.config.get("testingType") if self.config is not None else None
                err = get_error("CONFIG_FILE_SETUP_NODE_EVENTS_ERROR", self.required_file, testing_type, result.error)
            self._report(err)
            return None

        if event == PluginEvents.DEV_SERVER_START and event in self._registered_by_name:
            self._report(get_error("SETUP_NODE_EVENTS_DO_NOT_SUPPORT_DEV_SERVER", self.required_file))
            return None

        if event == PluginEvents.TASK:
            existing_id = self._registered_by_name.get(event)
            if existing_id is not None:
                existing = self._registered_by_id[existing_id]
                existing.handler = self._task_merge(existing.handler, handler)
                self.logger.debug(f"合并 task 事件到已有注册 ID: {existing_id}")
                return existing
            # 复制一份，后续合并不修改用户传入的映射
            handler = dict(handler)

        event_id = self._event_id_count
        self._event_id_count += 1

        registration = Registration(event_id=event_id, event=event, handler=handler)
        self._registered_by_id[event_id] = registration
        self._registered_by_name[event] = event_id
        self._registrations.append(registration.projection())

        self.logger.debug(f"注册事件 {event}，ID: {event_id}")
        return registration

    def _task_merge(self, target: Dict[str, Any], events: Mapping) -> Dict[str, Any]:
        duplicates = [key for key in target if key in events]
        if duplicates:
            warning("DUPLICATE_TASK_KEY", duplicates)
        target.update(events)
        return target

    def _report(self, err: BridgeError) -> None:
        self.logger.debug(f"事件注册失败: {err.type}")
        if self._on_error is not None:
            self._on_error(err)
        else:
            self.logger.error(str(err))

    # ==================== 查询 API ====================

    def get(self, event_id: int) -> Registration:
        """
        按 ID 获取注册记录

        Raises:
            KeyError: ID 从未分配
        """
        return self._registered_by_id[event_id]

    def find(self, event: str) -> Optional[Registration]:
        """按事件名称获取注册记录（task 事件只有一条）"""
        event_id = self._registered_by_name.get(event)
        if event_id is None:
            return None
        return self._registered_by_id[event_id]

    def has(self, event: str) -> bool:
        return event in self._registered_by_name

    def task_handlers(self) -> Dict[str, Any]:
        """获取 task 映射（未注册 task 时为空映射）"""
        registration = self.find(PluginEvents.TASK)
        if registration is None:
            return {}
        return registration.handler

    @property
    def registrations(self) -> List[RegistrationProjection]:
        """按注册顺序排列的对外视图列表"""
        return list(self._registrations)
