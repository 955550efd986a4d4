"""
PluginBridge - 插件子进程入口

负责把 EventRegistry、SetupOrchestrator 和 Dispatcher 连接到同一条通道上：
先订阅 execute:plugins，再运行用户 setup 函数并上报注册结果。
"""

from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional

from plugin_bridge.core.dispatcher import Dispatcher
from plugin_bridge.core.executors import Executor
from plugin_bridge.core.loader import load_setup_routine
from plugin_bridge.core.preprocessor import get_default_preprocessor
from plugin_bridge.core.setup_orchestrator import SetupOrchestrator
from plugin_bridge.modules.config.schemas import BridgeSettings
from plugin_bridge.modules.errors import BridgeError, serialize_error
from plugin_bridge.modules.events.names import ChannelMessages
from plugin_bridge.modules.events.registry import EventRegistry, EventValidator
from plugin_bridge.modules.events.validator import validate_event
from plugin_bridge.modules.logging import configure_from_config, get_logger


class PluginBridge:
    """
    插件执行桥接层（每个会话一个实例）

    使用示例:
        channel = LocalChannel()
        bridge = PluginBridge(channel, project_root="/path/to/project", required_file="bridge_config.py")
        await bridge.run_setup_node_events({"testingType": "e2e", "projectRoot": "/path/to/project"}, setup)
        channel.receive("execute:plugins", "task", {"eventId": 2, "invocationId": "1"}, ["hello", None])
    """

    def __init__(
        self,
        channel,
        project_root: Optional[str],
        required_file: str,
        validator: EventValidator = validate_event,
        executors: Optional[Dict[str, Executor]] = None,
        preprocessor_factory: Callable[[Mapping], Any] = get_default_preprocessor,
    ):
        self.channel = channel
        self.project_root = project_root
        self.required_file = required_file
        self.logger = get_logger("PluginBridge")

        self.registry = EventRegistry(required_file, validator=validator, on_error=self._report_registration_error)
        self.orchestrator = SetupOrchestrator(
            channel, self.registry, required_file, preprocessor_factory=preprocessor_factory
        )
        self.dispatcher = Dispatcher(channel, self.registry, executors=executors)

    @classmethod
    def from_settings(cls, channel, settings: BridgeSettings, **kwargs: Any) -> "PluginBridge":
        """根据子进程配置创建实例，并应用日志配置"""
        configure_from_config(settings.logging.model_dump())
        return cls(channel, settings.project_root, settings.required_file or "", **kwargs)

    def _report_registration_error(self, err: BridgeError) -> None:
        self.channel.send(ChannelMessages.SETUP_ERROR, serialize_error(err))

    def _on_execute(self, event: str, ids: Any, args: Any = None):
        return self.dispatcher.execute(event, ids, args)

    async def run_setup_node_events(self, config: Mapping, setup_routine: Callable[..., Any]) -> None:
        """
        订阅执行命令并运行用户 setup 函数

        Args:
            config: 初始配置
            setup_routine: 用户 setup 函数

        Raises:
            ValueError: 没有提供项目根目录
        """
        self.logger.debug(f"项目根目录: {self.project_root}")
        if not self.project_root:
            raise ValueError("项目根目录 project_root 必须是非空字符串")

        self.channel.on(ChannelMessages.EXECUTE, self._on_execute)
        await self.orchestrator.run(config, setup_routine)

    async def run_from_file(self, config: Mapping, settings: BridgeSettings) -> None:
        """
        从用户配置文件加载 setup 函数并运行

        加载失败时上报 setup 错误，不会向外抛出。
        """
        try:
            setup_routine = load_setup_routine(
                self.required_file, config.get("testingType", settings.testing_type), settings.setup_attr
            )
        except BridgeError as err:
            self.channel.send(ChannelMessages.SETUP_ERROR, serialize_error(err))
            return
        await self.run_setup_node_events(config, setup_routine)
