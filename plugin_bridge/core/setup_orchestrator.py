"""
SetupOrchestrator - 运行用户 setup 函数

执行流程（单次尝试，不重试）：
1. 为配置安装已迁移配置项保护
2. 调用用户 setup 函数 setup(on, config)，它可以返回一个新的配置
3. 用户没有注册 file:preprocessor 时注册默认预处理器
4. setup 返回了配置时，校验其中没有已迁移的配置项
5. 上报成功（注册列表、配置、用户模块列表）或上报唯一的一个错误
"""

from collections.abc import Mapping
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from plugin_bridge.core.invocation import call_handler
from plugin_bridge.core.preprocessor import get_default_preprocessor
from plugin_bridge.core.requires import non_framework_requires
from plugin_bridge.modules.config.migration import ConfigMigrationGuard, to_plain
from plugin_bridge.modules.errors import BridgeError, get_error, is_bridge_error, serialize_error
from plugin_bridge.modules.events.names import ChannelMessages, PluginEvents
from plugin_bridge.modules.events.registry import EventRegistry, RegistrationProjection
from plugin_bridge.modules.logging import get_logger


class SetupReply(BaseModel):
    """setup 成功时发送给父进程的内容"""

    model_config = ConfigDict(populate_by_name=True)

    setup_config: Optional[dict] = Field(default=None, alias="setupConfig")
    registrations: List[RegistrationProjection] = Field(default_factory=list)
    requires: List[str] = Field(default_factory=list)


class SetupOrchestrator:
    """
    setup 流程编排

    注册回调中的校验失败由 EventRegistry 立即上报，不会中断 setup；
    setup 函数本身抛出的异常会中止整个 setup，并且只上报一次。
    """

    def __init__(
        self,
        channel,
        registry: EventRegistry,
        required_file: str,
        preprocessor_factory: Callable[[Mapping], Any] = get_default_preprocessor,
        requires_provider: Callable[[], List[str]] = non_framework_requires,
    ):
        """
        初始化 SetupOrchestrator

        Args:
            channel: 父子进程通道
            registry: 本会话的事件注册表
            required_file: 用户配置文件路径
            preprocessor_factory: 默认预处理器工厂
            requires_provider: 用户模块列表提供者
        """
        self.channel = channel
        self.registry = registry
        self.required_file = required_file
        self._preprocessor_factory = preprocessor_factory
        self._requires_provider = requires_provider
        self.config: Optional[Mapping] = None
        self.logger = get_logger("SetupOrchestrator")

    def report_error(self, err: BaseException) -> None:
        self.channel.send(ChannelMessages.SETUP_ERROR, serialize_error(err))

    async def run(self, initial_config: Mapping, setup_routine: Callable[..., Any]) -> None:
        """
        运行用户 setup 函数并上报结果

        Args:
            initial_config: 初始配置
            setup_routine: 用户 setup 函数，签名为 setup(on, config)
        """
        self.logger.debug("开始加载插件")
        testing_type = initial_config.get("testingType")

        # 父子进程通信使用的内部事件
        self.registry.reserve_internal_events()

        try:
            # 1. 安装已迁移配置项保护
            config = ConfigMigrationGuard.install(initial_config)
            self.config = config
            self.registry.config = config

            # 2. 调用用户 setup 函数
            self.logger.debug("调用 setup 函数")
            modified_config = await call_handler(setup_routine, [self.registry.register, config])

            # 3. 默认预处理器
            if not self.registry.has(PluginEvents.FILE_PREPROCESSOR):
                self.logger.debug("注册默认预处理器")
                self.registry.register(PluginEvents.FILE_PREPROCESSOR, self._preprocessor_factory(config))

            # 4. 校验返回的配置
            if modified_config:
                if not isinstance(modified_config, Mapping):
                    raise TypeError(f"setup 函数只能返回配置映射或 None，收到: {type(modified_config).__name__}")
                ConfigMigrationGuard.validate(modified_config)

            reply = SetupReply(
                setup_config=to_plain(modified_config) if modified_config else None,
                registrations=self.registry.registrations,
                requires=self._requires_provider(),
            )
        except Exception as err:
            self.logger.opt(exception=err).error(f"setup 函数执行出错: {err}")
            processed: BridgeError = (
                err if is_bridge_error(err) else get_error(
                    "CONFIG_FILE_SETUP_NODE_EVENTS_ERROR", self.required_file, testing_type, err
                )
            )
            self.report_error(processed)
            return

        self.logger.info(f"插件加载完成，共注册 {len(reply.registrations)} 个事件")
        self.channel.send(ChannelMessages.SETUP_REPLY, reply.model_dump(by_alias=True))
