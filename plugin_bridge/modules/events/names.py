"""
事件名称常量定义

使用常量替代魔法字符串，提供 IDE 自动补全和重构支持。

- PluginEvents: 用户 setup 函数可以注册的生命周期事件，以及父子进程通信使用的内部事件
- ChannelMessages: 通道上传递的消息名称
"""


class PluginEvents:
    """插件生命周期事件名称常量"""

    # ========== 运行生命周期 ==========
    BEFORE_RUN = "before:run"
    AFTER_RUN = "after:run"
    BEFORE_SPEC = "before:spec"
    AFTER_SPEC = "after:spec"
    AFTER_SCREENSHOT = "after:screenshot"

    # ========== 浏览器 / 构建 ==========
    BEFORE_BROWSER_LAUNCH = "before:browser:launch"
    FILE_PREPROCESSOR = "file:preprocessor"
    DEV_SERVER_START = "dev-server:start"

    # ========== 任务 ==========
    TASK = "task"

    # ========== 内部事件（父子进程通信使用，不对用户开放） ==========
    GET_TASK_BODY = "_get:task:body"
    GET_TASK_KEYS = "_get:task:keys"

    @classmethod
    def get_all_events(cls) -> tuple[str, ...]:
        """
        获取所有定义的事件名

        通过反射收集所有事件常量（不以下划线开头、值为小写字符串）。
        """
        return tuple(
            value
            for name, value in vars(cls).items()
            if not name.startswith("_") and isinstance(value, str) and value.islower()
        )

    @classmethod
    def get_user_events(cls) -> tuple[str, ...]:
        """获取用户可注册的事件名（排除以下划线开头的内部事件）"""
        return tuple(event for event in cls.get_all_events() if not event.startswith("_"))

    @classmethod
    def get_internal_events(cls) -> tuple[str, ...]:
        return tuple(event for event in cls.get_all_events() if event.startswith("_"))

    # 所有事件名集合，模块末尾会被更新
    ALL_EVENTS = ()


PluginEvents.ALL_EVENTS = PluginEvents.get_all_events()


# 由通用的 wrap_child_promise 执行的事件
WRAPPED_LIFECYCLE_EVENTS = frozenset(
    {
        PluginEvents.BEFORE_RUN,
        PluginEvents.BEFORE_SPEC,
        PluginEvents.AFTER_RUN,
        PluginEvents.AFTER_SPEC,
        PluginEvents.AFTER_SCREENSHOT,
    }
)


class ChannelMessages:
    """父子进程通道消息名称"""

    SETUP_REPLY = "setupTestingType:reply"
    SETUP_ERROR = "setupTestingType:error"
    EXECUTE = "execute:plugins"
    PREPROCESSOR_CLOSE = "preprocessor:close"
    PREPROCESSOR_RERUN = "preprocessor:rerun"

    @staticmethod
    def promise_fulfilled(invocation_id: str) -> str:
        """单次调用结果的消息名称，按 invocation_id 关联请求与结果"""
        return f"promise:fulfilled:{invocation_id}"
