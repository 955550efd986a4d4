"""
按事件类型委托的执行器

每个执行器的签名都是 (channel, invoke, ids, args)，负责调用 invoke 并通过
wrap_child_promise() 上报结果。Dispatcher 允许替换这些默认实现。
"""

from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from plugin_bridge.core.invocation import Invoke, wrap_child_promise
from plugin_bridge.modules.events.names import ChannelMessages, PluginEvents
from plugin_bridge.modules.logging import get_logger

Executor = Callable[[Any, Invoke, Any, Sequence[Any]], Awaitable[None]]

logger = get_logger("Executors")


async def wrap_dev_server(channel, invoke: Invoke, ids: Any, args: Sequence[Any] = ()) -> None:
    """dev-server:start: 处理器接收 dev server 选项，返回服务器信息（如端口）"""
    options = args[0] if args else None
    if isinstance(options, Mapping):
        options = dict(options)
        logger.debug(f"启动 dev server，选项: {sorted(options)}")
    await wrap_child_promise(channel, invoke, ids, [options])


async def wrap_browser_launch(channel, invoke: Invoke, ids: Any, args: Sequence[Any] = ()) -> None:
    """before:browser:launch: 处理器接收 (browser, launch_options)，返回修改后的启动选项"""
    browser = args[0] if len(args) > 0 else None
    launch_options = args[1] if len(args) > 1 else None
    await wrap_child_promise(channel, invoke, ids, [browser, launch_options])


class PreprocessorFile:
    """
    传给 file:preprocessor 处理器的文件对象

    Attributes:
        file_path: 源文件路径
        output_path: 输出文件路径
        should_watch: 是否需要监听文件变化
    """

    def __init__(self, channel, file_path: str, output_path: Optional[str] = None, should_watch: bool = False):
        self._channel = channel
        self.file_path = file_path
        self.output_path = output_path
        self.should_watch = should_watch
        self._close_callbacks: List[Callable[[], Any]] = []

    def on_close(self, callback: Callable[[], Any]) -> None:
        """注册文件关闭回调（父进程不再需要该文件时触发）"""
        self._close_callbacks.append(callback)

    def emit_rerun(self) -> None:
        """通知父进程文件已重新生成"""
        self._channel.send(ChannelMessages.PREPROCESSOR_RERUN, self.file_path)

    def close(self) -> None:
        for callback in self._close_callbacks:
            try:
                callback()
            except Exception as e:
                logger.opt(exception=e).error(f"文件关闭回调执行失败 ({self.file_path}): {e}")
        self._close_callbacks.clear()


class PreprocessorExecutor:
    """
    file:preprocessor 执行器

    同一个文件路径复用同一个 PreprocessorFile，父进程发送 preprocessor:close 时触发关闭回调。
    """

    def __init__(self):
        self._files: Dict[str, PreprocessorFile] = {}
        self._subscribed_channel = None

    def _ensure_subscribed(self, channel) -> None:
        if self._subscribed_channel is not channel:
            channel.on(ChannelMessages.PREPROCESSOR_CLOSE, self.close)
            self._subscribed_channel = channel

    def get_file(self, channel, file_info: Mapping) -> PreprocessorFile:
        file_path = file_info["filePath"]
        file = self._files.get(file_path)
        if file is None:
            file = PreprocessorFile(
                channel,
                file_path,
                output_path=file_info.get("outputPath"),
                should_watch=bool(file_info.get("shouldWatch", False)),
            )
            self._files[file_path] = file
            logger.debug(f"创建预处理文件对象: {file_path}")
        return file

    async def wrap(self, channel, invoke: Invoke, ids: Any, args: Sequence[Any] = ()) -> None:
        self._ensure_subscribed(channel)

        def invoke_with_file(event_id: Optional[int], invoke_args: Sequence[Any] = ()) -> Any:
            return invoke(event_id, [self.get_file(channel, invoke_args[0])])

        await wrap_child_promise(channel, invoke_with_file, ids, list(args))

    def close(self, file_path: Optional[str] = None) -> None:
        """关闭单个文件；file_path 为 None 时关闭全部文件"""
        if file_path is None:
            paths = list(self._files)
        else:
            paths = [file_path] if file_path in self._files else []
        for path in paths:
            self._files.pop(path).close()
            logger.debug(f"关闭预处理文件: {path}")

    @property
    def open_files(self) -> List[str]:
        return list(self._files)


def default_executors() -> Dict[str, Executor]:
    """默认执行器表（每次调用创建新的预处理执行器状态）"""
    preprocessor = PreprocessorExecutor()
    return {
        PluginEvents.DEV_SERVER_START: wrap_dev_server,
        PluginEvents.FILE_PREPROCESSOR: preprocessor.wrap,
        PluginEvents.BEFORE_BROWSER_LAUNCH: wrap_browser_launch,
    }
