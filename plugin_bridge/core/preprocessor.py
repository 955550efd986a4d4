"""
默认文件预处理器

用户没有注册 file:preprocessor 时，由 SetupOrchestrator 注册这里构造的默认预处理器。
如果项目中安装了 TypeScript，会把它的路径传给打包器。
"""

from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from plugin_bridge.modules.logging import get_logger

logger = get_logger("Preprocessor")

# 打包器工厂：接收选项，返回 file:preprocessor 处理器
BundlerFactory = Callable[[Dict[str, Any]], Callable[..., Any]]


def resolve_typescript(project_root: Optional[str]) -> Optional[str]:
    """
    从项目根目录向上查找 node_modules/typescript

    Returns:
        typescript 入口文件路径；未安装时返回 None
    """
    if not project_root:
        return None

    current = Path(project_root).resolve()
    for directory in (current, *current.parents):
        candidate = directory / "node_modules" / "typescript" / "lib" / "typescript.js"
        if candidate.is_file():
            return str(candidate)
    return None


class BundlerPreprocessor:
    """
    默认打包预处理器

    不做任何转换，直接把源文件路径作为输出返回；真正的打包由父进程配置的打包器完成。
    """

    def __init__(self, options: Dict[str, Any]):
        self.options = dict(options)

    def __call__(self, file: Any) -> str:
        file_path = file.file_path if hasattr(file, "file_path") else file["filePath"]
        logger.debug(f"预处理文件: {file_path} (typescript={self.options.get('typescript')})")
        return file_path


def get_default_preprocessor(config: Mapping, bundler_factory: BundlerFactory = BundlerPreprocessor):
    """
    构造默认预处理器

    Args:
        config: 当前配置（读取 projectRoot）
        bundler_factory: 打包器工厂

    Returns:
        file:preprocessor 处理器
    """
    ts_path = resolve_typescript(config.get("projectRoot"))
    options: Dict[str, Any] = {}
    if ts_path:
        options["typescript"] = ts_path

    logger.debug(f"使用选项创建默认预处理器: {options}")
    return bundler_factory(options)
