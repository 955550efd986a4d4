"""
用户模块追踪

父进程需要知道用户配置文件加载了哪些本地文件，以便在文件变化时重启插件子进程。
"""

import sys
import sysconfig
from pathlib import Path
from typing import Iterable, List, Optional

import plugin_bridge

_FRAMEWORK_DIR = Path(plugin_bridge.__file__).resolve().parent


def _library_dirs() -> List[Path]:
    dirs = set()
    for name in ("stdlib", "platstdlib", "purelib", "platlib"):
        path = sysconfig.get_paths().get(name)
        if path:
            dirs.add(Path(path).resolve())
    return sorted(dirs)


def _is_within(path: Path, parents: Iterable[Path]) -> bool:
    for parent in parents:
        if path == parent or parent in path.parents:
            return True
    return False


def non_framework_requires(modules: Optional[dict] = None) -> List[str]:
    """
    获取已加载的非框架模块文件

    排除标准库、site-packages 以及 plugin_bridge 自身。

    Args:
        modules: 模块表，默认为 sys.modules

    Returns:
        按路径排序的文件列表
    """
    modules = sys.modules if modules is None else modules
    excluded = [*_library_dirs(), _FRAMEWORK_DIR]

    files = set()
    for module in list(modules.values()):
        file = getattr(module, "__file__", None)
        if not file:
            continue
        path = Path(file).resolve()
        if "site-packages" in path.parts or "dist-packages" in path.parts:
            continue
        if _is_within(path, excluded):
            continue
        files.add(str(path))

    return sorted(files)
