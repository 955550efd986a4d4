"""
已迁移配置项保护

当前配置版本不再支持部分旧配置项：
- OPTIONS_INVALID_ANYWHERE: 在任何位置（顶层、e2e、component）都不允许出现
- OPTIONS_INVALID_GLOBAL: 不允许出现在顶层，但仍可以放在 e2e / component 下

两道防线：
1. install(): 用户 setup 函数运行前，把配置包装为 GuardedConfig，任何对已迁移配置项的写入立即失败
2. validate(): setup 函数返回配置后，只读地完整扫描一遍（用户可能返回了一个全新的字典）
"""

import traceback
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Literal, Optional

from plugin_bridge.modules.errors import MigratedOptionError
from plugin_bridge.modules.logging import get_logger

logger = get_logger("ConfigMigrationGuard")


@dataclass(frozen=True)
class ConfigMigrationKey:
    """一个已迁移的配置项声明"""

    key: str
    scope: Literal["global", "anywhere"]


def throw_invalid_option_error(key: str, skip_frames: int = 0) -> None:
    """
    抛出 MigratedOptionError，并记录触发位置的调用栈

    Args:
        key: 配置项路径
        skip_frames: 除本函数外，从调用栈末尾额外去掉的保护层帧数
    """
    frames = traceback.extract_stack()[: -(skip_frames + 1)]
    raise MigratedOptionError(key, call_site="".join(traceback.format_list(frames)))


class GuardedConfig(MutableMapping):
    """
    带写入保护的配置字典

    对 forbidden 中列出的键执行写入会立即抛出 MigratedOptionError；
    对 scopes 中列出的键（测试类型作用域）赋值时，新值同样会被包装为受保护的作用域。
    """

    def __init__(
        self,
        data: Optional[Mapping] = None,
        forbidden: Optional[Dict[str, str]] = None,
        scopes: Optional[Dict[str, Dict[str, str]]] = None,
    ):
        """
        Args:
            data: 初始数据（不经过写入保护）
            forbidden: 禁止写入的键 -> 错误信息中使用的完整路径
            scopes: 作用域键 -> 该作用域下禁止写入的键
        """
        self._data: Dict[str, Any] = dict(data or {})
        self._forbidden = dict(forbidden or {})
        self._scopes = dict(scopes or {})

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key in self._forbidden:
            throw_invalid_option_error(self._forbidden[key], skip_frames=1)
        if key in self._scopes and isinstance(value, Mapping) and not self._is_scope(key, value):
            scope = GuardedConfig(forbidden=self._scopes[key])
            for scoped_key, scoped_value in value.items():
                scope[scoped_key] = scoped_value
            value = scope
        self._data[key] = value

    def _is_scope(self, key: str, value: Mapping) -> bool:
        # 作用域对象只能在禁止列表相同的位置复用
        return isinstance(value, GuardedConfig) and value._forbidden == self._scopes[key]

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"GuardedConfig({self._data!r})"

    def to_dict(self) -> Dict[str, Any]:
        """转换为普通字典（递归展开受保护的作用域）"""
        return to_plain(self)


def to_plain(value: Any) -> Any:
    """把配置中的映射递归转换为普通 dict，便于序列化"""
    if isinstance(value, Mapping):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_plain(item) for item in value]
    return value


class ConfigMigrationGuard:
    """已迁移配置项的安装与校验"""

    OPTIONS_INVALID_ANYWHERE = ("integrationFolder", "componentFolder", "pluginsFile")
    OPTIONS_INVALID_GLOBAL = ("baseUrl", "supportFile")
    TESTING_TYPES = ("component", "e2e")

    @classmethod
    def migration_keys(cls) -> List[ConfigMigrationKey]:
        keys = [ConfigMigrationKey(key, "global") for key in cls.OPTIONS_INVALID_GLOBAL]
        keys.extend(ConfigMigrationKey(key, "anywhere") for key in cls.OPTIONS_INVALID_ANYWHERE)
        return keys

    @classmethod
    def _scoped_forbidden(cls, testing_type: str) -> Dict[str, str]:
        return {
            item.key: f"{testing_type}.{item.key}" for item in cls.migration_keys() if item.scope == "anywhere"
        }

    @classmethod
    def install(cls, config: Mapping) -> GuardedConfig:
        """
        把配置包装为带写入保护的 GuardedConfig

        顶层禁止写入 OPTIONS_INVALID_GLOBAL 与 OPTIONS_INVALID_ANYWHERE；
        每个测试类型作用域（不存在时创建为空作用域）禁止写入 OPTIONS_INVALID_ANYWHERE。
        已存在的受保护键会被移除，读取时视为未设置。

        Args:
            config: 原始配置

        Returns:
            GuardedConfig: 受保护的配置
        """
        if isinstance(config, GuardedConfig):
            return config

        forbidden = {item.key: item.key for item in cls.migration_keys()}
        scopes = {testing_type: cls._scoped_forbidden(testing_type) for testing_type in cls.TESTING_TYPES}

        data = {key: value for key, value in config.items() if key not in forbidden}
        hidden = [key for key in config if key in forbidden]

        for testing_type, scoped_forbidden in scopes.items():
            original_scope = config.get(testing_type) or {}
            hidden.extend(scoped_forbidden[key] for key in original_scope if key in scoped_forbidden)
            data[testing_type] = GuardedConfig(
                {key: value for key, value in original_scope.items() if key not in scoped_forbidden},
                forbidden=scoped_forbidden,
            )

        if hidden:
            logger.debug(f"已隐藏迁移前的配置项: {hidden}")

        return GuardedConfig(data, forbidden=forbidden, scopes=scopes)

    @classmethod
    def validate(cls, config: Mapping) -> None:
        """
        只读扫描配置，发现已迁移配置项（值为真）时抛出 MigratedOptionError

        Raises:
            MigratedOptionError: 配置中存在已迁移的配置项
        """
        for item in cls.migration_keys():
            if config.get(item.key):
                throw_invalid_option_error(item.key)
            if item.scope != "anywhere":
                continue

            for testing_type in cls.TESTING_TYPES:
                scope = config.get(testing_type)
                if isinstance(scope, Mapping) and scope.get(item.key):
                    throw_invalid_option_error(f"{testing_type}.{item.key}")
