"""
Pytest 全局共享 fixtures

每个测试获得独立的通道与注册表，避免测试间相互干扰。
"""

from typing import List

import pytest

from plugin_bridge.core.channel import LocalChannel
from plugin_bridge.core.dispatcher import Dispatcher
from plugin_bridge.modules.errors import BridgeError
from plugin_bridge.modules.events.registry import EventRegistry

REQUIRED_FILE = "/project/bridge_config.py"


@pytest.fixture
def channel() -> LocalChannel:
    """创建干净的进程内通道"""
    return LocalChannel()


@pytest.fixture
def reported_errors() -> List[BridgeError]:
    """收集注册表上报的错误"""
    return []


@pytest.fixture
def registry(reported_errors: List[BridgeError]) -> EventRegistry:
    """
    创建事件注册表

    注册失败时把错误追加到 reported_errors。
    """
    return EventRegistry(REQUIRED_FILE, config={"testingType": "e2e"}, on_error=reported_errors.append)


@pytest.fixture
def dispatcher(channel: LocalChannel, registry: EventRegistry) -> Dispatcher:
    """创建绑定到同一通道与注册表的 Dispatcher"""
    return Dispatcher(channel, registry)
