"""
plugin_bridge - 插件执行桥接层

在独立子进程中加载用户的 setup 函数，记录其注册的生命周期事件处理器，
之后通过父子进程通道按注册 ID 执行处理器并回传结果。
"""

__version__ = "0.1.0"
