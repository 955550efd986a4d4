"""plugin_bridge 基础模块：日志、配置、事件与错误"""
