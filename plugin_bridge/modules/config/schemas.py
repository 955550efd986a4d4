"""插件子进程配置定义

定义插件子进程自身的运行配置（不是用户的测试配置）。
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class LoggingSettings(BaseModel):
    """日志配置，字段与 configure_from_config() 的参数一一对应"""

    enabled: bool = Field(default=False, description="是否启用文件日志")
    directory: str = Field(default="logs", description="日志目录路径")
    level: str = Field(default="DEBUG", description="文件日志级别")
    rotation: str = Field(default="10 MB", description="文件轮转触发条件")
    retention: str = Field(default="7 days", description="日志保留时间")
    split_by_session: bool = Field(default=False, description="是否按会话分割日志文件")
    console_level: str = Field(default="INFO", description="控制台日志级别")
    filter: Optional[List[str]] = Field(default=None, description="模块过滤器列表")

    model_config = {"extra": "ignore"}


class BridgeSettings(BaseModel):
    """插件子进程配置

    project_root 与 required_file 通常由父进程在启动子进程时传入。
    """

    project_root: Optional[str] = Field(default=None, description="项目根目录")
    required_file: Optional[str] = Field(default=None, description="用户配置文件路径")
    testing_type: Literal["e2e", "component"] = Field(default="e2e", description="测试类型")
    setup_attr: str = Field(default="setup_node_events", description="配置文件中 setup 函数的名称")
    logging: LoggingSettings = Field(default_factory=LoggingSettings, description="日志配置")

    model_config = {"extra": "ignore"}
