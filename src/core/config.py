"""
数据访问层配置

包含数据库连接、命令超时、以及 DAL / BLL 自动注册所需的模块路径约定。
"""

from typing import List, Optional
from pydantic_settings import BaseSettings


class DataAccessSettings(BaseSettings):
    """
    数据访问层配置类

    可通过 DATAACCESS_ 前缀的环境变量覆盖配置项。

    自动注册约定（请勿轻易修改 dal 和 business 的模块路径，否则无法注册）：
        DALS:           DAL 所在模块路径的子串，如 "app.dals"
        BLLS:           BLL 实现所在模块路径的子串，如 "app.blls"
        MODULE_NAME:    BLL 实现所在的顶层包，如 "app"
        INTERFACE_BLLS: BLL 接口所在的包，如 "app.interfaces"
    """

    # 数据库配置
    DATABASE_URL: str = "sqlite+aiosqlite:///data/dataaccess.db"
    ECHO: bool = False
    COMMAND_TIMEOUT: Optional[float] = None  # 秒，None 表示不限制

    # 自动注册配置
    DALS: str = ""
    BLLS: str = ""
    MODULE_NAME: str = ""
    INTERFACE_BLLS: str = ""
    SCAN_PACKAGES: List[str] = []  # 扫描前需递归导入的包

    class Config:
        env_prefix = "DATAACCESS_"
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False


# 全局配置实例
settings = DataAccessSettings()
