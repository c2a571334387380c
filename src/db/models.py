"""
SQLAlchemy 声明式基类

数据访问层本身不定义业务表；调用方的实体类继承 Base，
DatabaseManager 初始化时会为 Base.metadata 中已注册的实体建表。
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy 声明式基类"""
    pass
