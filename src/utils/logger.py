"""
数据访问层日志
- 分级日志记录
- 控制台输出（可选文件输出 + 轮转）
- 全局调试模式切换

作为类库使用时默认不写文件，设置 DATAACCESS_LOG_TO_FILE=true 开启。
"""

import os
import sys
import copy
import logging
from pathlib import Path
from typing import Optional, Dict
from logging.handlers import RotatingFileHandler


DEFAULT_LOGGER_NAME = "DataAccess"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class ColoredFormatter(logging.Formatter):
    """彩色控制台输出"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
        'RESET': '\033[0m',
    }

    def __init__(self, *args, for_console: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self._for_console = for_console

    def format(self, record):
        if not (self._for_console and sys.stdout.isatty()):
            return super().format(record)

        # 复制 record，避免影响文件 handler 的输出
        colored = copy.copy(record)
        color = self.COLORS.get(colored.levelname)
        if color:
            colored.levelname = f"{color}{colored.levelname}{self.COLORS['RESET']}"
            colored.msg = f"{color}{colored.msg}{self.COLORS['RESET']}"
        return super().format(colored)


class Logger:
    """数据访问层日志记录器"""

    def __init__(
        self,
        name: str = DEFAULT_LOGGER_NAME,
        log_dir: str = "logs",
        debug: bool = False,
        console: bool = True,
        file: Optional[bool] = None,
    ):
        """
        初始化日志记录器

        Args:
            name: 日志记录器名称
            log_dir: 日志文件目录
            debug: 是否开启调试模式
            console: 是否输出到控制台
            file: 是否输出到文件，None 时读取 DATAACCESS_LOG_TO_FILE
        """
        self.name = name
        self.debug_mode = debug
        if file is None:
            file = _env_flag("DATAACCESS_LOG_TO_FILE")

        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if debug else logging.INFO)
        self.logger.handlers.clear()

        if console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(ColoredFormatter(
                '%(asctime)s [%(levelname)s] %(filename)s:%(funcName)s:%(lineno)d - %(message)s',
                datefmt='%H:%M:%S',
                for_console=True,
            ))
            self.logger.addHandler(console_handler)

        if file:
            self.log_dir = Path(log_dir)
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(funcName)s:%(lineno)d - %(message)s'
            )

            file_handler = RotatingFileHandler(
                self.log_dir / f"{name.lower()}.log",
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

            # 错误日志单独一个文件，方便排查更新失败
            error_handler = RotatingFileHandler(
                self.log_dir / f"{name.lower()}_error.log",
                maxBytes=5*1024*1024,  # 5MB
                backupCount=3,
                encoding='utf-8'
            )
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(file_formatter)
            self.logger.addHandler(error_handler)

    def set_debug(self, enabled: bool):
        """切换调试模式"""
        self.debug_mode = enabled
        self.logger.setLevel(logging.DEBUG if enabled else logging.INFO)

    def debug(self, msg: str, *args, **kwargs):
        kwargs['stacklevel'] = kwargs.get('stacklevel', 2)
        self.logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        kwargs['stacklevel'] = kwargs.get('stacklevel', 2)
        self.logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        kwargs['stacklevel'] = kwargs.get('stacklevel', 2)
        self.logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        kwargs['stacklevel'] = kwargs.get('stacklevel', 2)
        self.logger.error(msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        """记录异常信息（自动包含堆栈）"""
        kwargs['stacklevel'] = kwargs.get('stacklevel', 2)
        self.logger.exception(msg, *args, **kwargs)


_logger_cache: Dict[str, Logger] = {}
_global_debug = False


def get_logger(name: str = DEFAULT_LOGGER_NAME, **kwargs) -> Logger:
    """
    获取日志记录器（按名称缓存）

    Args:
        name: 日志记录器名称
        **kwargs: Logger 构造函数参数（仅首次创建时生效）
    """
    if name not in _logger_cache:
        debug = _global_debug or _env_flag('DEBUG')
        _logger_cache[name] = Logger(name=name, debug=debug, **kwargs)
    return _logger_cache[name]


def set_global_debug(enabled: bool):
    """设置全局 debug 模式，并同步到所有已创建的 logger"""
    global _global_debug
    _global_debug = enabled

    for logger in _logger_cache.values():
        logger.set_debug(enabled)
