"""
Logging configuration and utilities.
统一管理爬虫、排行和流水线的日志配置，支持按天轮转和过期日志清理
"""

import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Optional
from datetime import datetime, timedelta

import structlog


def configure_structlog(cache_logger_on_first_use: bool = False) -> None:
    """Route structlog events through the stdlib logging tree as JSON."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=cache_logger_on_first_use,
    )


# 未调用 setup_logging 时也走标准日志，不直接打印到 stdout
configure_structlog()


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    retention_days: int = 7  # 7天日志保留
) -> None:
    """
    Set up structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        retention_days: Number of days to retain log files
    """
    configure_structlog(cache_logger_on_first_use=True)

    # Configure standard logging
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    # Clear existing handlers
    root_logger.handlers.clear()

    # Console handler goes to stderr so rendered tables on stdout stay clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    # File handler (if specified)
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # 使用时间轮转处理器，每天轮转一次，保留指定天数
        file_handler = logging.handlers.TimedRotatingFileHandler(
            log_file,
            when='midnight',
            interval=1,
            backupCount=retention_days,
            encoding='utf-8'
        )
        file_handler.suffix = "%Y-%m-%d"

        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

        cleanup_old_logs(log_path.parent, retention_days)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Standard library logger
    """
    return logging.getLogger(name)


def get_structured_logger(name: str):
    """Get a structlog logger bound to the stdlib logger ``name``."""
    return structlog.get_logger(name)


# 业务日志文件映射
BUSINESS_LOGS = {
    "crawler_ironman": "logs/crawler_ironman.log",
    "crawler_general": "logs/crawler.log",
    "pipeline": "logs/pipeline.log",
    "ranking": "logs/ranking.log",
    "system": "logs/system.log",
}


def get_business_logger(
    business_name: str,
    log_level: str = "INFO",
    logs_root: Optional[Path] = None
) -> logging.Logger:
    """
    获取业务日志记录器的便捷函数

    The logger propagates to the root logger, so console output is
    whatever ``setup_logging`` configured. A per-business file handler is
    attached only when ``logs_root`` is given.

    Args:
        business_name: 业务名称 (如 'crawler_ironman', 'pipeline')
        log_level: 日志级别
        logs_root: Directory that business log paths are relative to

    Returns:
        配置好的日志记录器
    """
    logger = logging.getLogger(f"ironman_ranking.{business_name}")

    # 如果已经配置过，直接返回
    if logger.handlers or logs_root is None:
        return logger

    log_file = BUSINESS_LOGS.get(business_name, f"logs/{business_name}.log")
    logger.setLevel(getattr(logging, log_level.upper()))

    log_path = Path(logs_root) / log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.TimedRotatingFileHandler(
        log_path,
        when='midnight',
        interval=1,
        backupCount=7,  # 保留7天
        encoding='utf-8'
    )
    file_handler.suffix = "%Y-%m-%d"
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    logger.addHandler(file_handler)

    return logger


def cleanup_old_logs(logs_dir: Path, retention_days: int = 7) -> int:
    """
    清理超过保留期的日志文件

    Args:
        logs_dir: 日志目录路径
        retention_days: 保留天数

    Returns:
        清理的文件数量
    """
    logs_dir = Path(logs_dir)
    if not logs_dir.exists():
        return 0

    logger = get_logger(__name__)
    cleaned_count = 0
    cutoff_date = datetime.now() - timedelta(days=retention_days)

    for log_file in logs_dir.glob("*.log*"):
        if not log_file.is_file():
            continue

        # 检查文件修改时间
        file_mtime = datetime.fromtimestamp(log_file.stat().st_mtime)
        if file_mtime < cutoff_date:
            try:
                log_file.unlink()
            except OSError as e:
                logger.warning(f"清理日志文件失败 {log_file.name}: {e}")
                continue
            cleaned_count += 1
            logger.debug(f"清理过期日志文件: {log_file.name}")

    if cleaned_count > 0:
        logger.info(f"日志清理完成，清理了 {cleaned_count} 个文件")

    return cleaned_count


# 业务日志装饰器
def log_business_operation(business_name: str, operation_name: str = None):
    """
    业务操作日志装饰器

    Args:
        business_name: 业务名称
        operation_name: 操作名称
    """
    def decorator(func):
        def wrapper(*args, **kwargs):
            logger = get_business_logger(business_name)
            op_name = operation_name or func.__name__

            logger.info(f"开始执行 {op_name}")
            start_time = time.time()

            try:
                result = func(*args, **kwargs)
                duration = time.time() - start_time
                logger.info(f"完成执行 {op_name}，耗时: {duration:.2f}秒")
                return result

            except Exception as e:
                duration = time.time() - start_time
                logger.error(f"执行 {op_name} 失败，耗时: {duration:.2f}秒，错误: {e}")
                raise

        return wrapper
    return decorator
