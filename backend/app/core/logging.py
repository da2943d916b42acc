"""
IRDesk Platform - 日志配置模块
配置结构化日志和日志处理
"""

import asyncio
import logging
import logging.handlers
import sys
import time
from contextvars import ContextVar
from functools import wraps
from pathlib import Path
from typing import Dict, Any, Optional
import structlog
from backend.app.core.config import settings


# 当前请求ID, 由请求日志中间件设置
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def setup_logging():
    """设置应用日志配置"""

    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    # 创建日志目录
    if settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)

    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _add_request_context,
    ]

    # 配置structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # 获取根logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    # 控制台处理器
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if settings.LOG_FORMAT == "json":
        console_formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(ensure_ascii=False),
            foreign_pre_chain=shared_processors,
        )
    else:
        console_formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=True),
            foreign_pre_chain=shared_processors,
        )

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    # 文件处理器（如果配置了日志文件）
    if settings.LOG_FILE:
        file_handler = logging.handlers.TimedRotatingFileHandler(
            filename=settings.LOG_FILE,
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.INFO)

        file_formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(ensure_ascii=False),
            foreign_pre_chain=shared_processors,
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    # 设置第三方库日志级别
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)


def _add_request_context(logger, method_name, event_dict):
    """添加请求上下文到日志"""
    request_id = request_id_var.get()
    if request_id and "request_id" not in event_dict:
        event_dict["request_id"] = request_id
    return event_dict


class IRDeskLogger:
    """IRDesk专用日志器"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def info(self, message: str, **kwargs):
        """记录信息日志"""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        """记录警告日志"""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        """记录错误日志"""
        self.logger.error(message, **kwargs)

    def debug(self, message: str, **kwargs):
        """记录调试日志"""
        self.logger.debug(message, **kwargs)

    def critical(self, message: str, **kwargs):
        """记录严重错误日志"""
        self.logger.critical(message, **kwargs)

    def log_api_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration: float,
        **kwargs
    ):
        """记录API请求日志"""
        self.logger.info(
            "API request",
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=round(duration * 1000, 2),
            **kwargs
        )

    def log_auth_event(
        self,
        event_type: str,
        user_id: str = None,
        email: str = None,
        success: bool = True,
        **kwargs
    ):
        """记录认证事件日志"""
        level = "info" if success else "warning"
        getattr(self.logger, level)(
            "Auth event",
            event_type=event_type,
            user_id=user_id,
            email=email,
            success=success,
            **kwargs
        )

    def log_upload_event(
        self,
        source: str,
        filename: str,
        size: int = None,
        records_count: int = None,
        success: bool = True,
        **kwargs
    ):
        """记录文件上传/数据导入日志"""
        level = "info" if success else "error"
        getattr(self.logger, level)(
            "Upload event",
            source=source,
            filename=filename,
            size=size,
            records_count=records_count,
            success=success,
            **kwargs
        )

    def log_crm_event(
        self,
        event_type: str,
        entity_type: str,
        entity_id: Any = None,
        **kwargs
    ):
        """记录CRM事件日志"""
        self.logger.info(
            "CRM event",
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            **kwargs
        )

    def log_portfolio_event(
        self,
        event_type: str,
        account_id: Any = None,
        **kwargs
    ):
        """记录投资组合事件日志"""
        self.logger.info(
            "Portfolio event",
            event_type=event_type,
            account_id=account_id,
            **kwargs
        )


def get_logger(name: str) -> IRDeskLogger:
    """获取IRDesk日志器实例"""
    return IRDeskLogger(name)


# 性能监控装饰器
def log_performance(operation_name: str):
    """性能监控装饰器"""
    def decorator(func):

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            start_time = time.perf_counter()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                duration = time.perf_counter() - start_time
                logger.error(
                    f"Performance: {operation_name} failed",
                    function=func.__name__,
                    duration_ms=round(duration * 1000, 2),
                    error=str(e),
                    success=False,
                )
                raise

            duration = time.perf_counter() - start_time
            logger.debug(
                f"Performance: {operation_name}",
                function=func.__name__,
                duration_ms=round(duration * 1000, 2),
                success=True,
            )
            return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            start_time = time.perf_counter()

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration = time.perf_counter() - start_time
                logger.error(
                    f"Performance: {operation_name} failed",
                    function=func.__name__,
                    duration_ms=round(duration * 1000, 2),
                    error=str(e),
                    success=False,
                )
                raise

            duration = time.perf_counter() - start_time
            logger.debug(
                f"Performance: {operation_name}",
                function=func.__name__,
                duration_ms=round(duration * 1000, 2),
                success=True,
            )
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        else:
            return sync_wrapper

    return decorator


# 审计日志
class AuditLogger:
    """审计日志记录器"""

    def __init__(self):
        self.logger = get_logger("audit")

    def log_user_action(
        self,
        user_id: str,
        action: str,
        resource: str,
        resource_id: str = None,
        details: Dict[str, Any] = None
    ):
        """记录用户操作审计日志"""
        self.logger.info(
            "User action",
            user_id=str(user_id) if user_id else None,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=details or {},
        )

    def log_system_event(
        self,
        event_type: str,
        component: str,
        details: Dict[str, Any] = None
    ):
        """记录系统事件审计日志"""
        self.logger.info(
            "System event",
            event_type=event_type,
            component=component,
            details=details or {},
        )

    def log_security_event(
        self,
        event_type: str,
        user_id: str = None,
        ip_address: str = None,
        details: Dict[str, Any] = None
    ):
        """记录安全事件审计日志"""
        self.logger.warning(
            "Security event",
            event_type=event_type,
            user_id=str(user_id) if user_id else None,
            ip_address=ip_address,
            details=details or {},
        )


# 创建全局审计日志器
audit_logger = AuditLogger()
