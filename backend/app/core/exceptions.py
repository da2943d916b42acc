"""
IRDesk Platform - 异常处理模块
定义领域异常类及其HTTP状态码
"""

from typing import Any, Dict, Optional


class IRDeskException(Exception):
    """IRDesk平台基础异常类"""

    def __init__(
        self,
        message: str,
        error_code: str = "IRDESK_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(IRDeskException):
    """请求数据验证异常"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details,
        )


class UploadException(IRDeskException):
    """文件上传异常"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="UPLOAD_ERROR",
            status_code=400,
            details=details,
        )


class AuthenticationException(IRDeskException):
    """认证异常"""

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="AUTHENTICATION_ERROR",
            status_code=401,
            details=details,
        )


class AuthorizationException(IRDeskException):
    """授权异常"""

    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="AUTHORIZATION_ERROR",
            status_code=403,
            details=details,
        )


class NotFoundException(IRDeskException):
    """资源不存在异常"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details=details,
        )


class ConflictException(IRDeskException):
    """资源冲突异常"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details=details,
        )


class DatabaseException(IRDeskException):
    """数据库操作异常"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="DATABASE_ERROR",
            status_code=503,
            details=details,
        )


class StorageException(IRDeskException):
    """文件存储异常"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            status_code=503,
            details=details,
        )


class ConfigurationException(IRDeskException):
    """配置异常"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            status_code=500,
            details=details,
        )


# 错误码映射
ERROR_CODE_MAPPING = {
    "VALIDATION_ERROR": "数据验证失败",
    "UPLOAD_ERROR": "文件上传失败",
    "AUTHENTICATION_ERROR": "认证失败",
    "AUTHORIZATION_ERROR": "权限不足",
    "NOT_FOUND": "资源不存在",
    "CONFLICT": "资源冲突",
    "DATABASE_ERROR": "数据库操作失败",
    "STORAGE_ERROR": "文件存储失败",
    "CONFIGURATION_ERROR": "配置错误",
    "HTTP_ERROR": "HTTP错误",
    "INTERNAL_ERROR": "服务器内部错误",
}


def get_error_message(error_code: str) -> str:
    """根据错误码获取错误消息"""
    return ERROR_CODE_MAPPING.get(error_code, "未知错误")
