"""
IRDesk Platform - API公共模型
请求模型基类与统一响应封装
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, ValidationInfo
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """请求模型基类: JSON使用驼峰字段名, 代码中使用下划线字段名"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def reject_null(value: Any, info: ValidationInfo) -> Any:
    """部分更新时必填字段不可显式置空"""
    if value is None:
        raise ValueError(f"{info.field_name} must not be null")
    return value


def success_response(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    """{success, data, message} 响应封装"""
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body


def data_response(data: Any, message: Optional[str] = None) -> Dict[str, Any]:
    """{data, message?} 响应封装"""
    body: Dict[str, Any] = {"data": data}
    if message is not None:
        body["message"] = message
    return body
