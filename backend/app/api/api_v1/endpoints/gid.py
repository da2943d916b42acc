"""
IRDesk Platform - GID上传API端点
季度投资者数据文件上传、处理与结果查询
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.schemas import CamelModel, success_response
from backend.app.core.database import get_db
from backend.app.core.deps import get_current_user
from backend.app.core.exceptions import UploadException
from backend.app.core.logging import get_logger
from backend.app.models.gid import ProcessMode
from backend.app.models.user import User
from backend.app.services.gid_service import gid_service

logger = get_logger(__name__)

router = APIRouter()


class ProcessUploadRequest(CamelModel):
    """批次处理请求模型"""
    mode: ProcessMode = Field(ProcessMode.UPSERT, description="处理模式 UPSERT/REPLACE/APPEND")


@router.post(
    "/uploads",
    status_code=status.HTTP_201_CREATED,
    summary="上传GID文件",
    description="上传CSV/XLS/XLSX文件, 解析首个工作表并创建待处理批次",
)
async def upload_gid_file(
    file: Optional[UploadFile] = File(None, description="GID文件"),
    year: int = Form(..., ge=2000, le=2100, description="年度"),
    quarter: int = Form(..., ge=1, le=4, description="季度"),
    description: Optional[str] = Form(None, max_length=500, description="说明"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if file is None or not file.filename:
        raise UploadException("No file uploaded")

    content = await file.read()
    data = await gid_service.create_upload_batch(
        file.filename,
        file.content_type,
        content,
        year,
        quarter,
        current_user,
        db,
        description=description,
    )
    return success_response(data, "File uploaded successfully")


@router.post("/uploads/{batch_id}/process", summary="处理上传批次")
async def process_upload(
    batch_id: int,
    request: Optional[ProcessUploadRequest] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    mode = request.mode if request is not None else ProcessMode.UPSERT
    data = await gid_service.process_upload_batch(batch_id, mode, current_user, db)
    return success_response(data, "Upload batch processed")


@router.get("/uploads/{batch_id}", summary="批次信息")
async def get_upload_batch(
    batch_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await gid_service.get_upload_batch(batch_id, db)
    return success_response(data, "Upload batch retrieved successfully")


@router.get("/uploads/{batch_id}/rows", summary="批次行记录")
async def get_upload_rows(
    batch_id: int,
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(100, ge=1, le=1000, alias="pageSize", description="每页大小"),
    only_errors: bool = Query(False, alias="onlyErrors", description="仅错误行"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await gid_service.get_upload_rows(batch_id, db, page=page, page_size=page_size, only_errors=only_errors)
    return success_response(data, "Upload rows retrieved successfully")
