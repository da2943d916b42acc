"""
IRDesk Platform - 文件上传API端点
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from backend.app.core.deps import get_optional_user
from backend.app.core.exceptions import UploadException
from backend.app.models.user import User
from backend.app.services.file_service import file_service

router = APIRouter()


async def _store(file: Optional[UploadFile], original_filename: Optional[str], user: Optional[User]):
    if file is None or not file.filename:
        raise UploadException("No file uploaded")
    content = await file.read()
    return await file_service.save(
        content,
        original_filename or file.filename,
        file.content_type,
        uploaded_by=str(user.id) if user is not None else None,
    )


@router.post("/uploads", status_code=status.HTTP_201_CREATED, summary="上传文件")
async def upload(
    file: Optional[UploadFile] = File(None, description="文件"),
    original_filename: Optional[str] = Form(None, alias="originalFilename", description="原始文件名"),
    current_user: Optional[User] = Depends(get_optional_user),
):
    return await _store(file, original_filename, current_user)


@router.post("/files/upload", status_code=status.HTTP_201_CREATED, summary="上传文件 (兼容路径)")
async def upload_file(
    file: Optional[UploadFile] = File(None, description="文件"),
    original_filename: Optional[str] = Form(None, alias="originalFilename", description="原始文件名"),
    current_user: Optional[User] = Depends(get_optional_user),
):
    return await _store(file, original_filename, current_user)
