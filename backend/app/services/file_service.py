"""
IRDesk Platform - 文件存储服务
上传文件保存到本地目录, 通过静态路径对外访问
"""

import asyncio
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from backend.app.core.config import settings
from backend.app.core.exceptions import StorageException, UploadException
from backend.app.core.logging import get_logger

logger = get_logger(__name__)


class FileService:
    """本地文件存储"""

    def __init__(self, upload_dir: Optional[str] = None, base_url: Optional[str] = None):
        self._upload_dir = upload_dir
        self._base_url = base_url

    @property
    def upload_dir(self) -> Path:
        return Path(self._upload_dir or settings.UPLOAD_DIR)

    @property
    def base_url(self) -> str:
        return (self._base_url or settings.UPLOAD_BASE_URL).rstrip("/")

    async def save(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
        max_size: Optional[int] = None,
        uploaded_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """保存文件, 返回 {id, filename, url, size, contentType, meta}"""
        if not content:
            raise UploadException("Invalid file", {"reason": "empty file"})

        limit = max_size or settings.UPLOAD_MAX_FILE_SIZE
        if len(content) > limit:
            raise UploadException("File too large", {"maxSize": limit, "size": len(content)})

        file_id = str(uuid.uuid4())
        suffix = Path(filename).suffix.lower()
        stored_name = f"{file_id}{suffix}"
        target = self.upload_dir / stored_name

        try:
            await asyncio.to_thread(self._write, target, content)
        except OSError as e:
            logger.error("File write failed", path=str(target), error=str(e))
            raise StorageException("Upload failed", {"reason": str(e)})

        logger.log_upload_event("file", filename, size=len(content), stored_as=stored_name)
        return {
            "id": file_id,
            "filename": filename,
            "url": f"{self.base_url}/{stored_name}",
            "size": len(content),
            "contentType": content_type or "application/octet-stream",
            "meta": {"storage": "local", "path": stored_name, "uploadedBy": uploaded_by},
        }

    def _write(self, target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)


# 创建全局服务实例
file_service = FileService()
