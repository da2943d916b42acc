"""
IRDesk Platform - GID上传数据模型
季度投资者数据批量上传批次与行记录
"""

import enum
from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, ForeignKey, Index, Uuid, Enum

from backend.app.core.database import Base
from backend.app.utils.datetime_utils import utcnow


class UploadStatus(enum.Enum):
    """上传批次状态"""
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class ProcessMode(enum.Enum):
    """批次处理模式"""
    UPSERT = "UPSERT"
    REPLACE = "REPLACE"
    APPEND = "APPEND"


class GidUploadBatch(Base):
    """GID上传批次表"""

    __tablename__ = "gid_upload_batches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    original_filename = Column(String(255), nullable=False, comment="原始文件名")
    status = Column(Enum(UploadStatus, name="upload_status"), nullable=False, default=UploadStatus.PENDING, comment="处理状态")
    meta = Column(JSON, comment="元数据 {totalRows, columns, fileSize, year, quarter, description}")
    uploaded_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), comment="上传人")
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    processed_at = Column(DateTime(timezone=True), comment="处理完成时间")

    __table_args__ = (
        Index("idx_gid_batch_status", "status"),
    )

    def __repr__(self):
        return f"<GidUploadBatch(id={self.id}, file='{self.original_filename}', status={self.status})>"


class GidUploadRow(Base):
    """GID上传行记录表"""

    __tablename__ = "gid_upload_rows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_id = Column(Integer, ForeignKey("gid_upload_batches.id", ondelete="CASCADE"), nullable=False, comment="批次ID")
    raw = Column(JSON, nullable=False, comment="原始行数据")
    parsed = Column(JSON, comment="解析后数据")
    mapped_investor_id = Column(Integer, ForeignKey("investors.id", ondelete="SET NULL"), comment="映射的投资者ID")
    error = Column(Text, comment="错误信息")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_gid_row_batch", "batch_id"),
    )

    def __repr__(self):
        return f"<GidUploadRow(batch_id={self.batch_id}, id={self.id})>"
