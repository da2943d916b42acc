"""
IRDesk Platform - GID上传服务
季度投资者数据文件解析、批次处理与快照写入
"""

import io
import json
import re
import zipfile
from typing import Any, Dict, List, Optional

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import select, delete, and_, func
from sqlalchemy.ext.asyncio import AsyncSession
from xlrd import XLRDError
from xlrd.compdoc import CompDocError

from backend.app.core.config import settings
from backend.app.core.exceptions import NotFoundException, UploadException, ValidationException
from backend.app.core.logging import get_logger, log_performance, audit_logger
from backend.app.models.gid import GidUploadBatch, GidUploadRow, ProcessMode, UploadStatus
from backend.app.models.investor import (
    Country,
    Investor,
    InvestorSnapshot,
    InvestorHistory,
    InvestorType,
    StyleTag,
    Turnover,
    Orientation,
)
from backend.app.models.notification import NotificationEventType
from backend.app.models.user import User
from backend.app.services.investor_service import quarter_label
from backend.app.services.notification_service import notification_service
from backend.app.utils.datetime_utils import ensure_utc, to_iso, utcnow
from backend.app.utils.investor_diff import SNAPSHOT_COLUMNS, create_snapshot_diff, snapshot_values

logger = get_logger(__name__)

ALLOWED_CONTENT_TYPES = {
    "text/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
ALLOWED_EXTENSIONS = (".csv", ".xls", ".xlsx")

# 字段 -> 可接受的列名别名 (已规范化)
COLUMN_ALIASES = {
    "rank": ("rank", "ranking"),
    "country": ("country", "countrycode", "cc"),
    "city": ("city", "location"),
    "investorName": ("investorname", "name", "investor", "company"),
    "sOverO": ("so", "soveroo"),
    "ord": ("ord",),
    "adr": ("adr",),
    "investorType": ("investortype", "type"),
    "styleTag": ("styletag", "style"),
    "styleNote": ("stylenote", "note"),
    "turnover": ("turnover",),
    "orientation": ("orientation",),
    "lastActivityAt": ("lastactivityat", "lastactivity", "date"),
}

ENUM_FIELDS = {
    "investorType": InvestorType,
    "styleTag": StyleTag,
    "turnover": Turnover,
    "orientation": Orientation,
}


def normalize_column(name: Any) -> str:
    """列名规范化: 小写并去除非字母数字字符"""
    return re.sub(r"[^a-z0-9]", "", str(name).lower())


def parse_number(value: Any) -> Optional[int]:
    """宽松解析数值, 无法解析时返回None"""
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return None if pd.isna(value) else int(round(value))
    text = str(value).strip().replace(",", "").rstrip("%")
    if not text:
        return None
    try:
        return int(round(float(text)))
    except ValueError:
        return None


def _lookup(raw: Dict[str, Any], aliases) -> Any:
    normalized = {normalize_column(key): value for key, value in raw.items()}
    for alias in aliases:
        if alias in normalized:
            value = normalized[alias]
            if value is None or (isinstance(value, str) and not value.strip()):
                return None
            if isinstance(value, float) and pd.isna(value):
                return None
            return value
    return None


def parse_gid_row(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    将原始行解析为快照字段。

    缺少投资者名称或枚举值非法时抛出 ValueError, 由调用方记录为行错误。
    """
    name = _lookup(raw, COLUMN_ALIASES["investorName"])
    if name is None:
        raise ValueError("Investor Name is required")

    parsed: Dict[str, Any] = {
        "rank": parse_number(_lookup(raw, COLUMN_ALIASES["rank"])),
        "country": None,
        "city": None,
        "investorName": str(name).strip(),
        "sOverO": parse_number(_lookup(raw, COLUMN_ALIASES["sOverO"])),
        "ord": parse_number(_lookup(raw, COLUMN_ALIASES["ord"])),
        "adr": parse_number(_lookup(raw, COLUMN_ALIASES["adr"])),
        "styleNote": None,
        "lastActivityAt": None,
    }

    country = _lookup(raw, COLUMN_ALIASES["country"])
    if country is not None:
        country = str(country).strip().upper()
        if len(country) != 2:
            raise ValueError(f"Invalid country code: {country}")
        parsed["country"] = country

    city = _lookup(raw, COLUMN_ALIASES["city"])
    if city is not None:
        parsed["city"] = str(city).strip()

    note = _lookup(raw, COLUMN_ALIASES["styleNote"])
    if note is not None:
        parsed["styleNote"] = str(note).strip()[:120]

    for field, enum_cls in ENUM_FIELDS.items():
        value = _lookup(raw, COLUMN_ALIASES[field])
        if value is None:
            parsed[field] = None
            continue
        key = re.sub(r"[\s-]+", "_", str(value).strip()).upper()
        try:
            parsed[field] = enum_cls(key).value
        except ValueError:
            raise ValueError(f"Invalid {field}: {value}")

    activity = _lookup(raw, COLUMN_ALIASES["lastActivityAt"])
    if activity is not None:
        timestamp = pd.to_datetime(activity, utc=True, errors="coerce")
        if pd.isna(timestamp):
            raise ValueError(f"Invalid lastActivityAt: {activity}")
        parsed["lastActivityAt"] = to_iso(timestamp.to_pydatetime())

    return parsed


def read_upload_records(content: bytes, filename: str, content_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """用pandas读取CSV/Excel首个工作表, 返回JSON兼容的记录列表"""
    buffer = io.BytesIO(content)
    try:
        if filename.lower().endswith(".csv") or content_type == "text/csv":
            frame = pd.read_csv(buffer, dtype=str)
        else:
            frame = pd.read_excel(buffer, sheet_name=0)
    except pd.errors.EmptyDataError:
        raise UploadException("File is empty")
    except (
        ValueError,
        UnicodeDecodeError,
        zipfile.BadZipFile,
        InvalidFileException,
        XLRDError,
        CompDocError,
    ) as e:
        raise UploadException(f"Failed to parse file: {e}")

    frame = frame.dropna(how="all")
    if frame.empty:
        raise UploadException("File is empty")

    frame.columns = [str(column) for column in frame.columns]
    return json.loads(frame.to_json(orient="records", date_format="iso", force_ascii=False))


def serialize_batch(batch: GidUploadBatch, include_processed: bool = False) -> Dict[str, Any]:
    data = {
        "id": batch.id,
        "originalFilename": batch.original_filename,
        "status": batch.status.value,
        "meta": batch.meta or {},
        "uploadedAt": to_iso(batch.uploaded_at),
    }
    if include_processed:
        data["processedAt"] = to_iso(batch.processed_at)
    return data


class GidService:
    """GID上传服务核心类"""

    def validate_file(self, filename: str, content_type: Optional[str], size: int) -> None:
        if size > settings.GID_UPLOAD_MAX_FILE_SIZE:
            raise UploadException(
                "File too large",
                {"maxSize": settings.GID_UPLOAD_MAX_FILE_SIZE, "size": size},
            )
        if content_type not in ALLOWED_CONTENT_TYPES and not filename.lower().endswith(ALLOWED_EXTENSIONS):
            raise UploadException("Invalid file type. Only CSV and Excel files are allowed.")

    @log_performance("gid_create_batch")
    async def create_upload_batch(
        self,
        filename: str,
        content_type: Optional[str],
        content: bytes,
        year: int,
        quarter: int,
        user: User,
        db: AsyncSession,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """解析上传文件, 创建PENDING批次并保存原始行"""
        self.validate_file(filename, content_type, len(content))
        records = read_upload_records(content, filename, content_type)

        batch = GidUploadBatch(
            original_filename=filename,
            status=UploadStatus.PENDING,
            meta={
                "totalRows": len(records),
                "columns": list(records[0].keys()),
                "fileSize": len(content),
                "year": year,
                "quarter": quarter,
                "description": description,
            },
            uploaded_by=user.id,
        )
        db.add(batch)
        await db.flush()

        db.add_all([GidUploadRow(batch_id=batch.id, raw=record) for record in records])
        await db.commit()

        logger.log_upload_event("gid", filename, size=len(content), records_count=len(records), batch_id=batch.id)
        return serialize_batch(batch)

    async def _get_batch(self, batch_id: int, db: AsyncSession) -> GidUploadBatch:
        batch = await db.get(GidUploadBatch, batch_id)
        if batch is None:
            raise NotFoundException(f"Upload batch {batch_id} not found")
        return batch

    @log_performance("gid_process_batch")
    async def process_upload_batch(
        self,
        batch_id: int,
        mode: ProcessMode,
        user: User,
        db: AsyncSession,
    ) -> Dict[str, Any]:
        """
        处理上传批次: 解析每一行, 映射投资者并写入快照。

        REPLACE 先清空该期间全部快照; UPSERT 对已存在快照做差异更新并记录历史;
        APPEND 遇到已存在快照时记为行错误。
        """
        batch = await self._get_batch(batch_id, db)
        if batch.status == UploadStatus.PROCESSED:
            raise ValidationException("Batch already processed")

        year = int(batch.meta["year"])
        quarter = int(batch.meta["quarter"])

        rows = (
            await db.execute(select(GidUploadRow).where(GidUploadRow.batch_id == batch_id).order_by(GidUploadRow.id))
        ).scalars().all()

        known_countries = set((await db.execute(select(Country.code))).scalars().all())

        if mode == ProcessMode.REPLACE:
            await db.execute(
                delete(InvestorSnapshot).where(
                    and_(InvestorSnapshot.year == year, InvestorSnapshot.quarter == quarter)
                )
            )

        stats = {
            "totalRows": len(rows),
            "parsedRows": 0,
            "failedRows": 0,
            "createdInvestors": 0,
            "createdSnapshots": 0,
            "updatedSnapshots": 0,
            "historyRecords": 0,
        }
        errors: List[Dict[str, Any]] = []
        mapped_investors = set()

        for index, row in enumerate(rows, start=1):
            row.error = None
            try:
                parsed = parse_gid_row(row.raw or {})
            except ValueError as e:
                row.error = str(e)
                errors.append({"row": index, "message": str(e), "data": row.raw})
                continue
            stats["parsedRows"] += 1

            if parsed["country"] and parsed["country"] not in known_countries:
                db.add(Country(code=parsed["country"], name_ko=parsed["city"] or parsed["country"], name_en=parsed["country"]))
                known_countries.add(parsed["country"])

            investor = (
                await db.execute(select(Investor).where(Investor.name == parsed["investorName"]).limit(1))
            ).scalar_one_or_none()
            if investor is None:
                investor = Investor(
                    name=parsed["investorName"],
                    country_code=parsed["country"],
                    city=parsed["city"],
                    is_group_representative=bool(parsed["rank"]),
                )
                db.add(investor)
                await db.flush()
                stats["createdInvestors"] += 1

            existing = (
                await db.execute(
                    select(InvestorSnapshot).where(
                        and_(
                            InvestorSnapshot.investor_id == investor.id,
                            InvestorSnapshot.year == year,
                            InvestorSnapshot.quarter == quarter,
                        )
                    )
                )
            ).scalar_one_or_none()

            if existing is not None and mode == ProcessMode.APPEND:
                message = f"Snapshot already exists for {parsed['investorName']} in {year} Q{quarter}"
                row.error = message
                row.mapped_investor_id = investor.id
                errors.append({"row": index, "message": message, "data": row.raw})
                continue

            values = self._snapshot_values(parsed, existing)
            if existing is not None:
                diff = create_snapshot_diff(snapshot_values(existing), values)
                if diff:
                    self._apply_values(existing, values)
                    existing.upload_batch_id = batch_id
                    existing.updated_at = utcnow()
                    db.add(
                        InvestorHistory(
                            investor_id=investor.id,
                            year=year,
                            quarter=quarter,
                            updated_by=user.id,
                            changes=diff,
                        )
                    )
                    stats["updatedSnapshots"] += 1
                    stats["historyRecords"] += 1
            else:
                snapshot = InvestorSnapshot(investor_id=investor.id, year=year, quarter=quarter, upload_batch_id=batch_id)
                self._apply_values(snapshot, values)
                db.add(snapshot)
                await db.flush()
                stats["createdSnapshots"] += 1

            row.parsed = parsed
            row.mapped_investor_id = investor.id
            mapped_investors.add(investor.id)

        stats["failedRows"] = len(errors)
        batch.status = UploadStatus.FAILED if rows and len(errors) == len(rows) else UploadStatus.PROCESSED
        batch.processed_at = utcnow()

        if batch.status == UploadStatus.PROCESSED:
            await notification_service.broadcast(
                NotificationEventType.INVESTOR_BULK_UPDATED.value,
                f"{quarter_label(year, quarter)} 투자자 데이터가 업데이트되었습니다.",
                db,
                metadata={"investorCount": len(mapped_investors), "quarter": quarter_label(year, quarter)},
                commit=False,
            )

        await db.commit()

        logger.log_upload_event(
            "gid",
            batch.original_filename,
            records_count=len(rows),
            success=batch.status == UploadStatus.PROCESSED,
            batch_id=batch_id,
            mode=mode.value,
            failed_rows=len(errors),
        )
        audit_logger.log_user_action(user.id, "process_gid_upload", "gid_upload_batch", batch_id, details=stats)

        response = {"uploadBatchId": batch_id, "status": batch.status.value, "result": stats}
        if errors:
            response["errors"] = errors
        return response

    def _snapshot_values(self, parsed: Dict[str, Any], existing: Optional[InvestorSnapshot]) -> Dict[str, Any]:
        activity = parsed.get("lastActivityAt")
        return {
            "groupRank": parsed["rank"],
            "groupChildCount": existing.group_child_count if existing is not None else None,
            "sOverO": parsed["sOverO"],
            "ord": parsed["ord"],
            "adr": parsed["adr"],
            "investorType": parsed["investorType"],
            "styleTag": parsed["styleTag"],
            "styleNote": parsed["styleNote"],
            "turnover": parsed["turnover"],
            "orientation": parsed["orientation"],
            "lastActivityAt": ensure_utc(pd.Timestamp(activity).to_pydatetime()) if activity else None,
        }

    def _apply_values(self, snapshot: InvestorSnapshot, values: Dict[str, Any]) -> None:
        for field, value in values.items():
            enum_cls = ENUM_FIELDS.get(field)
            if enum_cls is not None and value is not None:
                value = enum_cls(value)
            setattr(snapshot, SNAPSHOT_COLUMNS[field], value)

    async def get_upload_batch(self, batch_id: int, db: AsyncSession) -> Dict[str, Any]:
        batch = await self._get_batch(batch_id, db)
        return serialize_batch(batch, include_processed=True)

    async def get_upload_rows(
        self,
        batch_id: int,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 100,
        only_errors: bool = False,
    ) -> Dict[str, Any]:
        """批次行记录, 可只看错误行"""
        await self._get_batch(batch_id, db)

        conditions = [GidUploadRow.batch_id == batch_id]
        if only_errors:
            conditions.append(GidUploadRow.error.is_not(None))

        result = await db.execute(
            select(GidUploadRow)
            .where(and_(*conditions))
            .order_by(GidUploadRow.id)
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        total = (
            await db.execute(select(func.count()).select_from(GidUploadRow).where(and_(*conditions)))
        ).scalar_one()

        return {
            "uploadBatchId": batch_id,
            "page": page,
            "pageSize": page_size,
            "total": total,
            "rows": [
                {
                    "id": row.id,
                    "raw": row.raw,
                    "parsed": row.parsed,
                    "mappedInvestorId": row.mapped_investor_id,
                    "error": row.error,
                    "createdAt": to_iso(row.created_at),
                }
                for row in result.scalars().all()
            ],
        }


# 创建全局服务实例
gid_service = GidService()
