"""
IRDesk Platform - IR活动服务
IR活动的日历/列表/时间线视图、增删改、状态流转、附件与统计洞察
"""

import random
import string
import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd
from sqlalchemy import select, delete, and_, asc, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import NotFoundException, UploadException, ValidationException
from backend.app.core.logging import get_logger, log_performance, audit_logger
from backend.app.models.ir import (
    IRActivity,
    IRSubActivity,
    IRActivityKbParticipant,
    IRActivityVisitor,
    IRActivityKeyword,
    IRActivityAttachment,
    IRActivityLog,
    IRSubActivityKbParticipant,
    IRSubActivityVisitor,
    IRSubActivityKeyword,
    IRActivityStatus,
    IRActivityCategory,
    IRLogType,
    VisitorType,
    IR_ACTIVITY_LIMITS,
    ALLOWED_ATTACHMENT_TYPES,
)
from backend.app.models.user import User
from backend.app.services.file_service import file_service
from backend.app.utils.datetime_utils import ensure_utc, to_iso, utcnow

logger = get_logger(__name__)

SORT_COLUMNS = {
    "startDatetime": IRActivity.start_datetime,
    "updatedAt": IRActivity.updated_at,
    "title": IRActivity.title,
    "status": IRActivity.status,
}

# 活动主表中可直接赋值的字段
ACTIVITY_FIELDS = (
    "title",
    "all_day",
    "location",
    "description",
    "type_primary",
    "type_secondary",
    "memo",
    "content_html",
    "owner_id",
)

INSIGHT_TOP_N = 10


def generate_id(prefix: str) -> str:
    """生成 "<prefix>-<毫秒时间戳>-<7位随机串>" 形式的ID"""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def _enum_value(value: Any) -> Any:
    return value.value if value is not None and hasattr(value, "value") else value


def _percentage(count: int, total: int) -> float:
    return round(count / total * 100, 1) if total else 0.0


def collect_visitors(kbs: Optional[Iterable[str]], visitors: Optional[Iterable[Any]]) -> List[Dict[str, Any]]:
    """
    合并内部人员与外部访客。

    kbs 记为 kb 类型; 访客可以是名称字符串(默认 investor)或对象; 同名访客只保留第一个。
    """
    collected: List[Dict[str, Any]] = []
    seen = set()

    def push(name: str, visitor_type: str, company: Optional[str] = None):
        if name and name not in seen:
            seen.add(name)
            collected.append({"visitor_name": name, "visitor_type": VisitorType(visitor_type), "company": company})

    for name in kbs or []:
        push(name, VisitorType.kb.value)
    for visitor in visitors or []:
        if isinstance(visitor, str):
            push(visitor, VisitorType.investor.value)
        else:
            push(
                visitor.get("visitor_name"),
                _enum_value(visitor.get("visitor_type")) or VisitorType.investor.value,
                visitor.get("company"),
            )
    return collected


def _unique(items: Iterable[Any], key=lambda item: item) -> List[Any]:
    seen = set()
    result = []
    for item in items:
        marker = key(item)
        if marker not in seen:
            seen.add(marker)
            result.append(item)
    return result


def serialize_sub_activity(sub: IRSubActivity, parent: IRActivity, owner_name: Optional[str]) -> Dict[str, Any]:
    """细分活动, 未设置的类别与类型继承父活动"""
    return {
        "id": sub.id,
        "title": sub.title,
        "owner": owner_name,
        "status": _enum_value(sub.status),
        "startDatetime": to_iso(sub.start_datetime),
        "endDatetime": to_iso(sub.end_datetime),
        "allDay": bool(sub.all_day),
        "category": _enum_value(sub.category) or _enum_value(parent.category),
        "location": sub.location,
        "description": sub.description,
        "typePrimary": sub.type_primary or parent.type_primary,
        "typeSecondary": sub.type_secondary,
        "memo": sub.memo,
        "contentHtml": sub.content_html,
        "displayOrder": sub.display_order,
    }


def serialize_attachment(attachment: IRActivityAttachment, uploader_name: Optional[str]) -> Dict[str, Any]:
    return {
        "id": attachment.id,
        "name": attachment.file_name,
        "url": attachment.storage_url,
        "size": attachment.file_size,
        "uploadedAtISO": to_iso(attachment.uploaded_at),
        "uploadedBy": uploader_name,
        "mime": attachment.mime_type,
    }


class IRService:
    """IR活动服务核心类"""

    # ---------- 查询 ----------

    def _range_conditions(
        self,
        start: datetime,
        end: datetime,
        status: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[Any]:
        conditions = [
            IRActivity.start_datetime >= ensure_utc(start),
            IRActivity.start_datetime <= ensure_utc(end),
        ]
        if status and status != "ALL":
            conditions.append(IRActivity.status == IRActivityStatus(status))
        if category:
            conditions.append(IRActivity.category == IRActivityCategory(category))
        return conditions

    async def _user_names(self, user_ids: Iterable[Any], db: AsyncSession) -> Dict[Any, str]:
        ids = {user_id for user_id in user_ids if user_id is not None}
        if not ids:
            return {}
        result = await db.execute(select(User.id, User.name).where(User.id.in_(ids)))
        return {user_id: name for user_id, name in result.all()}

    async def get_calendar_events(
        self,
        start: datetime,
        end: datetime,
        db: AsyncSession,
        status: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Dict[str, Any]:
        """日历视图: 期间内开始的活动, 按开始时间升序"""
        result = await db.execute(
            select(IRActivity)
            .where(and_(*self._range_conditions(start, end, status, category)))
            .order_by(asc(IRActivity.start_datetime), IRActivity.id)
        )
        return {
            "events": [
                {
                    "id": activity.id,
                    "title": activity.title,
                    "start": to_iso(activity.start_datetime),
                    "end": to_iso(activity.end_datetime),
                    "allDay": bool(activity.all_day),
                    "category": _enum_value(activity.category),
                    "location": activity.location,
                    "description": activity.description,
                    "status": _enum_value(activity.status),
                }
                for activity in result.scalars().all()
            ]
        }

    @log_performance("ir_list_view")
    async def get_list_view(
        self,
        start: datetime,
        end: datetime,
        db: AsyncSession,
        status: Optional[str] = None,
        category: Optional[str] = None,
        sort_by: str = "startDatetime",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        """列表视图, 附带访客、券商、内部参与人与负责人名称"""
        column = SORT_COLUMNS.get(sort_by, IRActivity.start_datetime)
        ordering = asc(column) if sort_order == "asc" else desc(column)

        activities = (
            await db.execute(
                select(IRActivity)
                .where(and_(*self._range_conditions(start, end, status, category)))
                .order_by(ordering, IRActivity.id)
            )
        ).scalars().all()
        activity_ids = [activity.id for activity in activities]

        visitors: Dict[str, List[IRActivityVisitor]] = {}
        participants: Dict[str, List[str]] = {}
        if activity_ids:
            for visitor in (
                await db.execute(
                    select(IRActivityVisitor)
                    .where(IRActivityVisitor.activity_id.in_(activity_ids))
                    .order_by(IRActivityVisitor.created_at, IRActivityVisitor.visitor_name)
                )
            ).scalars().all():
                visitors.setdefault(visitor.activity_id, []).append(visitor)

            for activity_id, name in (
                await db.execute(
                    select(IRActivityKbParticipant.activity_id, User.name)
                    .join(User, User.id == IRActivityKbParticipant.user_id)
                    .where(IRActivityKbParticipant.activity_id.in_(activity_ids))
                    .order_by(IRActivityKbParticipant.created_at, User.name)
                )
            ).all():
                participants.setdefault(activity_id, []).append(name)

        owners = await self._user_names((activity.owner_id for activity in activities), db)

        items = []
        for activity in activities:
            activity_visitors = visitors.get(activity.id, [])
            items.append(
                {
                    "id": activity.id,
                    "title": activity.title,
                    "startISO": to_iso(activity.start_datetime),
                    "endISO": to_iso(activity.end_datetime),
                    "typePrimary": activity.type_primary,
                    "status": _enum_value(activity.status),
                    "category": _enum_value(activity.category),
                    "investors": [v.visitor_name for v in activity_visitors if v.visitor_type == VisitorType.investor],
                    "brokers": [v.visitor_name for v in activity_visitors if v.visitor_type == VisitorType.broker],
                    "kbParticipants": participants.get(activity.id, []),
                    "owner": owners.get(activity.owner_id),
                    "updatedAtISO": to_iso(activity.updated_at),
                }
            )
        return {"activities": items, "total": len(items)}

    async def _sub_activities(self, parent_ids: List[str], db: AsyncSession) -> Dict[str, List[IRSubActivity]]:
        grouped: Dict[str, List[IRSubActivity]] = {}
        if not parent_ids:
            return grouped
        result = await db.execute(
            select(IRSubActivity)
            .where(IRSubActivity.parent_activity_id.in_(parent_ids))
            .order_by(IRSubActivity.display_order, IRSubActivity.created_at)
        )
        for sub in result.scalars().all():
            grouped.setdefault(sub.parent_activity_id, []).append(sub)
        return grouped

    async def get_timeline_activities(
        self,
        start: datetime,
        end: datetime,
        db: AsyncSession,
        status: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Dict[str, Any]:
        """时间线视图, 含细分活动"""
        activities = (
            await db.execute(
                select(IRActivity)
                .where(and_(*self._range_conditions(start, end, status, category)))
                .order_by(asc(IRActivity.start_datetime), IRActivity.id)
            )
        ).scalars().all()

        subs = await self._sub_activities([activity.id for activity in activities], db)
        owners = await self._user_names((sub.owner_id for items in subs.values() for sub in items), db)

        return {
            "activities": [
                {
                    "id": activity.id,
                    "title": activity.title,
                    "startISO": to_iso(activity.start_datetime),
                    "endISO": to_iso(activity.end_datetime or activity.start_datetime),
                    "status": _enum_value(activity.status),
                    "subActivities": [
                        serialize_sub_activity(sub, activity, owners.get(sub.owner_id))
                        for sub in subs.get(activity.id, [])
                    ],
                }
                for activity in activities
            ]
        }

    async def _get_activity(self, activity_id: str, db: AsyncSession) -> IRActivity:
        activity = await db.get(IRActivity, activity_id)
        if activity is None:
            raise NotFoundException(f"IR Activity with ID {activity_id} not found")
        return activity

    @log_performance("ir_find_one")
    async def find_one(self, activity_id: str, db: AsyncSession) -> Dict[str, Any]:
        """活动完整详情"""
        activity = await self._get_activity(activity_id, db)

        participant_names = list(
            (
                await db.execute(
                    select(User.name)
                    .join(IRActivityKbParticipant, IRActivityKbParticipant.user_id == User.id)
                    .where(IRActivityKbParticipant.activity_id == activity_id)
                    .order_by(IRActivityKbParticipant.created_at, User.name)
                )
            ).scalars().all()
        )
        visitors = (
            await db.execute(
                select(IRActivityVisitor)
                .where(IRActivityVisitor.activity_id == activity_id)
                .order_by(IRActivityVisitor.created_at, IRActivityVisitor.visitor_name)
            )
        ).scalars().all()
        keywords = (
            await db.execute(
                select(IRActivityKeyword.keyword)
                .where(IRActivityKeyword.activity_id == activity_id)
                .order_by(IRActivityKeyword.display_order)
            )
        ).scalars().all()
        attachments = (
            await db.execute(
                select(IRActivityAttachment, User.name)
                .outerjoin(User, User.id == IRActivityAttachment.uploaded_by)
                .where(IRActivityAttachment.activity_id == activity_id)
                .order_by(IRActivityAttachment.uploaded_at, IRActivityAttachment.id)
            )
        ).all()
        logs = (
            await db.execute(
                select(IRActivityLog)
                .where(IRActivityLog.activity_id == activity_id)
                .order_by(desc(IRActivityLog.created_at), desc(IRActivityLog.id))
                .limit(200)
            )
        ).scalars().all()

        subs = (await self._sub_activities([activity_id], db)).get(activity_id, [])
        names = await self._user_names([activity.owner_id] + [sub.owner_id for sub in subs], db)
        attachment_items = [serialize_attachment(a, uploader) for a, uploader in attachments]

        return {
            "id": activity.id,
            "title": activity.title,
            "startISO": to_iso(activity.start_datetime),
            "endISO": to_iso(activity.end_datetime),
            "status": _enum_value(activity.status),
            "allDay": bool(activity.all_day),
            "category": _enum_value(activity.category),
            "location": activity.location,
            "description": activity.description,
            "typePrimary": activity.type_primary,
            "typeSecondary": activity.type_secondary,
            "kbs": participant_names + [v.visitor_name for v in visitors if v.visitor_type == VisitorType.kb],
            "visitors": [v.visitor_name for v in visitors if v.visitor_type != VisitorType.kb],
            "investors": [v.visitor_name for v in visitors if v.visitor_type == VisitorType.investor],
            "brokers": [v.visitor_name for v in visitors if v.visitor_type == VisitorType.broker],
            "memo": activity.memo,
            "contentHtml": activity.content_html,
            "keywords": list(keywords),
            "attachments": attachment_items,
            "files": attachment_items,
            "subActivities": [serialize_sub_activity(sub, activity, names.get(sub.owner_id)) for sub in subs],
            "owner": names.get(activity.owner_id),
            "logs": [
                {
                    "id": log.id,
                    "type": log.log_type.value,
                    "user": log.user_name,
                    "message": log.message,
                    "createdAtISO": to_iso(log.created_at),
                    "oldValue": log.old_value,
                    "newValue": log.new_value,
                }
                for log in logs
            ],
            "createdAtISO": to_iso(activity.created_at),
            "updatedAtISO": to_iso(activity.updated_at),
            "resolvedAtISO": to_iso(activity.resolved_at),
        }

    # ---------- 写入 ----------

    async def _check_users(self, user_ids: Iterable[Any], db: AsyncSession) -> None:
        ids = {user_id for user_id in user_ids if user_id is not None}
        if not ids:
            return
        found = set((await db.execute(select(User.id).where(User.id.in_(ids)))).scalars().all())
        missing = ids - found
        if missing:
            raise ValidationException("Unknown user reference", {"userIds": sorted(str(m) for m in missing)})

    def _log(
        self,
        db: AsyncSession,
        activity_id: str,
        log_type: IRLogType,
        user: User,
        message: str,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
    ) -> None:
        db.add(
            IRActivityLog(
                id=generate_id("log"),
                activity_id=activity_id,
                log_type=log_type,
                user_id=user.id,
                user_name=user.name,
                message=message,
                old_value=old_value,
                new_value=new_value,
            )
        )

    def _apply_activity_fields(self, target: Any, data: Dict[str, Any]) -> None:
        for field in ACTIVITY_FIELDS:
            if field in data:
                setattr(target, field, data[field])
        if "status" in data and data["status"] is not None:
            target.status = IRActivityStatus(_enum_value(data["status"]))
        if "category" in data:
            category = _enum_value(data["category"])
            target.category = IRActivityCategory(category) if category else None
        if "start_datetime" in data:
            target.start_datetime = ensure_utc(data["start_datetime"])
        if "end_datetime" in data:
            target.end_datetime = ensure_utc(data["end_datetime"])

    async def _replace_participants(self, model, key: str, owner_id: str, participants, db: AsyncSession) -> None:
        await db.execute(delete(model).where(getattr(model, key) == owner_id))
        participants = _unique(participants or [], key=lambda p: p["user_id"])
        await self._check_users((p["user_id"] for p in participants), db)
        for participant in participants:
            db.add(model(**{key: owner_id}, user_id=participant["user_id"], role=participant.get("role")))

    async def _replace_visitors(self, model, key: str, owner_id: str, visitors: List[Dict[str, Any]], db: AsyncSession) -> None:
        await db.execute(delete(model).where(getattr(model, key) == owner_id))
        for visitor in visitors:
            db.add(model(**{key: owner_id}, **visitor))

    async def _replace_keywords(self, model, key: str, owner_id: str, keywords: List[str], db: AsyncSession) -> None:
        await db.execute(delete(model).where(getattr(model, key) == owner_id))
        keywords = _unique(keywords or [])[: IR_ACTIVITY_LIMITS["max_keywords"]]
        for index, keyword in enumerate(keywords):
            db.add(model(**{key: owner_id}, keyword=keyword, display_order=index))

    async def _create_sub_activity(
        self, activity_id: str, data: Dict[str, Any], display_order: int, db: AsyncSession
    ) -> IRSubActivity:
        await self._check_users([data.get("owner_id")], db)
        sub = IRSubActivity(
            id=generate_id("sub"),
            parent_activity_id=activity_id,
            status=IRActivityStatus.SCHEDULED,
            all_day=False,
            display_order=display_order,
        )
        self._apply_activity_fields(sub, data)
        db.add(sub)
        await db.flush()
        await self._write_sub_relations(sub.id, data, db)
        return sub

    async def _write_sub_relations(self, sub_id: str, data: Dict[str, Any], db: AsyncSession) -> None:
        if "kb_participants" in data:
            await self._replace_participants(
                IRSubActivityKbParticipant, "sub_activity_id", sub_id, data["kb_participants"], db
            )
        if "visitors" in data:
            await self._replace_visitors(
                IRSubActivityVisitor, "sub_activity_id", sub_id, collect_visitors(None, data["visitors"]), db
            )
        if "keywords" in data:
            await self._replace_keywords(IRSubActivityKeyword, "sub_activity_id", sub_id, data["keywords"], db)

    @log_performance("ir_create")
    async def create(self, data: Dict[str, Any], user: User, db: AsyncSession) -> Dict[str, Any]:
        """创建IR活动及其参与人、访客、关键词与细分活动"""
        data = dict(data)
        data.setdefault("owner_id", None)
        data["owner_id"] = data["owner_id"] or user.id
        await self._check_users([data["owner_id"]], db)

        activity = IRActivity(id=generate_id("act"), status=IRActivityStatus.SCHEDULED, all_day=False)
        self._apply_activity_fields(activity, data)
        db.add(activity)
        await db.flush()

        await self._replace_participants(
            IRActivityKbParticipant, "activity_id", activity.id, data.get("kb_participants"), db
        )
        await self._replace_visitors(
            IRActivityVisitor, "activity_id", activity.id, collect_visitors(data.get("kbs"), data.get("visitors")), db
        )
        await self._replace_keywords(IRActivityKeyword, "activity_id", activity.id, data.get("keywords"), db)

        for index, sub_data in enumerate(data.get("sub_activities") or []):
            await self._create_sub_activity(activity.id, sub_data, index, db)

        self._log(db, activity.id, IRLogType.create, user, f"{user.name} 님이 IR활동을 생성했습니다.")
        await db.commit()

        audit_logger.log_user_action(user.id, "create", "ir_activity", activity.id)
        return await self.find_one(activity.id, db)

    @log_performance("ir_update")
    async def update(self, activity_id: str, data: Dict[str, Any], user: User, db: AsyncSession) -> Dict[str, Any]:
        """
        部分更新。

        提供的关系列表整体替换; 带 id 的细分活动原地更新。
        """
        activity = await self._get_activity(activity_id, db)

        if "owner_id" in data:
            await self._check_users([data["owner_id"]], db)
        self._apply_activity_fields(activity, data)
        activity.updated_at = utcnow()

        if "kb_participants" in data:
            await self._replace_participants(
                IRActivityKbParticipant, "activity_id", activity_id, data["kb_participants"], db
            )

        if "kbs" in data or "visitors" in data:
            current = (
                await db.execute(
                    select(IRActivityVisitor.visitor_name, IRActivityVisitor.visitor_type, IRActivityVisitor.company)
                    .where(IRActivityVisitor.activity_id == activity_id)
                    .order_by(IRActivityVisitor.created_at, IRActivityVisitor.visitor_name)
                )
            ).all()
            kbs = data["kbs"] if "kbs" in data else [name for name, kind, _ in current if kind == VisitorType.kb]
            if "visitors" in data:
                visitors = data["visitors"]
            else:
                visitors = [
                    {"visitor_name": name, "visitor_type": kind, "company": company}
                    for name, kind, company in current
                    if kind != VisitorType.kb
                ]
            await self._replace_visitors(
                IRActivityVisitor, "activity_id", activity_id, collect_visitors(kbs, visitors), db
            )

        if "keywords" in data:
            await self._replace_keywords(IRActivityKeyword, "activity_id", activity_id, data["keywords"], db)

        for sub_data in data.get("sub_activities") or []:
            sub_id = sub_data.get("id")
            if not sub_id:
                continue
            sub = await db.get(IRSubActivity, sub_id)
            if sub is None or sub.parent_activity_id != activity_id:
                continue
            if "owner_id" in sub_data:
                await self._check_users([sub_data["owner_id"]], db)
            self._apply_activity_fields(sub, sub_data)
            sub.updated_at = utcnow()
            await self._write_sub_relations(sub.id, sub_data, db)

        self._log(db, activity_id, IRLogType.update, user, f"{user.name} 님이 내용을 변경했습니다.")
        await db.commit()

        audit_logger.log_user_action(user.id, "update", "ir_activity", activity_id)
        return await self.find_one(activity_id, db)

    async def update_status(self, activity_id: str, status: str, user: User, db: AsyncSession) -> Dict[str, Any]:
        """变更状态, 完成时记录完成时间"""
        activity = await self._get_activity(activity_id, db)
        old_status = _enum_value(activity.status)
        new_status = IRActivityStatus(_enum_value(status))

        activity.status = new_status
        activity.updated_at = utcnow()
        if new_status == IRActivityStatus.COMPLETED:
            activity.resolved_at = utcnow()

        self._log(
            db,
            activity_id,
            IRLogType.status,
            user,
            f"{user.name} 님이 상태를 변경했습니다.",
            old_value=old_status,
            new_value=new_status.value,
        )
        await db.commit()
        return await self.find_one(activity_id, db)

    async def remove(self, activity_id: str, user: User, db: AsyncSession) -> None:
        activity = await self._get_activity(activity_id, db)
        await db.execute(delete(IRActivity).where(IRActivity.id == activity.id))
        await db.commit()
        audit_logger.log_user_action(user.id, "delete", "ir_activity", activity_id)

    async def add_sub_activity(
        self, activity_id: str, data: Dict[str, Any], user: User, db: AsyncSession
    ) -> Dict[str, Any]:
        """追加细分活动, 排在现有细分活动之后"""
        activity = await self._get_activity(activity_id, db)
        existing = (
            await db.execute(
                select(func.count()).select_from(IRSubActivity).where(IRSubActivity.parent_activity_id == activity_id)
            )
        ).scalar_one()

        sub = await self._create_sub_activity(activity_id, data, existing, db)
        self._log(db, activity_id, IRLogType.sub_activity, user, f"{user.name} 님이 세부 활동을 추가했습니다.", new_value=sub.title)
        await db.commit()

        owners = await self._user_names([sub.owner_id], db)
        return serialize_sub_activity(sub, activity, owners.get(sub.owner_id))

    @log_performance("ir_attachment_upload")
    async def add_attachment(
        self,
        activity_id: str,
        filename: str,
        content_type: Optional[str],
        content: bytes,
        user: User,
        db: AsyncSession,
    ) -> Dict[str, Any]:
        """上传活动附件, 校验类型、单文件大小、数量与总大小限制"""
        await self._get_activity(activity_id, db)

        if content_type not in ALLOWED_ATTACHMENT_TYPES and content_type != "image/jpg":
            raise UploadException("Unsupported attachment type", {"contentType": content_type})
        if len(content) > IR_ACTIVITY_LIMITS["max_file_size"]:
            raise UploadException("File too large", {"maxSize": IR_ACTIVITY_LIMITS["max_file_size"]})

        count, total_size = (
            await db.execute(
                select(func.count(), func.coalesce(func.sum(IRActivityAttachment.file_size), 0))
                .where(IRActivityAttachment.activity_id == activity_id)
            )
        ).one()
        if count >= IR_ACTIVITY_LIMITS["max_files"]:
            raise UploadException("Too many attachments", {"maxFiles": IR_ACTIVITY_LIMITS["max_files"]})
        if total_size + len(content) > IR_ACTIVITY_LIMITS["max_total_file_size"]:
            raise UploadException("Total attachment size exceeded", {"maxTotalSize": IR_ACTIVITY_LIMITS["max_total_file_size"]})

        stored = await file_service.save(
            content,
            filename,
            content_type,
            max_size=IR_ACTIVITY_LIMITS["max_file_size"],
            uploaded_by=str(user.id),
        )
        attachment = IRActivityAttachment(
            id=generate_id("att"),
            activity_id=activity_id,
            file_name=filename,
            file_size=len(content),
            mime_type=content_type,
            storage_url=stored["url"],
            uploaded_by=user.id,
        )
        db.add(attachment)
        self._log(db, activity_id, IRLogType.attachment, user, f"{user.name} 님이 파일을 첨부했습니다.", new_value=filename)
        await db.commit()
        return serialize_attachment(attachment, user.name)

    # ---------- 统计洞察 ----------

    @log_performance("ir_insights")
    async def get_insights(
        self,
        db: AsyncSession,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        期间内IR活动统计 (默认最近12个月)。

        汇总、按月/季度状态分布、类型/类别分布、主要投资者、员工排名及热门关键词。
        """
        end = ensure_utc(end) or utcnow()
        start = ensure_utc(start) or (pd.Timestamp(end) - pd.DateOffset(months=12)).to_pydatetime()

        activities = (
            await db.execute(
                select(IRActivity)
                .where(and_(IRActivity.start_datetime >= start, IRActivity.start_datetime <= end))
                .order_by(IRActivity.start_datetime)
            )
        ).scalars().all()

        statuses = [item.value for item in IRActivityStatus]
        result: Dict[str, Any] = {
            "summary": {
                "totalActivities": len(activities),
                "totalSubActivities": 0,
                "uniqueInvestors": 0,
                "uniqueCompanies": 0,
                "activeKbStaff": 0,
            },
            "activityStatsByMonth": [],
            "activityStatsByQuarter": [],
            "distributionByType": [],
            "distributionByCategory": [],
            "statusOverview": [],
            "topInvestors": [],
            "staffRanking": [],
            "topKeywords": [],
            "dateRange": {"startISO": to_iso(start), "endISO": to_iso(end)},
        }
        if not activities:
            return result

        frame = pd.DataFrame(
            [
                {
                    "id": a.id,
                    "start": pd.Timestamp(ensure_utc(a.start_datetime)),
                    "status": _enum_value(a.status),
                    "category": _enum_value(a.category),
                    "typePrimary": a.type_primary,
                    "ownerId": a.owner_id,
                }
                for a in activities
            ]
        )
        ids = frame["id"].tolist()
        total = len(frame)

        sub_count = (
            await db.execute(
                select(func.count()).select_from(IRSubActivity).where(IRSubActivity.parent_activity_id.in_(ids))
            )
        ).scalar_one()

        visitors = pd.DataFrame(
            [
                {"activityId": v.activity_id, "name": v.visitor_name, "type": _enum_value(v.visitor_type), "company": v.company}
                for v in (
                    await db.execute(select(IRActivityVisitor).where(IRActivityVisitor.activity_id.in_(ids)))
                ).scalars().all()
            ],
            columns=["activityId", "name", "type", "company"],
        )
        participants = pd.DataFrame(
            (
                await db.execute(
                    select(IRActivityKbParticipant.activity_id, IRActivityKbParticipant.user_id)
                    .where(IRActivityKbParticipant.activity_id.in_(ids))
                )
            ).all(),
            columns=["activityId", "userId"],
        )
        keywords = pd.DataFrame(
            (
                await db.execute(
                    select(IRActivityKeyword.activity_id, IRActivityKeyword.keyword)
                    .where(IRActivityKeyword.activity_id.in_(ids))
                )
            ).all(),
            columns=["activityId", "keyword"],
        )

        investors = visitors[visitors["type"] == VisitorType.investor.value]
        staff_ids = set(frame["ownerId"].dropna()) | set(participants["userId"])

        result["summary"].update(
            {
                "totalSubActivities": sub_count,
                "uniqueInvestors": int(investors["name"].nunique()),
                "uniqueCompanies": int(visitors[visitors["type"] != VisitorType.kb.value]["company"].dropna().nunique()),
                "activeKbStaff": len(staff_ids),
            }
        )

        naive_start = frame["start"].dt.tz_convert(None)
        frame["month"] = naive_start.dt.strftime("%Y-%m")
        frame["quarter"] = naive_start.dt.year.astype(str) + "-Q" + naive_start.dt.quarter.astype(str)
        for key, column in (("activityStatsByMonth", "month"), ("activityStatsByQuarter", "quarter")):
            table = pd.crosstab(frame[column], frame["status"]).reindex(columns=statuses, fill_value=0)
            result[key] = [
                {
                    "period": period,
                    "total": int(row.sum()),
                    "byStatus": {status: int(row[status]) for status in statuses},
                }
                for period, row in table.sort_index().iterrows()
            ]

        for key, column in (
            ("distributionByType", "typePrimary"),
            ("distributionByCategory", "category"),
            ("statusOverview", "status"),
        ):
            counts = frame[column].fillna("UNKNOWN").value_counts()
            result[key] = [
                {column: value, "count": int(count), "percentage": _percentage(int(count), total)}
                for value, count in counts.items()
            ]

        if not investors.empty:
            merged = investors.merge(frame[["id", "start"]], left_on="activityId", right_on="id")
            grouped = (
                merged.groupby("name")
                .agg(
                    company=("company", "first"),
                    activityCount=("activityId", "nunique"),
                    lastActivityDate=("start", "max"),
                )
                .sort_values(["activityCount", "lastActivityDate"], ascending=[False, False])
                .head(INSIGHT_TOP_N)
            )
            result["topInvestors"] = [
                {
                    "visitorName": name,
                    "company": row["company"] if pd.notna(row["company"]) else None,
                    "activityCount": int(row["activityCount"]),
                    "lastActivityDate": to_iso(row["lastActivityDate"].to_pydatetime()),
                }
                for name, row in grouped.iterrows()
            ]

        as_owner = frame["ownerId"].dropna().value_counts()
        as_participant = participants["userId"].value_counts()
        staff_names = await self._user_names(staff_ids, db)
        ranking = [
            {
                "userId": str(user_id),
                "userName": staff_names.get(user_id, "Unknown"),
                "activityCount": int(as_owner.get(user_id, 0)) + int(as_participant.get(user_id, 0)),
                "asOwner": int(as_owner.get(user_id, 0)),
                "asParticipant": int(as_participant.get(user_id, 0)),
            }
            for user_id in staff_ids
        ]
        result["staffRanking"] = sorted(ranking, key=lambda item: (-item["activityCount"], item["userName"]))

        if not keywords.empty:
            result["topKeywords"] = [
                {"keyword": keyword, "count": int(count)}
                for keyword, count in keywords["keyword"].value_counts().head(INSIGHT_TOP_N).items()
            ]

        return result


# 创建全局服务实例
ir_service = IRService()
