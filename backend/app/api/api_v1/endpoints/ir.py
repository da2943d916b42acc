"""
IRDesk Platform - IR活动API端点
日历/列表/时间线视图、活动增删改、状态变更、细分活动、附件与统计洞察
"""

import uuid
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from pydantic import Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.schemas import CamelModel, reject_null, success_response
from backend.app.core.database import get_db
from backend.app.core.deps import get_current_user
from backend.app.core.exceptions import UploadException
from backend.app.core.logging import get_logger
from backend.app.models.ir import IRActivityCategory, IRActivityStatus, VisitorType, IR_ACTIVITY_LIMITS
from backend.app.models.user import User
from backend.app.services.ir_service import ir_service

logger = get_logger(__name__)

router = APIRouter()

STATUS_FILTER_PATTERN = r"^(ALL|SCHEDULED|IN_PROGRESS|COMPLETED|SUSPENDED)$"

KeywordItem = Annotated[str, Field(min_length=1, max_length=50)]


class KbParticipantItem(CamelModel):
    """内部参与人"""
    user_id: uuid.UUID = Field(..., description="用户ID")
    role: Optional[str] = Field(None, max_length=50, description="角色")


class VisitorItem(CamelModel):
    """外部访客"""
    visitor_name: str = Field(..., min_length=1, max_length=255, description="访客名称")
    visitor_type: Optional[VisitorType] = Field(None, description="访客类型 investor/broker/kb")
    company: Optional[str] = Field(None, max_length=255, description="所属机构")


class ActivityFields(CamelModel):
    """活动与细分活动共用字段"""
    owner_id: Optional[uuid.UUID] = Field(None, description="负责人ID")
    end_datetime: Optional[datetime] = Field(None, description="结束时间")
    all_day: Optional[bool] = Field(None, description="全天")
    location: Optional[str] = Field(None, max_length=255, description="地点")
    description: Optional[str] = Field(None, description="描述")
    type_secondary: Optional[str] = Field(None, max_length=50, description="活动类型小类")
    memo: Optional[str] = Field(None, description="备忘")
    content_html: Optional[str] = Field(None, description="HTML内容")
    kb_participants: Optional[List[KbParticipantItem]] = Field(
        None, max_length=IR_ACTIVITY_LIMITS["max_participants"], description="内部参与人"
    )
    visitors: Optional[List[Union[str, VisitorItem]]] = Field(
        None, max_length=IR_ACTIVITY_LIMITS["max_visitors"], description="访客 (名称或对象)"
    )
    keywords: Optional[List[KeywordItem]] = Field(
        None, max_length=IR_ACTIVITY_LIMITS["max_keywords"], description="关键词 (最多5个)"
    )


class SubActivityCreateRequest(ActivityFields):
    """细分活动请求模型"""
    title: str = Field(..., min_length=1, max_length=255, description="标题")
    status: Optional[IRActivityStatus] = Field(None, description="状态")
    start_datetime: Optional[datetime] = Field(None, description="开始时间")
    category: Optional[IRActivityCategory] = Field(None, description="类别")
    type_primary: Optional[str] = Field(None, min_length=1, max_length=50, description="活动类型大类")


class SubActivityUpdateItem(ActivityFields):
    """细分活动更新项, 带id时原地更新"""
    id: Optional[str] = Field(None, description="细分活动ID")
    title: Optional[str] = Field(None, min_length=1, max_length=255, description="标题")
    status: Optional[IRActivityStatus] = Field(None, description="状态")
    start_datetime: Optional[datetime] = Field(None, description="开始时间")
    category: Optional[IRActivityCategory] = Field(None, description="类别")
    type_primary: Optional[str] = Field(None, min_length=1, max_length=50, description="活动类型大类")

    check_required = field_validator("title")(reject_null)


class ActivityCreateRequest(ActivityFields):
    """IR活动创建请求模型"""
    title: str = Field(..., min_length=1, max_length=255, description="标题")
    start_datetime: datetime = Field(..., description="开始时间")
    status: IRActivityStatus = Field(IRActivityStatus.SCHEDULED, description="状态")
    category: IRActivityCategory = Field(..., description="类别")
    type_primary: str = Field(..., min_length=1, max_length=50, description="活动类型大类")
    kbs: Optional[List[str]] = Field(None, max_length=IR_ACTIVITY_LIMITS["max_visitors"], description="内部人员名称")
    sub_activities: Optional[List[SubActivityCreateRequest]] = Field(None, description="细分活动")


class ActivityUpdateRequest(ActivityFields):
    """IR活动更新请求模型 (部分更新)"""
    title: Optional[str] = Field(None, min_length=1, max_length=255, description="标题")
    start_datetime: Optional[datetime] = Field(None, description="开始时间")
    start_iso: Optional[datetime] = Field(None, alias="startISO", description="开始时间 (别名)")
    end_iso: Optional[datetime] = Field(None, alias="endISO", description="结束时间 (别名)")
    status: Optional[IRActivityStatus] = Field(None, description="状态")
    category: Optional[IRActivityCategory] = Field(None, description="类别")
    type_primary: Optional[str] = Field(None, min_length=1, max_length=50, description="活动类型大类")
    kbs: Optional[List[str]] = Field(None, max_length=IR_ACTIVITY_LIMITS["max_visitors"], description="内部人员名称")
    sub_activities: Optional[List[SubActivityUpdateItem]] = Field(None, description="细分活动")

    check_required = field_validator("title", "start_datetime", "start_iso", "category")(reject_null)


class StatusUpdateRequest(CamelModel):
    """状态变更请求模型"""
    status: IRActivityStatus = Field(..., description="新状态")


def _activity_payload(request: CamelModel) -> dict:
    data = request.model_dump(exclude_unset=True)
    if "start_iso" in data:
        data["start_datetime"] = data.pop("start_iso")
    if "end_iso" in data:
        data["end_datetime"] = data.pop("end_iso")
    if "all_day" in data and data["all_day"] is None:
        data.pop("all_day")
    return data


@router.get("/calendar/events", summary="日历视图")
async def get_calendar_events(
    start: datetime = Query(..., description="开始时间"),
    end: datetime = Query(..., description="结束时间"),
    status_filter: Optional[str] = Query(None, alias="status", pattern=STATUS_FILTER_PATTERN, description="状态 (ALL为全部)"),
    category: Optional[IRActivityCategory] = Query(None, description="类别"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await ir_service.get_calendar_events(
        start, end, db, status=status_filter, category=category.value if category else None
    )
    return success_response(data, "Calendar events retrieved successfully")


@router.get("/timeline/activities", summary="时间线视图")
async def get_timeline_activities(
    start: datetime = Query(..., description="开始时间"),
    end: datetime = Query(..., description="结束时间"),
    status_filter: Optional[str] = Query(None, alias="status", pattern=STATUS_FILTER_PATTERN, description="状态"),
    category: Optional[IRActivityCategory] = Query(None, description="类别"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await ir_service.get_timeline_activities(
        start, end, db, status=status_filter, category=category.value if category else None
    )
    return success_response(data, "Timeline activities retrieved successfully")


@router.get("/list/activities", summary="列表视图")
async def get_list_activities(
    start: datetime = Query(..., description="开始时间"),
    end: datetime = Query(..., description="结束时间"),
    status_filter: Optional[str] = Query(None, alias="status", pattern=STATUS_FILTER_PATTERN, description="状态"),
    category: Optional[IRActivityCategory] = Query(None, description="类别"),
    sort_by: Literal["startDatetime", "updatedAt", "title", "status"] = Query(
        "startDatetime", alias="sortBy", description="排序字段"
    ),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder", description="排序方向"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await ir_service.get_list_view(
        start,
        end,
        db,
        status=status_filter,
        category=category.value if category else None,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return success_response(data, "List view activities retrieved successfully")


@router.get("/insights", summary="IR统计洞察", description="默认统计最近12个月")
async def get_insights(
    start_iso: Optional[datetime] = Query(None, alias="startISO", description="开始时间"),
    end_iso: Optional[datetime] = Query(None, alias="endISO", description="结束时间"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await ir_service.get_insights(db, start=start_iso, end=end_iso)
    return success_response(data, "IR insights retrieved successfully")


@router.get("/activities/{activity_id}", summary="活动详情")
async def get_activity(
    activity_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await ir_service.find_one(activity_id, db)
    return success_response(data, "Activity retrieved successfully")


@router.post("/activities", status_code=status.HTTP_201_CREATED, summary="创建IR活动")
async def create_activity(
    request: ActivityCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await ir_service.create(_activity_payload(request), current_user, db)
    return success_response(data, "Activity created successfully")


@router.patch("/activities/{activity_id}", summary="更新IR活动", description="部分更新, 提供的关系列表整体替换")
async def update_activity(
    activity_id: str,
    request: ActivityUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await ir_service.update(activity_id, _activity_payload(request), current_user, db)
    return success_response(data, "Activity updated successfully")


@router.patch("/activities/{activity_id}/status", summary="变更活动状态")
async def update_activity_status(
    activity_id: str,
    request: StatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await ir_service.update_status(activity_id, request.status, current_user, db)
    return success_response(data, "Activity status updated successfully")


@router.delete(
    "/activities/{activity_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="删除IR活动",
)
async def delete_activity(
    activity_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ir_service.remove(activity_id, current_user, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/activities/{activity_id}/sub-activities",
    status_code=status.HTTP_201_CREATED,
    summary="添加细分活动",
)
async def add_sub_activity(
    activity_id: str,
    request: SubActivityCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await ir_service.add_sub_activity(activity_id, _activity_payload(request), current_user, db)
    return success_response(data, "Sub-activity added successfully")


@router.post(
    "/activities/{activity_id}/attachments",
    status_code=status.HTTP_201_CREATED,
    summary="上传活动附件",
)
async def upload_attachment(
    activity_id: str,
    file: Optional[UploadFile] = File(None, description="附件"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if file is None or not file.filename:
        raise UploadException("No file uploaded")
    content = await file.read()
    data = await ir_service.add_attachment(activity_id, file.filename, file.content_type, content, current_user, db)
    return success_response(data, "Attachment uploaded successfully")
