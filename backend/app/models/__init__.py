"""
IRDesk Platform - 数据模型包
导入所有数据模型，确保SQLAlchemy能够发现和创建表
"""

# 导入基础类
from backend.app.core.database import Base

# 导入用户相关模型
from backend.app.models.user import (
    User,
    RefreshToken,
    Favorite,
    PriceAlert,
    AlertCondition,
)

# 导入投资者相关模型
from backend.app.models.investor import (
    Country,
    Investor,
    InvestorSnapshot,
    InvestorHistory,
    InvestorMeeting,
    InvestorInterest,
    InvestorActivity,
    InvestorCommunication,
    InvestorType,
    StyleTag,
    Turnover,
    Orientation,
)

# 导入GID上传模型
from backend.app.models.gid import (
    GidUploadBatch,
    GidUploadRow,
    UploadStatus,
    ProcessMode,
)

# 导入IR活动模型
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
)

# 导入CRM模型
from backend.app.models.crm import (
    Customer,
    ContactHistory,
    Account,
    Product,
    Transaction,
)

# 导入日历模型
from backend.app.models.calendar import (
    CalendarEvent,
    CalendarEventHistory,
)

# 导入出差模型
from backend.app.models.business_trip import (
    City,
    Place,
    PlaceVisit,
    PlaceReview,
)

# 导入通知模型
from backend.app.models.notification import (
    Notification,
    NotificationEventType,
)

# 导出所有模型类
__all__ = [
    # 基础
    "Base",

    # 用户
    "User",
    "RefreshToken",
    "Favorite",
    "PriceAlert",
    "AlertCondition",

    # 投资者
    "Country",
    "Investor",
    "InvestorSnapshot",
    "InvestorHistory",
    "InvestorMeeting",
    "InvestorInterest",
    "InvestorActivity",
    "InvestorCommunication",
    "InvestorType",
    "StyleTag",
    "Turnover",
    "Orientation",

    # GID
    "GidUploadBatch",
    "GidUploadRow",
    "UploadStatus",
    "ProcessMode",

    # IR活动
    "IRActivity",
    "IRSubActivity",
    "IRActivityKbParticipant",
    "IRActivityVisitor",
    "IRActivityKeyword",
    "IRActivityAttachment",
    "IRActivityLog",
    "IRSubActivityKbParticipant",
    "IRSubActivityVisitor",
    "IRSubActivityKeyword",
    "IRActivityStatus",
    "IRActivityCategory",
    "IRLogType",
    "VisitorType",

    # CRM
    "Customer",
    "ContactHistory",
    "Account",
    "Product",
    "Transaction",

    # 日历
    "CalendarEvent",
    "CalendarEventHistory",

    # 出差
    "City",
    "Place",
    "PlaceVisit",
    "PlaceReview",

    # 通知
    "Notification",
    "NotificationEventType",
]

# 模型注册表 - 用于动态访问
MODEL_REGISTRY = {
    "user": User,
    "refresh_token": RefreshToken,
    "favorite": Favorite,
    "price_alert": PriceAlert,

    "country": Country,
    "investor": Investor,
    "investor_snapshot": InvestorSnapshot,
    "investor_history": InvestorHistory,
    "investor_meeting": InvestorMeeting,
    "investor_interest": InvestorInterest,
    "investor_activity": InvestorActivity,
    "investor_communication": InvestorCommunication,

    "gid_upload_batch": GidUploadBatch,
    "gid_upload_row": GidUploadRow,

    "ir_activity": IRActivity,
    "ir_sub_activity": IRSubActivity,
    "ir_activity_kb_participant": IRActivityKbParticipant,
    "ir_activity_visitor": IRActivityVisitor,
    "ir_activity_keyword": IRActivityKeyword,
    "ir_activity_attachment": IRActivityAttachment,
    "ir_activity_log": IRActivityLog,

    "customer": Customer,
    "contact_history": ContactHistory,
    "account": Account,
    "product": Product,
    "transaction": Transaction,

    "calendar_event": CalendarEvent,
    "calendar_event_history": CalendarEventHistory,

    "city": City,
    "place": Place,
    "place_visit": PlaceVisit,
    "place_review": PlaceReview,

    "notification": Notification,
}


def get_model_by_name(model_name: str):
    """根据名称获取模型类"""
    return MODEL_REGISTRY.get(model_name.lower())


def get_all_models():
    """获取所有模型类"""
    return list(MODEL_REGISTRY.values())
