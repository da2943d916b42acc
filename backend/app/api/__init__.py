"""
IRDesk Platform - API包
API路由和端点定义
"""

# API版本信息
API_VERSION = "v1"
API_PREFIX = "/api"

# API标签定义
API_TAGS = {
    "auth": "认证",
    "favorites": "自选股",
    "alerts": "价格提醒",
    "investors": "投资者",
    "filters": "筛选条件",
    "metrics": "汇总指标",
    "gid": "GID上传",
    "ir": "IR活动",
    "files": "文件上传",
    "crm": "CRM",
    "calendar": "日历",
    "business_trips": "出差管理",
    "notifications": "通知",
    "portfolio": "投资组合",
    "system": "系统管理",
}

# API描述
API_DESCRIPTIONS = {
    "auth": "用户注册、登录、令牌刷新与个人资料服务",
    "favorites": "自选股添加、删除与查询服务",
    "alerts": "价格提醒创建与查询服务",
    "investors": "投资者分组表格、详情、快照编辑与变更历史服务",
    "filters": "可用期间与筛选字典服务",
    "metrics": "期间投资者汇总指标服务",
    "gid": "季度GID数据上传、解析与入库服务",
    "ir": "IR活动日历、列表、时间线、详情与统计洞察服务",
    "files": "通用文件上传与本地存储服务",
    "crm": "客户、咨询记录、账户、产品与交易管理服务",
    "calendar": "日程管理与变更历史服务",
    "business_trips": "出差城市、酒店/餐厅、到访与点评服务",
    "notifications": "用户通知与全员广播服务",
    "portfolio": "基于CRM交易的投资组合分析服务",
    "system": "系统健康检查和监控服务",
}
