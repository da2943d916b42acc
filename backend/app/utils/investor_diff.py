"""
IRDesk Platform - 投资者快照差异工具
比较两个快照, 生成 {field: [old, new]} 形式的变更记录
"""

import enum
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from backend.app.utils.datetime_utils import ensure_utc, to_iso


# 参与比较的字段 (驼峰命名, 与API一致)
COMPARABLE_FIELDS = (
    "sOverO",
    "ord",
    "adr",
    "investorType",
    "styleTag",
    "styleNote",
    "turnover",
    "orientation",
    "groupRank",
    "groupChildCount",
)

FIELD_LABELS = {
    "sOverO": "S/O",
    "ord": "ORD",
    "adr": "ADR",
    "investorType": "투자자 타입",
    "styleTag": "스타일 태그",
    "styleNote": "스타일 메모",
    "turnover": "Turnover",
    "orientation": "Orientation",
    "lastActivityAt": "마지막 활동일자",
    "groupRank": "그룹 순위",
    "groupChildCount": "자회사 수",
}

# 驼峰字段 -> 快照模型列
SNAPSHOT_COLUMNS = {
    "sOverO": "s_over_o",
    "ord": "ord",
    "adr": "adr",
    "investorType": "investor_type",
    "styleTag": "style_tag",
    "styleNote": "style_note",
    "turnover": "turnover",
    "orientation": "orientation",
    "groupRank": "group_rank",
    "groupChildCount": "group_child_count",
    "lastActivityAt": "last_activity_at",
}


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    return value


def snapshot_values(snapshot: Any) -> Dict[str, Any]:
    """将快照ORM对象转换为驼峰字段字典"""
    if snapshot is None:
        return {}
    return {field: _plain(getattr(snapshot, column)) for field, column in SNAPSHOT_COLUMNS.items()}


def _timestamp(value: Optional[datetime]) -> Optional[float]:
    value = ensure_utc(value)
    return value.timestamp() if value is not None else None


def create_snapshot_diff(
    old: Optional[Mapping[str, Any]],
    new: Mapping[str, Any],
) -> Dict[str, List[Any]]:
    """
    比较新旧快照, 只返回发生变化的字段。

    缺失的值视为None; lastActivityAt 按时间点比较并以ISO字符串记录。
    """
    old = old or {}
    diff: Dict[str, List[Any]] = {}

    for field in COMPARABLE_FIELDS:
        old_value = _plain(old.get(field))
        new_value = _plain(new.get(field))
        if old_value != new_value:
            diff[field] = [old_value, new_value]

    old_activity = old.get("lastActivityAt")
    new_activity = new.get("lastActivityAt")
    if _timestamp(old_activity) != _timestamp(new_activity):
        diff["lastActivityAt"] = [to_iso(ensure_utc(old_activity)), to_iso(ensure_utc(new_activity))]

    return diff


def format_diff_messages(diff: Mapping[str, List[Any]]) -> List[str]:
    """每个变更字段一条可读消息"""
    messages = []
    for field, (old_value, new_value) in diff.items():
        label = FIELD_LABELS.get(field, field)
        old_text = "(없음)" if old_value is None else old_value
        new_text = "(없음)" if new_value is None else new_value
        messages.append(f"{label}: {old_text} → {new_text}")
    return messages


def format_diff_message(diff: Mapping[str, List[Any]]) -> str:
    """变更摘要, 逗号连接"""
    return ", ".join(format_diff_messages(diff))
