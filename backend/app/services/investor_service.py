"""
IRDesk Platform - 投资者服务
投资者表格、详情、变更历史、快照编辑及筛选字典
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, and_, or_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import NotFoundException, ValidationException
from backend.app.core.logging import get_logger, log_performance, audit_logger
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
    INVESTOR_TYPE_LABELS,
    STYLE_TAG_LABELS,
)
from backend.app.models.user import User
from backend.app.utils.datetime_utils import ensure_utc, to_iso, utcnow
from backend.app.utils.investor_diff import SNAPSHOT_COLUMNS, create_snapshot_diff, snapshot_values

logger = get_logger(__name__)

MISSING_RANK = 9999

SNAPSHOT_ENUMS = {
    "investorType": InvestorType,
    "styleTag": StyleTag,
    "turnover": Turnover,
    "orientation": Orientation,
}

TURNOVER_DISPLAY = {Turnover.HIGH: "High", Turnover.MEDIUM: "Medium", Turnover.LOW: "Low"}
ORIENTATION_DISPLAY = {Orientation.ACTIVE: "Active", Orientation.INACTIVE: "Inactive"}


def _enum_value(value: Any) -> Any:
    return value.value if value is not None and hasattr(value, "value") else value


def quarter_label(year: int, quarter: int) -> str:
    """季度标签, 如 3Q24"""
    return f"{quarter}Q{str(year)[-2:]}"


def previous_quarter(year: int, quarter: int) -> Tuple[int, int]:
    """上一季度, Q1回绕到上一年Q4"""
    if quarter == 1:
        return year - 1, 4
    return year, quarter - 1


def format_change(current: Optional[int], previous: Optional[int]) -> str:
    """与上一季度相比的变化率文本"""
    if not current or not previous:
        return "지난 분기 대비 N/A"
    change = (current - previous) / previous * 100
    sign = "+" if change >= 0 else ""
    return f"지난 분기 대비 {sign}{round(change)}%"


def _short_date(value: datetime) -> str:
    return ensure_utc(value).strftime("%y.%m.%d")


def _country_name(country: Optional[Country]) -> str:
    if country is None:
        return "-"
    return country.name_ko or country.name_en or "-"


def serialize_metrics(snapshot: InvestorSnapshot) -> Dict[str, Any]:
    """表格行中的指标部分"""
    return {
        "sOverO": snapshot.s_over_o,
        "ord": snapshot.ord,
        "adr": snapshot.adr,
        "investorType": _enum_value(snapshot.investor_type),
        "style": {"tag": _enum_value(snapshot.style_tag), "note": snapshot.style_note},
        "turnover": _enum_value(snapshot.turnover),
        "orientation": _enum_value(snapshot.orientation),
        "lastActivityAt": to_iso(snapshot.last_activity_at),
    }


def serialize_snapshot(snapshot: InvestorSnapshot) -> Dict[str, Any]:
    data = {
        "year": snapshot.year,
        "quarter": snapshot.quarter,
        "groupRank": snapshot.group_rank,
        "childCount": snapshot.group_child_count,
    }
    data.update(serialize_metrics(snapshot))
    return data


def serialize_investor(investor: Investor) -> Dict[str, Any]:
    return {
        "id": investor.id,
        "name": investor.name,
        "country": investor.country_code,
        "city": investor.city,
        "parentId": investor.parent_id,
        "isGroupRepresentative": investor.is_group_representative,
    }


class InvestorService:
    """投资者服务核心类"""

    def _period_filters(self, year: int, quarter: int, filters: Dict[str, Any]) -> List[Any]:
        conditions = [InvestorSnapshot.year == year, InvestorSnapshot.quarter == quarter]

        if filters.get("country"):
            conditions.append(Investor.country_code == filters["country"].upper())
        if filters.get("orientation"):
            conditions.append(InvestorSnapshot.orientation == Orientation(filters["orientation"]))
        if filters.get("turnover"):
            conditions.append(InvestorSnapshot.turnover == Turnover(filters["turnover"]))
        if filters.get("investor_type"):
            conditions.append(InvestorSnapshot.investor_type == InvestorType(filters["investor_type"]))
        if filters.get("style_tag"):
            conditions.append(InvestorSnapshot.style_tag == StyleTag(filters["style_tag"]))
        if filters.get("search"):
            pattern = f"%{filters['search']}%"
            conditions.append(or_(Investor.name.ilike(pattern), Investor.city.ilike(pattern)))
        return conditions

    @log_performance("investor_table")
    async def get_investors_table(
        self,
        year: int,
        quarter: int,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 20,
        include_children: bool = True,
        only_parent: bool = False,
        order: str = "asc",
        **filters: Any,
    ) -> Dict[str, Any]:
        """
        分组投资者表格。

        先按排名分页获取集团代表ID, 再一次性加载代表及其成员机构,
        最终按 "代表行 + 成员行" 的顺序输出。
        """
        conditions = self._period_filters(year, quarter, filters)
        conditions.append(Investor.is_group_representative.is_(True))

        rank_key = func.coalesce(InvestorSnapshot.group_rank, MISSING_RANK)
        rank_order = desc(rank_key) if order == "desc" else rank_key

        parent_query = (
            select(Investor.id)
            .join(InvestorSnapshot, InvestorSnapshot.investor_id == Investor.id)
            .where(and_(*conditions))
            .order_by(rank_order, Investor.id)
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        parent_ids = list((await db.execute(parent_query)).scalars().all())

        total = (
            await db.execute(
                select(func.count())
                .select_from(Investor)
                .join(InvestorSnapshot, InvestorSnapshot.investor_id == Investor.id)
                .where(and_(*conditions))
            )
        ).scalar_one()

        response = {
            "period": {"year": year, "quarter": quarter},
            "page": page,
            "pageSize": page_size,
            "total": total,
            "rows": [],
        }
        if not parent_ids:
            return response

        membership = Investor.id.in_(parent_ids)
        if include_children and not only_parent:
            membership = or_(membership, Investor.parent_id.in_(parent_ids))

        result = await db.execute(
            select(Investor, InvestorSnapshot, Country)
            .join(InvestorSnapshot, InvestorSnapshot.investor_id == Investor.id)
            .outerjoin(Country, Country.code == Investor.country_code)
            .where(and_(InvestorSnapshot.year == year, InvestorSnapshot.quarter == quarter, membership))
            .order_by(Investor.id)
        )

        parents: Dict[int, Dict[str, Any]] = {}
        children: Dict[int, List[Dict[str, Any]]] = {}
        for investor, snapshot, country in result.all():
            investor_data = {
                "id": investor.id,
                "name": investor.name,
                "country": {
                    "code": investor.country_code,
                    "name": _country_name(country),
                    "city": investor.city,
                },
            }
            if investor.id in parent_ids:
                parents[investor.id] = {
                    "rowType": "PARENT",
                    "group": {"rank": snapshot.group_rank, "childCount": snapshot.group_child_count},
                    "investor": investor_data,
                    "metrics": serialize_metrics(snapshot),
                }
            elif not investor.is_group_representative:
                children.setdefault(investor.parent_id, []).append(
                    {
                        "rowType": "CHILD",
                        "parentId": investor.parent_id,
                        "investor": investor_data,
                        "metrics": serialize_metrics(snapshot),
                    }
                )

        ordered = sorted(
            parents.items(),
            key=lambda item: item[1]["group"]["rank"] or MISSING_RANK,
            reverse=order == "desc",
        )
        for parent_id, parent_row in ordered:
            response["rows"].append(parent_row)
            response["rows"].extend(children.get(parent_id, []))
        return response

    async def get_top_investors(self, year: int, quarter: int, top_n: int, db: AsyncSession) -> Dict[str, Any]:
        """按集团排名取前N位代表机构"""
        result = await db.execute(
            select(Investor, InvestorSnapshot)
            .join(InvestorSnapshot, InvestorSnapshot.investor_id == Investor.id)
            .where(
                and_(
                    Investor.is_group_representative.is_(True),
                    InvestorSnapshot.year == year,
                    InvestorSnapshot.quarter == quarter,
                )
            )
            .order_by(func.coalesce(InvestorSnapshot.group_rank, MISSING_RANK), Investor.id)
            .limit(top_n)
        )
        return {
            "topN": top_n,
            "investors": [
                {
                    "investorId": investor.id,
                    "name": investor.name,
                    "countryCode": investor.country_code,
                    "city": investor.city,
                    "groupRank": snapshot.group_rank,
                    "groupChildCount": snapshot.group_child_count,
                    "orientation": _enum_value(snapshot.orientation),
                }
                for investor, snapshot in result.all()
            ],
        }

    async def _get_investor(self, investor_id: int, db: AsyncSession) -> Investor:
        investor = await db.get(Investor, investor_id)
        if investor is None:
            raise NotFoundException(f"Investor with ID {investor_id} not found")
        return investor

    async def _get_snapshot(
        self, investor_id: int, year: int, quarter: int, db: AsyncSession
    ) -> Optional[InvestorSnapshot]:
        result = await db.execute(
            select(InvestorSnapshot).where(
                and_(
                    InvestorSnapshot.investor_id == investor_id,
                    InvestorSnapshot.year == year,
                    InvestorSnapshot.quarter == quarter,
                )
            )
        )
        return result.scalar_one_or_none()

    async def _get_latest_snapshot(self, investor_id: int, db: AsyncSession) -> Optional[InvestorSnapshot]:
        result = await db.execute(
            select(InvestorSnapshot)
            .where(InvestorSnapshot.investor_id == investor_id)
            .order_by(desc(InvestorSnapshot.year), desc(InvestorSnapshot.quarter))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_investor_detail(
        self, investor_id: int, db: AsyncSession, year: Optional[int] = None, quarter: Optional[int] = None
    ) -> Dict[str, Any]:
        """投资者基本信息与指定期间快照; 未指定期间时取最新快照"""
        investor = await self._get_investor(investor_id, db)
        if year is not None and quarter is not None:
            snapshot = await self._get_snapshot(investor_id, year, quarter, db)
        else:
            snapshot = await self._get_latest_snapshot(investor_id, db)
        return {
            "investor": serialize_investor(investor),
            "snapshot": serialize_snapshot(snapshot) if snapshot is not None else None,
        }

    @log_performance("investor_frontend_detail")
    async def get_investor_detail_for_frontend(self, investor_id: int, db: AsyncSession) -> Dict[str, Any]:
        """详情页数据: 指标卡片、趋势图、会议、关注话题、活动及沟通记录"""
        investor = await self._get_investor(investor_id, db)
        country = await db.get(Country, investor.country_code) if investor.country_code else None

        current = await self._get_latest_snapshot(investor_id, db)
        if current is None:
            raise NotFoundException(f"No snapshot data found for investor ID {investor_id}")

        prev_year, prev_quarter = previous_quarter(current.year, current.quarter)
        previous = await self._get_snapshot(investor_id, prev_year, prev_quarter, db)

        def prev_value(attr: str) -> Optional[int]:
            return getattr(previous, attr) if previous is not None else None

        current_total = (current.ord or 0) + (current.adr or 0)
        previous_total = (prev_value("ord") or 0) + (prev_value("adr") or 0)
        metrics = [
            {
                "label": "% S/O",
                "value": f"{current.s_over_o}%" if current.s_over_o else "N/A",
                "change": format_change(current.s_over_o, prev_value("s_over_o")),
                "iconType": "trending-up",
            },
            {
                "label": "ORD",
                "value": f"{current.ord:,}" if current.ord else "N/A",
                "change": format_change(current.ord, prev_value("ord")),
                "iconType": "bar-chart",
            },
            {
                "label": "ADR",
                "value": f"{current.adr:,}" if current.adr else "N/A",
                "change": format_change(current.adr, prev_value("adr")),
                "iconType": "pie-chart",
            },
            {
                "label": "ORD + ADR",
                "value": f"{current_total:,}" if current.ord and current.adr else "N/A",
                "change": format_change(current_total, previous_total),
                "iconType": "star",
            },
        ]

        snapshots = (
            await db.execute(
                select(InvestorSnapshot)
                .where(InvestorSnapshot.investor_id == investor_id)
                .order_by(InvestorSnapshot.year, InvestorSnapshot.quarter)
            )
        ).scalars().all()
        chart_data = [
            {
                "quarter": quarter_label(snap.year, snap.quarter),
                "value": (snap.ord or 0) + (snap.adr or 0),
                "rate": snap.s_over_o or 0,
            }
            for snap in snapshots
        ]

        meetings = (
            await db.execute(
                select(InvestorMeeting)
                .where(InvestorMeeting.investor_id == investor_id)
                .order_by(desc(InvestorMeeting.meeting_date), desc(InvestorMeeting.id))
            )
        ).scalars().all()
        interests = (
            await db.execute(
                select(InvestorInterest)
                .where(InvestorInterest.investor_id == investor_id)
                .order_by(desc(InvestorInterest.frequency), InvestorInterest.id)
            )
        ).scalars().all()
        activities = (
            await db.execute(
                select(InvestorActivity)
                .where(InvestorActivity.investor_id == investor_id)
                .order_by(desc(InvestorActivity.activity_date), desc(InvestorActivity.id))
            )
        ).scalars().all()
        communications = (
            await db.execute(
                select(InvestorCommunication)
                .where(InvestorCommunication.investor_id == investor_id)
                .order_by(desc(InvestorCommunication.communication_date), desc(InvestorCommunication.id))
            )
        ).scalars().all()

        # 沟通记录按季度分组
        grouped: Dict[str, Dict[str, Any]] = {}
        for comm in communications:
            occurred = ensure_utc(comm.communication_date)
            key = quarter_label(occurred.year, (occurred.month - 1) // 3 + 1)
            bucket = grouped.setdefault(key, {"quarter": key, "type": comm.communication_type, "details": []})
            if comm.tags:
                bucket["details"].append({"name": comm.description or "", "values": comm.tags})

        if current.style_note:
            style = current.style_note
        else:
            style = STYLE_TAG_LABELS.get(current.style_tag, "")

        return {
            "id": str(investor.id),
            "rank": f"#{current.group_rank}" if current.group_rank else "N/A",
            "companyName": investor.name,
            "country": {
                "name": (country.name_ko if country else None) or investor.country_code or "",
                "city": investor.city or "",
                "code": investor.country_code or "",
            },
            "style": style,
            "type": INVESTOR_TYPE_LABELS.get(current.investor_type, "성장형"),
            "turnover": TURNOVER_DISPLAY.get(current.turnover, "Low"),
            "orientation": ORIENTATION_DISPLAY.get(current.orientation, "Active"),
            "metrics": metrics,
            "stockHoldingsChart": {
                "title": "보유주식수 추이",
                "subtitle": format_change(current_total, previous_total),
                "data": chart_data,
                "highlightedQuarters": [
                    quarter_label(current.year, current.quarter),
                    quarter_label(prev_year, prev_quarter),
                ],
            },
            "stakeChart": {
                "title": "지분 추이",
                "subtitle": format_change(current.s_over_o, prev_value("s_over_o")),
                "data": chart_data,
                "highlightedQuarters": [],
            },
            "meetingHistory": [
                {
                    "id": str(meeting.id),
                    "date": _short_date(meeting.meeting_date),
                    "time": ensure_utc(meeting.meeting_date).strftime("%H:%M"),
                    "type": meeting.meeting_type,
                    "format": meeting.topic or "",
                    "participants": meeting.participants or "",
                    "topics": meeting.tags or [],
                    "stakeChange": meeting.change_rate or "",
                    "shareChange": meeting.change_rate or "",
                    "bookmarked": False,
                }
                for meeting in meetings
            ],
            "interests": [
                {"id": str(interest.id), "name": interest.topic, "weight": interest.frequency}
                for interest in interests
            ],
            "activities": [
                {
                    "id": str(activity.id),
                    "date": _short_date(activity.activity_date),
                    "type": activity.activity_type,
                    "participants": activity.description or "",
                    "tags": activity.tags or [],
                    "stakeChange": activity.change_rate or "",
                    "shareChange": activity.change_rate or "",
                    "bookmarked": False,
                }
                for activity in activities
            ],
            "communications": list(grouped.values()),
        }

    async def get_investor_history(
        self,
        investor_id: int,
        db: AsyncSession,
        year: Optional[int] = None,
        quarter: Optional[int] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        """快照变更历史, 最新在前"""
        conditions = [InvestorHistory.investor_id == investor_id]
        if year:
            conditions.append(InvestorHistory.year == year)
        if quarter:
            conditions.append(InvestorHistory.quarter == quarter)

        result = await db.execute(
            select(InvestorHistory, User)
            .outerjoin(User, User.id == InvestorHistory.updated_by)
            .where(and_(*conditions))
            .order_by(desc(InvestorHistory.occurred_at), desc(InvestorHistory.id))
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        total = (
            await db.execute(select(func.count()).select_from(InvestorHistory).where(and_(*conditions)))
        ).scalar_one()

        history = []
        for record, user in result.all():
            history.append(
                {
                    "occurredAt": to_iso(record.occurred_at),
                    "year": record.year,
                    "quarter": record.quarter,
                    "updatedBy": (
                        {"id": str(user.id), "name": user.name, "email": user.email}
                        if user is not None else None
                    ),
                    "changes": record.changes or {},
                }
            )

        return {
            "investorId": investor_id,
            "history": history,
            "page": page,
            "pageSize": page_size,
            "total": total,
        }

    @log_performance("investor_update")
    async def update_investor(
        self, investor_id: int, updates: Dict[str, Any], user: User, db: AsyncSession
    ) -> Dict[str, Any]:
        """更新投资者基本信息, 返回最新期间的详情"""
        investor = await self._get_investor(investor_id, db)

        if updates.get("countryCode") is not None:
            updates["countryCode"] = updates["countryCode"].upper()
            if await db.get(Country, updates["countryCode"]) is None:
                raise NotFoundException(f"Country {updates['countryCode']} not found")
        parent_id = updates.get("parentId")
        if parent_id is not None:
            if parent_id == investor_id:
                raise ValidationException("Investor cannot be its own parent")
            if await db.get(Investor, parent_id) is None:
                raise NotFoundException(f"Parent investor with ID {parent_id} not found")

        field_map = {
            "name": "name",
            "countryCode": "country_code",
            "city": "city",
            "parentId": "parent_id",
            "isGroupRepresentative": "is_group_representative",
        }
        for field, column in field_map.items():
            if field in updates:
                setattr(investor, column, updates[field])
        investor.updated_at = utcnow()
        await db.commit()

        audit_logger.log_user_action(user.id, "update", "investor", investor_id, details=updates)
        return await self.get_investor_detail(investor_id, db)

    @log_performance("investor_snapshot_update")
    async def update_snapshot(
        self,
        investor_id: int,
        year: int,
        quarter: int,
        updates: Dict[str, Any],
        user: User,
        db: AsyncSession,
    ) -> Dict[str, Any]:
        """
        编辑季度快照。

        只比较请求中提供的字段; 无变化时不写入, 有变化时更新快照并记录历史。
        """
        await self._get_investor(investor_id, db)
        snapshot = await self._get_snapshot(investor_id, year, quarter, db)
        if snapshot is None:
            raise NotFoundException(f"Snapshot not found for investor {investor_id} in {year} Q{quarter}")

        provided = {field: value for field, value in updates.items() if field in SNAPSHOT_COLUMNS}
        if "lastActivityAt" in provided:
            provided["lastActivityAt"] = ensure_utc(provided["lastActivityAt"])

        old_values = snapshot_values(snapshot)
        new_values = {**old_values, **{field: _enum_value(value) for field, value in provided.items()}}
        diff = create_snapshot_diff(old_values, new_values)

        if not diff:
            return await self.get_investor_detail(investor_id, db, year, quarter)

        for field, value in provided.items():
            enum_cls = SNAPSHOT_ENUMS.get(field)
            if enum_cls is not None and value is not None:
                value = enum_cls(_enum_value(value))
            setattr(snapshot, SNAPSHOT_COLUMNS[field], value)
        snapshot.updated_at = utcnow()

        db.add(
            InvestorHistory(
                investor_id=investor_id,
                year=year,
                quarter=quarter,
                updated_by=user.id,
                changes=diff,
            )
        )
        await db.commit()

        logger.info("Investor snapshot updated", investor_id=investor_id, year=year, quarter=quarter, fields=list(diff))
        audit_logger.log_user_action(user.id, "update_snapshot", "investor", investor_id, details={"changes": diff})
        return await self.get_investor_detail(investor_id, db, year, quarter)

    async def get_available_periods(self, db: AsyncSession) -> Dict[str, Any]:
        """存在快照的 (年度, 季度) 组合, 最新在前"""
        result = await db.execute(
            select(InvestorSnapshot.year, InvestorSnapshot.quarter)
            .distinct()
            .order_by(desc(InvestorSnapshot.year), desc(InvestorSnapshot.quarter))
        )
        return {"periods": [{"year": year, "quarter": quarter} for year, quarter in result.all()]}

    async def get_filter_dictionaries(self, db: AsyncSession) -> Dict[str, Any]:
        result = await db.execute(select(Country.code, Country.name_ko).order_by(Country.name_ko, Country.code))
        return {
            "countries": [{"code": code, "name": name} for code, name in result.all()],
            "investorTypes": [item.value for item in InvestorType],
            "styleTags": [item.value for item in StyleTag],
            "turnovers": [item.value for item in Turnover],
            "orientations": [item.value for item in Orientation],
        }

    @log_performance("investor_summary_metrics")
    async def get_summary_metrics(self, year: int, quarter: int, db: AsyncSession) -> Dict[str, Any]:
        """期间汇总: 总数、代表机构数、活跃率与换手分布"""
        period = and_(InvestorSnapshot.year == year, InvestorSnapshot.quarter == quarter)

        total = (await db.execute(select(func.count()).select_from(InvestorSnapshot).where(period))).scalar_one()
        parents = (
            await db.execute(
                select(func.count())
                .select_from(InvestorSnapshot)
                .join(Investor, Investor.id == InvestorSnapshot.investor_id)
                .where(and_(period, Investor.is_group_representative.is_(True)))
            )
        ).scalar_one()
        active = (
            await db.execute(
                select(func.count())
                .select_from(InvestorSnapshot)
                .where(and_(period, InvestorSnapshot.orientation == Orientation.ACTIVE))
            )
        ).scalar_one()

        distribution = {item.value: 0 for item in Turnover}
        result = await db.execute(
            select(InvestorSnapshot.turnover, func.count())
            .where(period)
            .group_by(InvestorSnapshot.turnover)
        )
        for turnover, count in result.all():
            if turnover is not None:
                distribution[_enum_value(turnover)] = count

        return {
            "totalInvestors": total,
            "parents": parents,
            "children": total - parents,
            "activeRate": active / total if total > 0 else 0,
            "turnoverDist": distribution,
        }


# 创建全局服务实例
investor_service = InvestorService()
