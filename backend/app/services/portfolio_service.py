"""
IRDesk Platform - 投资组合服务
基于CRM账户与交易记录推导持仓、绩效、资产配置与风险指标
"""

import math
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any

import numpy as np
import pandas as pd
from sqlalchemy import select, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import NotFoundException
from backend.app.core.logging import get_logger, log_performance
from backend.app.models.crm import Account, Product, Transaction, TradeType
from backend.app.utils.datetime_utils import ensure_utc, to_iso, utcnow

logger = get_logger(__name__)

PORTFOLIO_NOT_FOUND = "포트폴리오를 찾을 수 없습니다."

# 绩效区间对应天数, ALL 为自首笔交易起
PERIOD_DAYS = {
    "1D": 1,
    "1W": 7,
    "1M": 30,
    "3M": 90,
    "6M": 180,
    "1Y": 365,
    "ALL": None,
}

CASH_CLASS = "CASH"
QUANTITY_EPSILON = 1e-9
# math.exp 上限, 超出即 OverflowError
MAX_GROWTH_EXPONENT = 700.0


def product_symbol(product_id: int) -> str:
    return f"PRD-{product_id}"


def _round(value: float, digits: int = 2) -> float:
    if value is None or not np.isfinite(value):
        return 0.0
    return round(float(value), digits)


def annualized_return(total_return_pct: float, days: int) -> float:
    """累计收益率(%)按持有天数年化; 在对数空间计算并截断指数"""
    growth = 1 + total_return_pct / 100
    if days <= 0 or growth <= 0:
        return 0.0
    exponent = min(math.log(growth) * 365 / days, MAX_GROWTH_EXPONENT)
    return (math.exp(exponent) - 1) * 100


def trades_frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    """
    交易记录转为 DataFrame。

    数量 = 交易金额 / 成交单价; 单价缺失或为0时数量记为0。
    """
    columns = ["id", "date", "productId", "name", "assetClass", "type", "amount", "price"]
    frame = pd.DataFrame(rows, columns=columns)
    if frame.empty:
        frame["quantity"] = pd.Series(dtype=float)
        return frame

    frame["date"] = pd.to_datetime(frame["date"], utc=True)
    frame["productId"] = frame["productId"].astype(int)
    frame["amount"] = frame["amount"].apply(lambda v: float(v) if v is not None else 0.0)
    frame["price"] = frame["price"].apply(lambda v: float(v) if v is not None else np.nan)
    frame["quantity"] = np.where(frame["price"] > 0, frame["amount"] / frame["price"].where(frame["price"] > 0, 1.0), 0.0)
    return frame.sort_values(["date", "id"]).reset_index(drop=True)


def compute_positions(trades: pd.DataFrame) -> Dict[int, Dict[str, Any]]:
    """
    按移动加权平均成本计算每个产品的持仓与已实现盈亏。

    卖出超过持仓时数量截断为0。
    """
    positions: Dict[int, Dict[str, Any]] = {}
    for trade in trades.itertuples(index=False):
        product_id = int(trade.productId)
        position = positions.setdefault(
            product_id,
            {
                "productId": product_id,
                "name": trade.name,
                "assetClass": trade.assetClass,
                "quantity": 0.0,
                "cost": 0.0,
                "realizedPnL": 0.0,
                "buyCost": 0.0,
            },
        )
        if trade.type == TradeType.BUY.value:
            position["quantity"] += trade.quantity
            position["cost"] += trade.amount
            position["buyCost"] += trade.amount
        else:
            sold = min(trade.quantity, position["quantity"])
            average = position["cost"] / position["quantity"] if position["quantity"] > QUANTITY_EPSILON else 0.0
            position["realizedPnL"] += (trade.price - average) * sold if sold else 0.0
            position["cost"] -= average * sold
            position["quantity"] -= sold
            if position["quantity"] <= QUANTITY_EPSILON:
                position["quantity"] = 0.0
                position["cost"] = 0.0
    return positions


def value_series(trades: pd.DataFrame, cash: float, as_of: Optional[datetime] = None,
                 current_prices: Optional[Dict[int, float]] = None) -> pd.Series:
    """
    重建每个交易时点的组合总价值 (现金 + 持仓市值)。

    历史现金由当前余额倒推: 买入减少现金, 卖出增加现金。
    持仓按当时已知的最新成交价估值, 末尾追加 as_of 时点按当前价估值。
    """
    if trades.empty:
        point = pd.Timestamp(ensure_utc(as_of or utcnow()))
        return pd.Series([float(cash)], index=pd.DatetimeIndex([point]))

    flows = np.where(trades["type"] == TradeType.BUY.value, -trades["amount"], trades["amount"])
    signed_qty = np.where(trades["type"] == TradeType.BUY.value, trades["quantity"], -trades["quantity"])
    cash_after = float(cash) - (flows[::-1].cumsum()[::-1] - flows)

    holdings = (
        pd.DataFrame({"date": trades["date"], "productId": trades["productId"], "qty": signed_qty})
        .pivot_table(index="date", columns="productId", values="qty", aggfunc="sum", fill_value=0.0)
        .cumsum()
        .clip(lower=0.0)
    )
    priced = trades[trades["price"] > 0]
    if priced.empty:
        prices = pd.DataFrame(0.0, index=holdings.index, columns=holdings.columns)
    else:
        prices = (
            priced.pivot_table(index="date", columns="productId", values="price", aggfunc="last")
            .reindex(index=holdings.index, columns=holdings.columns)
            .ffill()
            .fillna(0.0)
        )
    cash_by_date = pd.Series(cash_after, index=trades["date"]).groupby(level=0).last()
    series = (holdings * prices).sum(axis=1) + cash_by_date.reindex(holdings.index)

    point = pd.Timestamp(ensure_utc(as_of or utcnow()))
    if current_prices is not None and point >= holdings.index[-1]:
        latest = holdings.iloc[-1]
        marked = sum(latest.get(pid, 0.0) * price for pid, price in current_prices.items())
        series.loc[point] = float(cash) + float(marked)
    return series.sort_index()


def risk_metrics(series: pd.Series, trading_days: int, risk_free_rate: float) -> Dict[str, float]:
    """波动率(年化%)、夏普比率与最大回撤(%)"""
    values = series.astype(float)
    returns = values.pct_change().replace([np.inf, -np.inf], np.nan).dropna()

    volatility = float(returns.std(ddof=1) * np.sqrt(trading_days)) if len(returns) > 1 else 0.0
    annual_return = float(returns.mean() * trading_days) if len(returns) else 0.0
    sharpe = (annual_return - risk_free_rate) / volatility if volatility > 0 else 0.0

    peaks = values.cummax()
    drawdowns = np.where(peaks > 0, values / peaks.where(peaks > 0, 1.0) - 1.0, 0.0)
    max_drawdown = float(drawdowns.min()) if len(drawdowns) else 0.0

    return {
        "volatility": _round(volatility * 100),
        "sharpeRatio": _round(sharpe),
        "maxDrawdown": _round(max_drawdown * 100),
    }


def period_performance(series: pd.Series, period: str, as_of: datetime, config: Dict[str, Any]) -> Dict[str, Any]:
    """单个区间的收益、基准收益与风险指标; 基准按年化收益折算到区间天数"""
    end = pd.Timestamp(ensure_utc(as_of))
    days = PERIOD_DAYS[period]
    if days is None:
        start = series.index[0]
        days = max((end - start).days, 1)
    else:
        start = end - pd.Timedelta(days=days)

    before = series[series.index <= start]
    if before.empty:
        start_value = float(series.iloc[0])
        window = series
    else:
        start_value = float(before.iloc[-1])
        window = pd.concat([before.iloc[-1:], series[series.index > start]])
    end_value = float(series.iloc[-1])

    gain = end_value - start_value
    gain_pct = gain / start_value * 100 if start_value else 0.0
    benchmark_pct = config["benchmark_annual_return"] * days / 365 * 100
    metrics = risk_metrics(window, config["trading_days"], config["risk_free_rate"])

    return {
        "period": period,
        "return": _round(gain),
        "returnPercent": _round(gain_pct),
        "benchmarkReturn": _round(start_value * benchmark_pct / 100),
        "benchmarkReturnPercent": _round(benchmark_pct),
        "excessReturn": _round(gain_pct - benchmark_pct),
        **metrics,
    }


class PortfolioService:
    """投资组合服务核心类"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = config

    @property
    def config(self) -> Dict[str, Any]:
        return self._config or settings.portfolio_config

    async def _get_account(self, account_id: int, db: AsyncSession) -> Account:
        account = await db.get(Account, account_id)
        if account is None:
            raise NotFoundException(PORTFOLIO_NOT_FOUND, {"accountId": account_id})
        return account

    async def _load_trades(self, account_id: int, db: AsyncSession) -> pd.DataFrame:
        result = await db.execute(
            select(Transaction, Product)
            .join(Product, Product.product_id == Transaction.product_id)
            .where(Transaction.account_id == account_id)
            .order_by(Transaction.trade_date, Transaction.transaction_id)
        )
        return trades_frame(
            [
                {
                    "id": t.transaction_id,
                    "date": ensure_utc(t.trade_date),
                    "productId": t.product_id,
                    "name": p.product_name,
                    "assetClass": p.product_type.value if p.product_type else "OTHER",
                    "type": t.trade_type.value,
                    "amount": t.trade_amount,
                    "price": t.trade_price,
                }
                for t, p in result.all()
            ]
        )

    async def _current_prices(self, product_ids: List[int], db: AsyncSession) -> Dict[int, float]:
        """各产品最新成交价 (全部账户)"""
        if not product_ids:
            return {}
        latest = (
            select(Transaction.product_id, func.max(Transaction.trade_date).label("latest"))
            .where(Transaction.product_id.in_(product_ids), Transaction.trade_price > 0)
            .group_by(Transaction.product_id)
            .subquery()
        )
        result = await db.execute(
            select(Transaction.product_id, Transaction.trade_price)
            .join(latest, (latest.c.product_id == Transaction.product_id) & (latest.c.latest == Transaction.trade_date))
            .order_by(Transaction.product_id, Transaction.transaction_id)
        )
        prices: Dict[int, float] = {}
        for product_id, price in result.all():
            prices[product_id] = float(price)
        return prices

    def _assets(self, positions: Dict[int, Dict[str, Any]], prices: Dict[int, float]) -> List[Dict[str, Any]]:
        open_positions = [p for p in positions.values() if p["quantity"] > QUANTITY_EPSILON]
        market_values = {p["productId"]: p["quantity"] * prices.get(p["productId"], 0.0) for p in open_positions}
        total = sum(market_values.values())

        assets = []
        for position in open_positions:
            product_id = position["productId"]
            average = position["cost"] / position["quantity"]
            current = prices.get(product_id, average)
            market_value = position["quantity"] * current
            pnl = market_value - position["cost"]
            assets.append(
                {
                    "symbol": product_symbol(product_id),
                    "name": position["name"],
                    "quantity": _round(position["quantity"], 4),
                    "averagePrice": _round(average),
                    "currentPrice": _round(current),
                    "marketValue": _round(market_value),
                    "unrealizedPnL": _round(pnl),
                    "unrealizedPnLPercent": _round(pnl / position["cost"] * 100 if position["cost"] else 0.0),
                    "weight": _round(market_value / total * 100 if total else 0.0),
                    "sector": position["assetClass"],
                }
            )
        return sorted(assets, key=lambda a: (-a["marketValue"], a["symbol"]))

    def _allocation(self, assets: List[Dict[str, Any]], cash: float) -> List[Dict[str, Any]]:
        """按产品类型汇总市值, 变动为相对持仓成本"""
        if assets:
            frame = pd.DataFrame(assets)
            frame["cost"] = frame["averagePrice"] * frame["quantity"]
            grouped = frame.groupby("sector")[["marketValue", "cost"]].sum().sort_values("marketValue", ascending=False)
        else:
            grouped = pd.DataFrame(columns=["marketValue", "cost"])

        total = float(grouped["marketValue"].sum()) + max(cash, 0.0)
        allocation = []
        for asset_class, row in grouped.iterrows():
            change = float(row["marketValue"] - row["cost"])
            allocation.append(
                {
                    "assetClass": asset_class,
                    "amount": _round(row["marketValue"]),
                    "percentage": _round(row["marketValue"] / total * 100 if total else 0.0),
                    "change": _round(change),
                    "changePercent": _round(change / row["cost"] * 100 if row["cost"] else 0.0),
                }
            )
        allocation.append(
            {
                "assetClass": CASH_CLASS,
                "amount": _round(cash),
                "percentage": _round(max(cash, 0.0) / total * 100 if total else 0.0),
                "change": 0.0,
                "changePercent": 0.0,
            }
        )
        return allocation

    def _serialize_trades(self, trades: pd.DataFrame, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        recent = trades.sort_values(["date", "id"], ascending=False)
        if limit is not None:
            recent = recent.head(limit)
        return [
            {
                "id": str(row.id),
                "symbol": product_symbol(row.productId),
                "type": row.type,
                "quantity": _round(row.quantity, 4),
                "price": _round(row.price),
                "amount": _round(row.amount),
                "date": to_iso(row.date.to_pydatetime()),
                "fees": 0.0,
            }
            for row in recent.itertuples(index=False)
        ]

    async def _build(self, account_id: int, db: AsyncSession) -> Dict[str, Any]:
        account = await self._get_account(account_id, db)
        trades = await self._load_trades(account_id, db)
        positions = compute_positions(trades)
        prices = await self._current_prices(list(positions), db)
        now = utcnow()
        cash = float(account.balance or 0)
        series = value_series(trades, cash, now, prices)
        return {
            "account": account,
            "trades": trades,
            "positions": positions,
            "prices": prices,
            "cash": cash,
            "series": series,
            "now": now,
        }

    @log_performance("portfolio_data")
    async def get_portfolio_data(self, account_id: int, db: AsyncSession) -> Dict[str, Any]:
        """完整投资组合视图"""
        state = await self._build(account_id, db)
        account, trades, positions, cash, series, now = (
            state["account"], state["trades"], state["positions"], state["cash"], state["series"], state["now"]
        )

        assets = self._assets(positions, state["prices"])
        invested = sum(p["cost"] for p in positions.values())
        market_value = sum(a["marketValue"] for a in assets)
        unrealized = sum(a["unrealizedPnL"] for a in assets)
        realized = sum(p["realizedPnL"] for p in positions.values())
        buy_cost = sum(p["buyCost"] for p in positions.values())
        total_value = market_value + cash
        total_return = unrealized + realized
        total_return_pct = total_return / buy_cost * 100 if buy_cost else 0.0

        days = max((pd.Timestamp(now) - trades["date"].iloc[0]).days, 1) if not trades.empty else 0
        annualized = annualized_return(total_return_pct, days)

        metrics = risk_metrics(series, self.config["trading_days"], self.config["risk_free_rate"])
        last_updated = to_iso(now)

        logger.log_portfolio_event("viewed", account_id, positions=len(assets))
        return {
            "account": {
                "id": str(account.account_id),
                "name": account.account_no,
                "type": account.account_type.value if account.account_type else None,
                "balance": _round(float(account.balance or 0)),
                "cash": _round(cash),
                "investedAmount": _round(invested),
                "totalValue": _round(total_value),
                "totalPnL": _round(unrealized),
                "totalPnLPercent": _round(unrealized / invested * 100 if invested else 0.0),
                "lastUpdated": last_updated,
            },
            "assets": assets,
            "performance": [period_performance(series, p, now, self.config) for p in PERIOD_DAYS],
            "allocation": self._allocation(assets, cash),
            "recentTransactions": self._serialize_trades(trades, 10),
            "summary": {
                "totalAssets": _round(market_value + max(cash, 0.0)),
                "totalLiabilities": _round(max(-cash, 0.0)),
                "netWorth": _round(total_value),
                "totalReturn": _round(total_return),
                "totalReturnPercent": _round(total_return_pct),
                "annualizedReturn": _round(annualized),
                # 无市场指数数据, beta 固定为0
                "riskMetrics": dict(metrics, beta=0.0),
            },
            "lastUpdated": last_updated,
        }

    async def get_performance(self, account_id: int, db: AsyncSession, period: Optional[str] = None) -> List[Dict[str, Any]]:
        state = await self._build(account_id, db)
        periods = [period] if period else list(PERIOD_DAYS)
        return [period_performance(state["series"], p, state["now"], self.config) for p in periods]

    async def get_assets(self, account_id: int, db: AsyncSession) -> List[Dict[str, Any]]:
        await self._get_account(account_id, db)
        positions = compute_positions(await self._load_trades(account_id, db))
        return self._assets(positions, await self._current_prices(list(positions), db))

    async def get_allocation(self, account_id: int, db: AsyncSession) -> List[Dict[str, Any]]:
        account = await self._get_account(account_id, db)
        assets = await self.get_assets(account_id, db)
        return self._allocation(assets, float(account.balance or 0))

    async def get_transactions(self, account_id: int, db: AsyncSession, limit: int = 10) -> Dict[str, Any]:
        await self._get_account(account_id, db)
        trades = await self._load_trades(account_id, db)
        total = len(trades)
        return {
            "data": self._serialize_trades(trades, limit),
            "pagination": {
                "page": 1,
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit) if limit else 0,
            },
        }


# 创建全局服务实例
portfolio_service = PortfolioService()
