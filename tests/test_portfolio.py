"""
IRDesk Platform - 投资组合测试
"""

import math
from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from backend.app.models.crm import ProductType, TradeType
from backend.app.services.portfolio_service import (
    PERIOD_DAYS,
    annualized_return,
    compute_positions,
    period_performance,
    risk_metrics,
    trades_frame,
)
from backend.app.utils.datetime_utils import utcnow

CONFIG = {"benchmark_annual_return": 0.05, "risk_free_rate": 0.03, "trading_days": 252}


def _row(id, day, trade_type, amount, price, product_id=1):
    return {
        "id": id,
        "date": datetime(2024, 1, day, tzinfo=timezone.utc),
        "productId": product_id,
        "name": "KB Equity Fund",
        "assetClass": "FUND",
        "type": trade_type,
        "amount": amount,
        "price": price,
    }


def test_trades_frame_quantity_and_order():
    frame = trades_frame([
        _row(2, 5, "SELL", 600, 300),
        _row(1, 2, "BUY", 1000, 250),
        _row(3, 9, "BUY", 500, None),
    ])
    assert list(frame["id"]) == [1, 2, 3]
    assert list(frame["quantity"]) == [4.0, 2.0, 0.0]


def test_trades_frame_empty():
    frame = trades_frame([])
    assert frame.empty
    assert "quantity" in frame.columns


def test_compute_positions_moving_average():
    positions = compute_positions(trades_frame([
        _row(1, 2, "BUY", 100_000, 1_000),
        _row(2, 3, "BUY", 120_000, 1_200),
        _row(3, 4, "SELL", 65_000, 1_300),
    ]))
    position = positions[1]
    assert position["quantity"] == pytest.approx(150)
    assert position["cost"] == pytest.approx(165_000)
    assert position["realizedPnL"] == pytest.approx(10_000)
    assert position["buyCost"] == pytest.approx(220_000)


def test_compute_positions_clamps_oversell():
    positions = compute_positions(trades_frame([
        _row(1, 2, "BUY", 10_000, 100),
        _row(2, 3, "SELL", 30_000, 150),
    ]))
    position = positions[1]
    assert position["quantity"] == 0.0
    assert position["cost"] == 0.0
    assert position["realizedPnL"] == pytest.approx(5_000)


def test_risk_metrics():
    series = pd.Series([100.0, 110.0, 99.0])
    metrics = risk_metrics(series, 252, 0.03)
    assert metrics["volatility"] == pytest.approx(224.5)
    assert metrics["sharpeRatio"] == pytest.approx(-0.01)
    assert metrics["maxDrawdown"] == pytest.approx(-10.0)


def test_risk_metrics_flat_series():
    assert risk_metrics(pd.Series([100.0]), 252, 0.03) == {
        "volatility": 0.0,
        "sharpeRatio": 0.0,
        "maxDrawdown": 0.0,
    }


def _series():
    index = pd.DatetimeIndex([
        pd.Timestamp("2024-01-01", tz="UTC"),
        pd.Timestamp("2024-06-01", tz="UTC"),
        pd.Timestamp("2024-12-01", tz="UTC"),
    ])
    return pd.Series([100.0, 110.0, 121.0], index=index)


def test_period_performance_year():
    result = period_performance(_series(), "1Y", datetime(2024, 12, 31, tzinfo=timezone.utc), CONFIG)
    assert result["period"] == "1Y"
    assert result["return"] == pytest.approx(21.0)
    assert result["returnPercent"] == pytest.approx(21.0)
    assert result["benchmarkReturnPercent"] == pytest.approx(5.0)
    assert result["benchmarkReturn"] == pytest.approx(5.0)
    assert result["excessReturn"] == pytest.approx(16.0)
    assert {"volatility", "sharpeRatio", "maxDrawdown"} <= set(result)


def test_period_performance_short_window():
    result = period_performance(_series(), "1M", datetime(2024, 12, 31, tzinfo=timezone.utc), CONFIG)
    assert result["return"] == 0.0
    assert result["benchmarkReturnPercent"] == pytest.approx(0.41)


def test_period_performance_all_starts_at_first_point():
    result = period_performance(_series(), "ALL", datetime(2024, 12, 31, tzinfo=timezone.utc), CONFIG)
    assert result["returnPercent"] == pytest.approx(21.0)
    assert result["benchmarkReturnPercent"] == pytest.approx(5.0)


@pytest.fixture
async def holding(make_account, make_product, make_trade):
    account = await make_account(balance=1_000_000)
    product = await make_product("KB Equity Fund", ProductType.FUND)
    await make_trade(account.account_id, product.product_id, TradeType.BUY, 100_000, 1_000, datetime(2024, 1, 10))
    await make_trade(account.account_id, product.product_id, TradeType.BUY, 120_000, 1_200, datetime(2024, 2, 10))
    await make_trade(account.account_id, product.product_id, TradeType.SELL, 65_000, 1_300, datetime(2024, 3, 10))
    return account, product


async def test_portfolio_overview(client, auth_headers, holding):
    account, product = holding
    response = await client.get(f"/api/portfolio/{account.account_id}", headers=auth_headers)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["message"] == "포트폴리오 데이터를 성공적으로 조회했습니다."
    data = body["data"]

    assert data["account"]["id"] == str(account.account_id)
    assert data["account"]["name"] == account.account_no
    assert data["account"]["cash"] == 1_000_000.0
    assert data["account"]["investedAmount"] == pytest.approx(165_000)
    assert data["account"]["totalValue"] == pytest.approx(1_195_000)
    assert data["account"]["totalPnL"] == pytest.approx(30_000)
    assert data["account"]["totalPnLPercent"] == pytest.approx(18.18)

    [asset] = data["assets"]
    assert asset["symbol"] == f"PRD-{product.product_id}"
    assert asset["sector"] == "FUND"
    assert asset["quantity"] == pytest.approx(150)
    assert asset["averagePrice"] == pytest.approx(1_100)
    assert asset["currentPrice"] == pytest.approx(1_300)
    assert asset["marketValue"] == pytest.approx(195_000)
    assert asset["weight"] == pytest.approx(100.0)

    assert [p["period"] for p in data["performance"]] == list(PERIOD_DAYS)
    assert [a["assetClass"] for a in data["allocation"]] == ["FUND", "CASH"]
    assert data["allocation"][0]["percentage"] == pytest.approx(16.32)
    assert data["allocation"][0]["change"] == pytest.approx(30_000)
    assert data["allocation"][1]["percentage"] == pytest.approx(83.68)

    assert [t["type"] for t in data["recentTransactions"]] == ["SELL", "BUY", "BUY"]
    assert data["recentTransactions"][0]["quantity"] == pytest.approx(50)
    assert data["recentTransactions"][0]["fees"] == 0.0

    summary = data["summary"]
    assert summary["totalReturn"] == pytest.approx(40_000)
    assert summary["totalReturnPercent"] == pytest.approx(18.18)
    assert summary["netWorth"] == pytest.approx(1_195_000)
    assert summary["totalLiabilities"] == 0.0
    assert summary["riskMetrics"]["beta"] == 0.0


async def test_portfolio_without_trades(client, auth_headers, make_account):
    account = await make_account(balance=50_000)
    response = await client.get(f"/api/portfolio/{account.account_id}", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["assets"] == []
    assert data["allocation"] == [
        {"assetClass": "CASH", "amount": 50_000.0, "percentage": 100.0, "change": 0.0, "changePercent": 0.0}
    ]
    assert data["summary"]["annualizedReturn"] == 0.0


async def test_portfolio_sub_views(client, auth_headers, holding):
    account, _ = holding
    base = f"/api/portfolio/{account.account_id}"

    response = await client.get(f"{base}/performance", params={"period": "1M"}, headers=auth_headers)
    assert response.status_code == 200
    assert [p["period"] for p in response.json()["data"]] == ["1M"]

    response = await client.get(f"{base}/performance", headers=auth_headers)
    assert len(response.json()["data"]) == 7

    response = await client.get(f"{base}/assets", headers=auth_headers)
    assert len(response.json()["data"]) == 1

    response = await client.get(f"{base}/allocation", headers=auth_headers)
    assert response.json()["data"][-1]["assetClass"] == "CASH"

    response = await client.get(f"{base}/transactions", params={"limit": 2}, headers=auth_headers)
    data = response.json()["data"]
    assert len(data["data"]) == 2
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}


async def test_portfolio_errors(client, auth_headers, holding):
    account, _ = holding

    response = await client.get("/api/portfolio/9999", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "포트폴리오를 찾을 수 없습니다."

    response = await client.get(
        f"/api/portfolio/{account.account_id}/performance", params={"period": "2Y"}, headers=auth_headers
    )
    assert response.status_code == 400

    response = await client.get(f"/api/portfolio/{account.account_id}")
    assert response.status_code == 401


def test_annualized_return():
    assert annualized_return(10.0, 365) == pytest.approx(10.0)
    assert annualized_return(21.0, 730) == pytest.approx(10.0)
    assert annualized_return(-100.0, 30) == 0.0
    assert annualized_return(50.0, 0) == 0.0


def test_annualized_return_caps_young_large_gains():
    value = annualized_return(900.0, 1)
    assert math.isfinite(value)
    assert value > 1e300


async def test_portfolio_young_position_with_large_gain(client, auth_headers, make_account, make_product, make_trade):
    holder = await make_account(balance=0)
    other = await make_account(balance=0, customer_name="김철수")
    product = await make_product("KB Growth ETF", ProductType.ETF)
    now = utcnow()
    await make_trade(holder.account_id, product.product_id, TradeType.BUY, 100, 1, now - timedelta(hours=1))
    # 其他账户的最新成交价决定当前价
    await make_trade(other.account_id, product.product_id, TradeType.BUY, 100, 10, now - timedelta(minutes=30))

    response = await client.get(f"/api/portfolio/{holder.account_id}", headers=auth_headers)
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["assets"][0]["currentPrice"] == pytest.approx(10)
    assert data["summary"]["totalReturnPercent"] == pytest.approx(900.0)
    assert math.isfinite(data["summary"]["annualizedReturn"])
    assert data["summary"]["annualizedReturn"] > 0
