"""
IRDesk Platform - CRM API端点
客户、咨询记录、账户、产品、交易与统计
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.schemas import CamelModel, data_response
from backend.app.core.database import get_db
from backend.app.core.deps import get_current_user
from backend.app.core.logging import get_logger
from backend.app.models.crm import (
    AccountStatus,
    AccountType,
    ContactPurpose,
    ContactType,
    CustomerGrade,
    CustomerStatus,
    ProductType,
    RiskLevel,
    TradeType,
)
from backend.app.models.user import User
from backend.app.services.crm_service import crm_service

logger = get_logger(__name__)

router = APIRouter()


# ---------- 请求模型 ----------

class CustomerCreateRequest(CamelModel):
    """客户创建请求模型"""
    customer_name: str = Field(..., min_length=1, max_length=100, description="客户名称")
    resident_no: Optional[str] = Field(None, max_length=20, description="身份证号")
    phone_no: Optional[str] = Field(None, max_length=20, description="电话")
    email: Optional[str] = Field(None, max_length=100, description="邮箱")
    address: Optional[str] = Field(None, max_length=200, description="地址")
    customer_grade: Optional[CustomerGrade] = Field(None, description="客户等级")
    join_date: date = Field(..., description="加入日期")
    status: Optional[CustomerStatus] = Field(None, description="状态")


class CustomerUpdateRequest(CamelModel):
    """客户更新请求模型"""
    customer_name: Optional[str] = Field(None, min_length=1, max_length=100, description="客户名称")
    resident_no: Optional[str] = Field(None, max_length=20, description="身份证号")
    phone_no: Optional[str] = Field(None, max_length=20, description="电话")
    email: Optional[str] = Field(None, max_length=100, description="邮箱")
    address: Optional[str] = Field(None, max_length=200, description="地址")
    customer_grade: Optional[CustomerGrade] = Field(None, description="客户等级")
    join_date: Optional[date] = Field(None, description="加入日期")
    status: Optional[CustomerStatus] = Field(None, description="状态")


class ContactCreateRequest(CamelModel):
    """咨询记录请求模型"""
    contact_type: Optional[ContactType] = Field(None, description="咨询方式")
    contact_purpose: Optional[ContactPurpose] = Field(None, description="咨询目的")
    contact_note: Optional[str] = Field(None, description="咨询内容")
    contact_date: Optional[datetime] = Field(None, description="咨询时间")
    manager_id: Optional[int] = Field(None, description="负责经理ID")


class AccountCreateRequest(CamelModel):
    """账户开立请求模型"""
    account_no: str = Field(..., min_length=1, max_length=30, description="账号")
    account_type: Optional[AccountType] = Field(None, description="账户类型")
    open_date: Optional[date] = Field(None, description="开户日期")
    balance: Optional[Decimal] = Field(None, max_digits=20, decimal_places=2, description="余额")
    status: Optional[AccountStatus] = Field(None, description="状态")


class AccountUpdateRequest(CamelModel):
    """账户更新请求模型"""
    account_no: Optional[str] = Field(None, min_length=1, max_length=30, description="账号")
    account_type: Optional[AccountType] = Field(None, description="账户类型")
    open_date: Optional[date] = Field(None, description="开户日期")
    balance: Optional[Decimal] = Field(None, max_digits=20, decimal_places=2, description="余额")
    status: Optional[AccountStatus] = Field(None, description="状态")


class ProductCreateRequest(CamelModel):
    """产品创建请求模型"""
    product_name: str = Field(..., min_length=1, max_length=100, description="产品名称")
    product_type: Optional[ProductType] = Field(None, description="产品类型")
    risk_level: Optional[RiskLevel] = Field(None, description="风险等级")
    issuer: Optional[str] = Field(None, max_length=100, description="发行方")


class ProductUpdateRequest(CamelModel):
    """产品更新请求模型"""
    product_name: Optional[str] = Field(None, min_length=1, max_length=100, description="产品名称")
    product_type: Optional[ProductType] = Field(None, description="产品类型")
    risk_level: Optional[RiskLevel] = Field(None, description="风险等级")
    issuer: Optional[str] = Field(None, max_length=100, description="发行方")


class TransactionCreateRequest(CamelModel):
    """交易记录请求模型"""
    account_id: int = Field(..., description="账户ID")
    product_id: int = Field(..., description="产品ID")
    trade_type: TradeType = Field(..., description="交易方向 BUY/SELL")
    trade_amount: Decimal = Field(..., ge=0, max_digits=20, decimal_places=2, description="交易金额")
    trade_price: Optional[Decimal] = Field(None, ge=0, max_digits=20, decimal_places=2, description="成交单价")
    trade_date: Optional[datetime] = Field(None, description="交易时间")


def _payload(request: CamelModel) -> dict:
    return request.model_dump(exclude_unset=True)


# ---------- 客户 ----------

@router.post("/customers", status_code=status.HTTP_201_CREATED, summary="创建客户")
async def create_customer(
    request: CustomerCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return data_response(await crm_service.create_customer(_payload(request), db), "Customer created successfully")


@router.get("/customers", summary="客户列表", description="名称模糊匹配, 按登记时间倒序分页")
async def list_customers(
    customer_name: Optional[str] = Query(None, alias="customerName", description="客户名称"),
    customer_grade: Optional[CustomerGrade] = Query(None, alias="customerGrade", description="客户等级"),
    customer_status: Optional[CustomerStatus] = Query(None, alias="status", description="状态"),
    join_date_from: Optional[date] = Query(None, alias="joinDateFrom", description="加入日期起"),
    join_date_to: Optional[date] = Query(None, alias="joinDateTo", description="加入日期止"),
    page: int = Query(1, ge=1, description="页码"),
    limit: int = Query(10, ge=1, le=100, description="每页大小"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await crm_service.list_customers(
        db,
        page=page,
        limit=limit,
        customer_name=customer_name,
        customer_grade=customer_grade.value if customer_grade else None,
        status=customer_status.value if customer_status else None,
        join_date_from=join_date_from,
        join_date_to=join_date_to,
    )
    return data_response(result)


@router.get("/customers/{customer_id}", summary="客户详情")
async def get_customer(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return data_response(await crm_service.get_customer(customer_id, db))


@router.put("/customers/{customer_id}", summary="更新客户")
async def update_customer(
    customer_id: int,
    request: CustomerUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await crm_service.update_customer(customer_id, _payload(request), db)
    return data_response(result, "Customer updated successfully")


@router.delete("/customers/{customer_id}", summary="删除客户")
async def delete_customer(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await crm_service.delete_customer(customer_id, db, user_id=current_user.id)
    return data_response(None, "Customer deleted successfully")


# ---------- 咨询记录与账户 ----------

@router.post("/customers/{customer_id}/contacts", status_code=status.HTTP_201_CREATED, summary="添加咨询记录")
async def create_contact(
    customer_id: int,
    request: ContactCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await crm_service.create_contact(customer_id, _payload(request), db)
    return data_response(result, "Contact created successfully")


@router.get("/customers/{customer_id}/contacts", summary="咨询记录列表")
async def list_contacts(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return data_response(await crm_service.list_contacts(customer_id, db))


@router.post("/customers/{customer_id}/accounts", status_code=status.HTTP_201_CREATED, summary="开立账户")
async def create_account(
    customer_id: int,
    request: AccountCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await crm_service.create_account(customer_id, _payload(request), db)
    return data_response(result, "Account created successfully")


@router.get("/customers/{customer_id}/accounts", summary="客户账户列表")
async def list_accounts(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return data_response(await crm_service.list_accounts(customer_id, db))


@router.put("/accounts/{account_id}", summary="更新账户")
async def update_account(
    account_id: int,
    request: AccountUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await crm_service.update_account(account_id, _payload(request), db)
    return data_response(result, "Account updated successfully")


# ---------- 产品 ----------

@router.post("/products", status_code=status.HTTP_201_CREATED, summary="创建产品")
async def create_product(
    request: ProductCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return data_response(await crm_service.create_product(_payload(request), db), "Product created successfully")


@router.get("/products", summary="产品列表")
async def list_products(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return data_response(await crm_service.list_products(db))


@router.get("/products/{product_id}", summary="产品详情")
async def get_product(
    product_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return data_response(await crm_service.get_product(product_id, db))


@router.put("/products/{product_id}", summary="更新产品")
async def update_product(
    product_id: int,
    request: ProductUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await crm_service.update_product(product_id, _payload(request), db)
    return data_response(result, "Product updated successfully")


# ---------- 交易 ----------

@router.post(
    "/transactions",
    status_code=status.HTTP_201_CREATED,
    summary="记录交易",
    description="买入扣减账户余额, 卖出增加账户余额",
)
async def create_transaction(
    request: TransactionCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await crm_service.create_transaction(_payload(request), db)
    return data_response(result, "Transaction created successfully")


@router.get("/transactions", summary="交易列表")
async def list_transactions(
    account_id: Optional[int] = Query(None, alias="accountId", description="账户ID"),
    product_id: Optional[int] = Query(None, alias="productId", description="产品ID"),
    trade_type: Optional[TradeType] = Query(None, alias="tradeType", description="交易方向"),
    trade_date_from: Optional[datetime] = Query(None, alias="tradeDateFrom", description="交易时间起"),
    trade_date_to: Optional[datetime] = Query(None, alias="tradeDateTo", description="交易时间止"),
    page: int = Query(1, ge=1, description="页码"),
    limit: int = Query(10, ge=1, le=100, description="每页大小"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await crm_service.list_transactions(
        db,
        page=page,
        limit=limit,
        account_id=account_id,
        product_id=product_id,
        trade_type=trade_type.value if trade_type else None,
        trade_date_from=trade_date_from,
        trade_date_to=trade_date_to,
    )
    return data_response(result)


# ---------- 统计 ----------

@router.get("/statistics/customers", summary="客户统计")
async def customer_statistics(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return data_response(await crm_service.get_customer_statistics(db))


@router.get("/statistics/transactions", summary="交易统计")
async def transaction_statistics(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return data_response(await crm_service.get_transaction_statistics(db))
