"""
IRDesk Platform - CRM服务
客户、咨询记录、账户、产品、交易及统计
"""

import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete, desc, func, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ConflictException, NotFoundException
from backend.app.core.logging import get_logger, log_performance, audit_logger
from backend.app.models.crm import (
    Customer,
    ContactHistory,
    Account,
    Product,
    Transaction,
    CustomerGrade,
    CustomerStatus,
    ContactType,
    ContactPurpose,
    AccountType,
    AccountStatus,
    ProductType,
    RiskLevel,
    TradeType,
)
from backend.app.utils.datetime_utils import ensure_utc, month_start, to_iso, utcnow

logger = get_logger(__name__)

# 各实体的枚举字段
CUSTOMER_ENUMS = {"customer_grade": CustomerGrade, "status": CustomerStatus}
CONTACT_ENUMS = {"contact_type": ContactType, "contact_purpose": ContactPurpose}
ACCOUNT_ENUMS = {"account_type": AccountType, "status": AccountStatus}
PRODUCT_ENUMS = {"product_type": ProductType, "risk_level": RiskLevel}


def _enum_value(value: Any) -> Any:
    return value.value if value is not None and hasattr(value, "value") else value


def _number(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _coerce(data: Dict[str, Any], enums: Dict[str, Any]) -> Dict[str, Any]:
    """枚举字段转换为模型枚举, 时间字段统一为UTC"""
    values = {}
    for key, value in data.items():
        if key in enums and value is not None:
            value = enums[key](_enum_value(value))
        elif isinstance(value, datetime):
            value = ensure_utc(value)
        values[key] = value
    return values


def paginate(items: List[Any], page: int, limit: int, total: int) -> Dict[str, Any]:
    return {
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if limit else 0,
        },
    }


def serialize_customer(customer: Customer) -> Dict[str, Any]:
    return {
        "customerId": customer.customer_id,
        "customerName": customer.customer_name,
        "residentNo": customer.resident_no,
        "phoneNo": customer.phone_no,
        "email": customer.email,
        "address": customer.address,
        "customerGrade": _enum_value(customer.customer_grade),
        "joinDate": to_iso(customer.join_date),
        "lastContactDate": to_iso(customer.last_contact_date),
        "status": _enum_value(customer.status),
        "regDate": to_iso(customer.reg_date),
    }


def serialize_contact(contact: ContactHistory) -> Dict[str, Any]:
    return {
        "contactId": contact.contact_id,
        "customerId": contact.customer_id,
        "contactType": _enum_value(contact.contact_type),
        "contactPurpose": _enum_value(contact.contact_purpose),
        "contactNote": contact.contact_note,
        "contactDate": to_iso(contact.contact_date),
        "managerId": contact.manager_id,
    }


def serialize_account(account: Account) -> Dict[str, Any]:
    return {
        "accountId": account.account_id,
        "customerId": account.customer_id,
        "accountNo": account.account_no,
        "accountType": _enum_value(account.account_type),
        "openDate": to_iso(account.open_date),
        "balance": _number(account.balance),
        "status": _enum_value(account.status),
    }


def serialize_product(product: Product) -> Dict[str, Any]:
    return {
        "productId": product.product_id,
        "productName": product.product_name,
        "productType": _enum_value(product.product_type),
        "riskLevel": _enum_value(product.risk_level),
        "issuer": product.issuer,
        "regDate": to_iso(product.reg_date),
    }


def serialize_transaction(transaction: Transaction) -> Dict[str, Any]:
    return {
        "transactionId": transaction.transaction_id,
        "accountId": transaction.account_id,
        "productId": transaction.product_id,
        "tradeType": _enum_value(transaction.trade_type),
        "tradeAmount": _number(transaction.trade_amount),
        "tradePrice": _number(transaction.trade_price),
        "tradeDate": to_iso(transaction.trade_date),
    }


class CRMService:
    """CRM服务核心类"""

    # ---------- 客户 ----------

    async def create_customer(self, data: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
        customer = Customer(**_coerce(data, CUSTOMER_ENUMS))
        db.add(customer)
        await db.commit()
        logger.log_crm_event("created", "customer", customer.customer_id)
        return serialize_customer(customer)

    @log_performance("crm_list_customers")
    async def list_customers(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        customer_name: Optional[str] = None,
        customer_grade: Optional[str] = None,
        status: Optional[str] = None,
        join_date_from: Optional[date] = None,
        join_date_to: Optional[date] = None,
    ) -> Dict[str, Any]:
        """客户列表, 名称模糊匹配, 按登记时间倒序"""
        conditions = []
        if customer_name:
            conditions.append(Customer.customer_name.ilike(f"%{customer_name}%"))
        if customer_grade:
            conditions.append(Customer.customer_grade == CustomerGrade(customer_grade))
        if status:
            conditions.append(Customer.status == CustomerStatus(status))
        if join_date_from:
            conditions.append(Customer.join_date >= join_date_from)
        if join_date_to:
            conditions.append(Customer.join_date <= join_date_to)

        total = (
            await db.execute(select(func.count()).select_from(Customer).where(*conditions))
        ).scalar_one()
        result = await db.execute(
            select(Customer)
            .where(*conditions)
            .order_by(desc(Customer.reg_date), desc(Customer.customer_id))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return paginate([serialize_customer(c) for c in result.scalars().all()], page, limit, total)

    async def _get_customer(self, customer_id: int, db: AsyncSession) -> Customer:
        customer = await db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundException(f"Customer with ID {customer_id} not found")
        return customer

    async def get_customer(self, customer_id: int, db: AsyncSession) -> Dict[str, Any]:
        return serialize_customer(await self._get_customer(customer_id, db))

    async def update_customer(self, customer_id: int, data: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
        """更新客户信息并记录最近联系时间"""
        customer = await self._get_customer(customer_id, db)
        for key, value in _coerce(data, CUSTOMER_ENUMS).items():
            setattr(customer, key, value)
        customer.last_contact_date = utcnow()
        await db.commit()
        logger.log_crm_event("updated", "customer", customer_id, fields=sorted(data))
        return serialize_customer(customer)

    async def delete_customer(self, customer_id: int, db: AsyncSession, user_id: Any = None) -> None:
        customer = await self._get_customer(customer_id, db)
        await db.execute(delete(Customer).where(Customer.customer_id == customer.customer_id))
        await db.commit()
        logger.log_crm_event("deleted", "customer", customer_id)
        audit_logger.log_user_action(user_id, "delete", "customer", customer_id)

    # ---------- 咨询记录 ----------

    async def create_contact(self, customer_id: int, data: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
        await self._get_customer(customer_id, db)
        values = _coerce(data, CONTACT_ENUMS)
        if values.get("contact_date") is None:
            values.pop("contact_date", None)
        contact = ContactHistory(customer_id=customer_id, **values)
        db.add(contact)
        await db.commit()
        logger.log_crm_event("created", "contact", contact.contact_id, customer_id=customer_id)
        return serialize_contact(contact)

    async def list_contacts(self, customer_id: int, db: AsyncSession) -> List[Dict[str, Any]]:
        await self._get_customer(customer_id, db)
        result = await db.execute(
            select(ContactHistory)
            .where(ContactHistory.customer_id == customer_id)
            .order_by(desc(ContactHistory.contact_date), desc(ContactHistory.contact_id))
        )
        return [serialize_contact(c) for c in result.scalars().all()]

    # ---------- 账户 ----------

    async def create_account(self, customer_id: int, data: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
        """开立账户, 账号重复时返回冲突"""
        await self._get_customer(customer_id, db)
        existing = await db.execute(select(Account.account_id).where(Account.account_no == data["account_no"]))
        if existing.first() is not None:
            raise ConflictException("Account number already exists", {"accountNo": data["account_no"]})

        values = _coerce(data, ACCOUNT_ENUMS)
        if values.get("balance") is None:
            values.pop("balance", None)
        account = Account(customer_id=customer_id, **values)
        db.add(account)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictException("Account number already exists", {"accountNo": data["account_no"]})

        logger.log_crm_event("created", "account", account.account_id, customer_id=customer_id)
        return serialize_account(account)

    async def list_accounts(self, customer_id: int, db: AsyncSession) -> List[Dict[str, Any]]:
        await self._get_customer(customer_id, db)
        result = await db.execute(
            select(Account).where(Account.customer_id == customer_id).order_by(Account.account_id)
        )
        return [serialize_account(a) for a in result.scalars().all()]

    async def get_account(self, account_id: int, db: AsyncSession) -> Account:
        account = await db.get(Account, account_id)
        if account is None:
            raise NotFoundException(f"Account with ID {account_id} not found")
        return account

    async def update_account(self, account_id: int, data: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
        account = await self.get_account(account_id, db)
        if data.get("account_no") and data["account_no"] != account.account_no:
            existing = await db.execute(select(Account.account_id).where(Account.account_no == data["account_no"]))
            if existing.first() is not None:
                raise ConflictException("Account number already exists", {"accountNo": data["account_no"]})

        for key, value in _coerce(data, ACCOUNT_ENUMS).items():
            setattr(account, key, value)
        await db.commit()
        logger.log_crm_event("updated", "account", account_id, fields=sorted(data))
        return serialize_account(account)

    # ---------- 产品 ----------

    async def create_product(self, data: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
        product = Product(**_coerce(data, PRODUCT_ENUMS))
        db.add(product)
        await db.commit()
        logger.log_crm_event("created", "product", product.product_id)
        return serialize_product(product)

    async def list_products(self, db: AsyncSession) -> List[Dict[str, Any]]:
        result = await db.execute(select(Product).order_by(desc(Product.reg_date), desc(Product.product_id)))
        return [serialize_product(p) for p in result.scalars().all()]

    async def _get_product(self, product_id: int, db: AsyncSession) -> Product:
        product = await db.get(Product, product_id)
        if product is None:
            raise NotFoundException(f"Product with ID {product_id} not found")
        return product

    async def get_product(self, product_id: int, db: AsyncSession) -> Dict[str, Any]:
        return serialize_product(await self._get_product(product_id, db))

    async def update_product(self, product_id: int, data: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
        product = await self._get_product(product_id, db)
        for key, value in _coerce(data, PRODUCT_ENUMS).items():
            setattr(product, key, value)
        await db.commit()
        logger.log_crm_event("updated", "product", product_id, fields=sorted(data))
        return serialize_product(product)

    # ---------- 交易 ----------

    @log_performance("crm_create_transaction")
    async def create_transaction(self, data: Dict[str, Any], db: AsyncSession) -> Dict[str, Any]:
        """
        记录交易并调整账户余额。

        买入从余额扣除交易金额, 卖出则加回。
        """
        account = await self.get_account(data["account_id"], db)
        await self._get_product(data["product_id"], db)

        trade_type = TradeType(_enum_value(data["trade_type"]))
        amount = Decimal(str(data.get("trade_amount") or 0))
        price = data.get("trade_price")

        transaction = Transaction(
            account_id=account.account_id,
            product_id=data["product_id"],
            trade_type=trade_type,
            trade_amount=amount,
            trade_price=Decimal(str(price)) if price is not None else None,
        )
        if data.get("trade_date") is not None:
            transaction.trade_date = ensure_utc(data["trade_date"])

        balance = Decimal(account.balance or 0)
        account.balance = balance - amount if trade_type == TradeType.BUY else balance + amount

        db.add(transaction)
        await db.commit()

        logger.log_crm_event(
            "created",
            "transaction",
            transaction.transaction_id,
            account_id=account.account_id,
            trade_type=trade_type.value,
            amount=float(amount),
        )
        return serialize_transaction(transaction)

    async def list_transactions(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        account_id: Optional[int] = None,
        product_id: Optional[int] = None,
        trade_type: Optional[str] = None,
        trade_date_from: Optional[datetime] = None,
        trade_date_to: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        conditions = []
        if account_id is not None:
            conditions.append(Transaction.account_id == account_id)
        if product_id is not None:
            conditions.append(Transaction.product_id == product_id)
        if trade_type:
            conditions.append(Transaction.trade_type == TradeType(trade_type))
        if trade_date_from:
            conditions.append(Transaction.trade_date >= ensure_utc(trade_date_from))
        if trade_date_to:
            conditions.append(Transaction.trade_date <= ensure_utc(trade_date_to))

        total = (
            await db.execute(select(func.count()).select_from(Transaction).where(*conditions))
        ).scalar_one()
        result = await db.execute(
            select(Transaction)
            .where(*conditions)
            .order_by(desc(Transaction.trade_date), desc(Transaction.transaction_id))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return paginate([serialize_transaction(t) for t in result.scalars().all()], page, limit, total)

    # ---------- 统计 ----------

    async def get_customer_statistics(self, db: AsyncSession) -> Dict[str, int]:
        """客户统计, 本月新客户按加入日期计算"""
        first_day = month_start().date()
        row = (
            await db.execute(
                select(
                    func.count(),
                    func.count(case((Customer.status == CustomerStatus.ACTIVE, 1))),
                    func.count(case((Customer.customer_grade == CustomerGrade.VIP, 1))),
                    func.count(case((Customer.join_date >= first_day, 1))),
                ).select_from(Customer)
            )
        ).one()
        return {
            "totalCustomers": row[0],
            "activeCustomers": row[1],
            "vipCustomers": row[2],
            "newCustomersThisMonth": row[3],
        }

    async def get_transaction_statistics(self, db: AsyncSession) -> Dict[str, Any]:
        row = (
            await db.execute(
                select(
                    func.count(),
                    func.coalesce(func.sum(Transaction.trade_amount), 0),
                    func.count(case((Transaction.trade_type == TradeType.BUY, 1))),
                    func.count(case((Transaction.trade_type == TradeType.SELL, 1))),
                ).select_from(Transaction)
            )
        ).one()
        return {
            "totalTransactions": row[0],
            "totalVolume": float(row[1] or 0),
            "buyTransactions": row[2],
            "sellTransactions": row[3],
        }


# 创建全局服务实例
crm_service = CRMService()
