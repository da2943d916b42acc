"""
IRDesk Platform - CRM数据模型
客户、咨询记录、账户、产品与交易
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Numeric, ForeignKey, Index, Enum,
)

from backend.app.core.database import Base
from backend.app.utils.datetime_utils import utcnow


class CustomerGrade(enum.Enum):
    """客户等级"""
    VIP = "VIP"
    GENERAL = "GENERAL"
    POTENTIAL = "POTENTIAL"


class CustomerStatus(enum.Enum):
    """客户状态"""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ContactType(enum.Enum):
    """咨询方式"""
    PHONE = "PHONE"
    VISIT = "VISIT"
    ONLINE = "ONLINE"
    EMAIL = "EMAIL"


class ContactPurpose(enum.Enum):
    """咨询目的"""
    INQUIRY = "INQUIRY"
    COMPLAINT = "COMPLAINT"
    CONSULTATION = "CONSULTATION"
    INVESTMENT_INQUIRY = "INVESTMENT_INQUIRY"


class AccountType(enum.Enum):
    """账户类型"""
    TRUST = "TRUST"
    PENSION = "PENSION"
    CMA = "CMA"


class AccountStatus(enum.Enum):
    """账户状态"""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class ProductType(enum.Enum):
    """产品类型"""
    STOCK = "STOCK"
    BOND = "BOND"
    FUND = "FUND"
    ELS = "ELS"
    ETF = "ETF"


class RiskLevel(enum.Enum):
    """风险等级"""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class TradeType(enum.Enum):
    """交易方向"""
    BUY = "BUY"
    SELL = "SELL"


class Customer(Base):
    """客户表"""

    __tablename__ = "tb_customer"

    customer_id = Column(Integer, primary_key=True, autoincrement=True)
    customer_name = Column(String(100), nullable=False, comment="客户名称")
    resident_no = Column(String(20), comment="身份证号(需脱敏)")
    phone_no = Column(String(20), comment="电话")
    email = Column(String(100), comment="邮箱")
    address = Column(String(200), comment="地址")
    customer_grade = Column(Enum(CustomerGrade, name="customer_grade"), comment="客户等级")
    join_date = Column(Date, nullable=False, comment="加入日期")
    last_contact_date = Column(DateTime(timezone=True), comment="最近联系时间")
    status = Column(Enum(CustomerStatus, name="customer_status"), nullable=False, default=CustomerStatus.ACTIVE)
    reg_date = Column(DateTime(timezone=True), nullable=False, default=utcnow, comment="登记时间")

    __table_args__ = (
        Index("idx_customer_name", "customer_name"),
        Index("idx_customer_reg_date", "reg_date"),
    )

    def __repr__(self):
        return f"<Customer(id={self.customer_id}, name='{self.customer_name}')>"


class ContactHistory(Base):
    """咨询记录表"""

    __tablename__ = "tb_contact_history"

    contact_id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("tb_customer.customer_id", ondelete="CASCADE"), nullable=False)
    contact_type = Column(Enum(ContactType, name="contact_type"), comment="咨询方式")
    contact_purpose = Column(Enum(ContactPurpose, name="contact_purpose"), comment="咨询目的")
    contact_note = Column(Text, comment="咨询内容")
    contact_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    manager_id = Column(Integer, comment="负责经理ID")

    __table_args__ = (
        Index("idx_contact_customer_date", "customer_id", "contact_date"),
    )


class Account(Base):
    """投资账户表"""

    __tablename__ = "tb_account"

    account_id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("tb_customer.customer_id", ondelete="CASCADE"), nullable=False)
    account_no = Column(String(30), nullable=False, unique=True, comment="账号")
    account_type = Column(Enum(AccountType, name="account_type"), comment="账户类型")
    open_date = Column(Date, comment="开户日期")
    balance = Column(Numeric(20, 2), nullable=False, default=0, comment="余额")
    status = Column(Enum(AccountStatus, name="account_status"), nullable=False, default=AccountStatus.ACTIVE)

    __table_args__ = (
        Index("idx_account_customer", "customer_id"),
    )

    def __repr__(self):
        return f"<Account(id={self.account_id}, no='{self.account_no}', balance={self.balance})>"


class Product(Base):
    """投资产品表"""

    __tablename__ = "tb_product"

    product_id = Column(Integer, primary_key=True, autoincrement=True)
    product_name = Column(String(100), nullable=False, comment="产品名称")
    product_type = Column(Enum(ProductType, name="product_type"), comment="产品类型")
    risk_level = Column(Enum(RiskLevel, name="risk_level"), comment="风险等级")
    issuer = Column(String(100), comment="发行方")
    reg_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Product(id={self.product_id}, name='{self.product_name}')>"


class Transaction(Base):
    """交易记录表"""

    __tablename__ = "tb_transaction"

    transaction_id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("tb_account.account_id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("tb_product.product_id"), nullable=False)
    trade_type = Column(Enum(TradeType, name="trade_type"), nullable=False, comment="交易方向")
    trade_amount = Column(Numeric(20, 2), comment="交易金额")
    trade_price = Column(Numeric(20, 2), comment="成交单价")
    trade_date = Column(DateTime(timezone=True), nullable=False, default=utcnow, comment="交易时间")

    __table_args__ = (
        Index("idx_transaction_account_date", "account_id", "trade_date"),
        Index("idx_transaction_product", "product_id"),
    )

    def __repr__(self):
        return f"<Transaction(id={self.transaction_id}, type={self.trade_type}, amount={self.trade_amount})>"
