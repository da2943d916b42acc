"""
IRDesk Platform - 数据库配置模块
管理PostgreSQL/SQLite异步数据库连接和会话
"""

import logging
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from sqlalchemy import MetaData, event, text
from sqlalchemy.engine import Engine

from backend.app.core.config import settings

# 创建基础模型类
Base = declarative_base(
    metadata=MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s"
        }
    )
)


def build_engine(url: str, **kwargs):
    """根据数据库类型创建异步引擎"""
    echo = settings.DEBUG and settings.LOG_LEVEL.upper() == "DEBUG"
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, **kwargs)

    if settings.ENVIRONMENT == "production":
        return create_async_engine(
            url,
            echo=echo,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            pool_pre_ping=True,
            pool_recycle=3600,  # 1小时回收连接
            **kwargs,
        )
    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        poolclass=NullPool,
        **kwargs,
    )


# 创建异步数据库引擎
engine = build_engine(settings.async_database_url)

# 创建会话工厂
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=True,
    autocommit=False,
)


@event.listens_for(Engine, "connect")
def set_connection_options(dbapi_connection, connection_record):
    """设置数据库连接参数"""
    if "sqlite" in type(dbapi_connection).__module__:
        # SQLite默认不启用外键, 级联删除依赖该设置
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取数据库会话的依赖注入函数
    用于FastAPI的Depends
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logging.error(f"Database session error: {e}")
            raise
        finally:
            await session.close()


def import_models():
    """导入所有模型以确保它们被注册到元数据"""
    from backend.app.models import (  # noqa: F401
        user,
        investor,
        gid,
        ir,
        crm,
        calendar,
        business_trip,
        notification,
    )


async def create_tables(bind=None):
    """创建所有数据库表"""
    import_models()
    try:
        async with (bind or engine).begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            logging.info("Database tables created successfully")
    except Exception as e:
        logging.error(f"Error creating database tables: {e}")
        raise


async def drop_tables(bind=None):
    """删除所有数据库表 (仅用于开发/测试)"""
    if settings.ENVIRONMENT == "production":
        raise ValueError("Cannot drop tables in production environment")

    import_models()
    try:
        async with (bind or engine).begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            logging.warning("All database tables dropped")
    except Exception as e:
        logging.error(f"Error dropping database tables: {e}")
        raise


class DatabaseManager:
    """数据库管理器"""

    def __init__(self, session_factory=None):
        self.engine = engine
        self.session_factory = session_factory or AsyncSessionLocal

    async def health_check(self) -> bool:
        """数据库健康检查"""
        try:
            async with self.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            logging.error(f"Database health check failed: {e}")
            return False

    async def get_connection_info(self) -> dict:
        """获取数据库连接信息"""
        info = {"dialect": self.engine.dialect.name}
        if self.engine.dialect.name != "postgresql":
            return info
        try:
            async with self.session_factory() as session:
                version_result = await session.execute(text("SELECT version()"))
                info["version"] = version_result.scalar()

                connections_result = await session.execute(
                    text("SELECT count(*) FROM pg_stat_activity WHERE state = 'active'")
                )
                info["active_connections"] = connections_result.scalar()
                return info
        except Exception as e:
            logging.error(f"Error getting database info: {e}")
            return {**info, "error": str(e)}


# 创建全局数据库管理器实例
db_manager = DatabaseManager()
