"""
IRDesk Platform - 主应用入口
IR、CRM、出差与投资组合管理后台的FastAPI应用
"""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from backend.app.api import API_DESCRIPTIONS, API_TAGS
from backend.app.api.api_v1.api import api_router
from backend.app.core.config import settings
from backend.app.core.database import AsyncSessionLocal, create_tables, engine
from backend.app.core.exceptions import IRDeskException, get_error_message
from backend.app.core.logging import get_logger, request_id_var, setup_logging
from backend.app.utils.datetime_utils import to_iso, utcnow
from backend.app.utils.health import get_process_metrics, health_checker

logger = get_logger(__name__)

HTTP_REQUESTS = Counter(
    "irdesk_http_requests_total",
    "HTTP requests",
    ["method", "status"],
)
HTTP_REQUEST_DURATION = Histogram(
    "irdesk_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method"],
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """请求日志中间件"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        request_id = request.headers.get("X-Request-ID") or f"req_{uuid.uuid4().hex[:16]}"
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        logger.debug(
            "Request started",
            method=request.method,
            url=str(request.url),
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.perf_counter() - start_time
            logger.error("Request failed", error=str(e), process_time=process_time)
            HTTP_REQUESTS.labels(method=request.method, status="500").inc()
            raise
        finally:
            request_id_var.reset(token)

        process_time = time.perf_counter() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.6f}"

        logger.log_api_request(
            request.method,
            request.url.path,
            response.status_code,
            process_time,
            request_id=request_id,
        )
        HTTP_REQUESTS.labels(method=request.method, status=str(response.status_code)).inc()
        HTTP_REQUEST_DURATION.labels(method=request.method).observe(process_time)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    setup_logging()
    logger.info("Starting IRDesk Platform...", environment=settings.ENVIRONMENT)

    # 创建数据库表
    await create_tables()
    logger.info("Database tables created/verified")

    app.state.health_checker = health_checker

    logger.info("IRDesk Platform started successfully")

    yield

    logger.info("Shutting down IRDesk Platform...")

    # 关闭数据库连接
    await engine.dispose()

    logger.info("IRDesk Platform shutdown complete")


# 创建FastAPI应用实例
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="IR 업무 관리 플랫폼 - 投资者关系、CRM、出差与投资组合管理后台",
    openapi_url=f"{settings.API_V1_STR}/openapi.json" if settings.ENABLE_OPENAPI else None,
    docs_url="/docs" if settings.ENABLE_DOCS else None,
    redoc_url="/redoc" if settings.ENABLE_REDOC else None,
    openapi_tags=[{"name": API_TAGS[key], "description": API_DESCRIPTIONS[key]} for key in API_TAGS],
    lifespan=lifespan,
)

# 添加中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggingMiddleware)


def error_body(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    """统一错误响应体"""
    return {
        "statusCode": status_code,
        "error": error,
        "message": message,
        "details": details,
        "path": request.url.path,
        "timestamp": to_iso(utcnow()),
        "request_id": getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID"),
    }


# 异常处理器
@app.exception_handler(IRDeskException)
async def irdesk_exception_handler(request: Request, exc: IRDeskException):
    """IRDesk自定义异常处理器"""
    if exc.status_code >= 500:
        logger.error("Application error", error_code=exc.error_code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, exc.error_code, exc.message, jsonable_encoder(exc.details)),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求验证异常处理器"""
    errors = jsonable_encoder(exc.errors(), custom_encoder={Exception: str})
    return JSONResponse(
        status_code=400,
        content=error_body(request, 400, "VALIDATION_ERROR", get_error_message("VALIDATION_ERROR"), errors),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTP异常处理器"""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, exc.status_code, "HTTP_ERROR", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """数据库异常处理器"""
    logger.error("Database error", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=503,
        content=error_body(request, 503, "DATABASE_ERROR", "数据库服务暂时不可用"),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """未处理异常"""
    logger.error("Unhandled error", error=str(exc), error_type=type(exc).__name__, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body(
            request,
            500,
            "INTERNAL_ERROR",
            get_error_message("INTERNAL_ERROR"),
            str(exc) if settings.DEBUG else None,
        ),
    )


# 基础路由
@app.get("/", tags=[API_TAGS["system"]])
async def root():
    """根路径"""
    return {
        "message": "Welcome to IRDesk Platform",
        "version": settings.APP_VERSION,
        "docs": "/docs" if settings.ENABLE_DOCS else None,
    }


@app.get("/health", tags=[API_TAGS["system"]])
async def health_check(request: Request):
    """健康检查端点"""
    checker = getattr(request.app.state, "health_checker", health_checker)
    health_status = await checker.check_all()

    status_code = 200 if health_status["status"] == "healthy" else 503

    return JSONResponse(
        status_code=status_code,
        content=health_status
    )


@app.get("/metrics", tags=[API_TAGS["system"]])
async def metrics():
    """Prometheus指标端点"""
    if not settings.PROMETHEUS_ENABLED:
        return JSONResponse(
            status_code=404,
            content={"error": "Metrics endpoint disabled"}
        )

    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@app.get("/info", tags=[API_TAGS["system"]])
async def app_info():
    """应用信息端点"""
    return {
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": "sqlite" if settings.is_sqlite else "postgresql",
        "process": get_process_metrics(),
        "features": {
            "prometheus": settings.PROMETHEUS_ENABLED,
            "docs": settings.ENABLE_DOCS,
            "upload_base_url": settings.UPLOAD_BASE_URL,
        }
    }


# 包含API路由
app.include_router(api_router, prefix=settings.API_V1_STR)

# 上传文件静态访问
app.mount(
    settings.UPLOAD_BASE_URL,
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads",
)


# CLI入口点
def cli():
    """命令行入口点"""
    import typer

    cli_app = typer.Typer()

    @cli_app.command()
    def serve(
        host: str = "0.0.0.0",
        port: int = 8000,
        reload: bool = False,
        workers: int = 1,
    ):
        """启动API服务器"""
        if workers > 1:
            # 生产模式使用gunicorn
            import subprocess
            cmd = [
                "gunicorn",
                "backend.app.main:app",
                f"--bind={host}:{port}",
                f"--workers={workers}",
                "--worker-class=uvicorn.workers.UvicornWorker",
                "--access-logfile=-",
                "--error-logfile=-",
            ]
            subprocess.run(cmd, check=True)
        else:
            # 开发模式使用uvicorn
            uvicorn.run(
                "backend.app.main:app",
                host=host,
                port=port,
                reload=reload,
                log_level=settings.LOG_LEVEL.lower(),
            )

    @cli_app.command()
    def init_db():
        """初始化数据库"""
        asyncio.run(create_tables())
        typer.echo("Database initialized successfully")

    @cli_app.command()
    def seed(admin_password: str = typer.Option("admin1234", help="演示管理员密码")):
        """写入参考国家与演示管理员"""
        from backend.app.utils.seed import seed_reference_data

        async def _run():
            await create_tables()
            async with AsyncSessionLocal() as session:
                return await seed_reference_data(session, admin_password)

        setup_logging()
        result = asyncio.run(_run())
        typer.echo(f"Seeded {result['countries']} countries, {result['users']} users")

    cli_app()


if __name__ == "__main__":
    # 直接运行时使用uvicorn
    uvicorn.run(
        "backend.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.LOG_LEVEL.lower(),
    )
