"""
IRDesk Platform - 健康检查工具模块
系统健康状态监控和检查
"""

import shutil
import time
from pathlib import Path
from typing import Dict, Optional

import psutil

from backend.app.core.config import settings
from backend.app.core.database import DatabaseManager, db_manager


class HealthChecker:
    """系统健康检查器"""

    def __init__(self, database: Optional[DatabaseManager] = None):
        self.database = database or db_manager
        self.checks = {
            "database": self._check_database,
            "disk": self._check_disk,
            "memory": self._check_memory,
        }

    async def check_all(self) -> Dict:
        """执行所有健康检查"""
        start_time = time.time()
        results = {}
        overall_status = "healthy"

        for check_name, check_func in self.checks.items():
            try:
                result = await check_func()
            except Exception as e:
                result = {
                    "healthy": False,
                    "error": str(e),
                    "timestamp": time.time(),
                }
            results[check_name] = result
            if not result.get("healthy", False):
                overall_status = "unhealthy"

        duration = time.time() - start_time

        return {
            "status": overall_status,
            "timestamp": time.time(),
            "duration_ms": round(duration * 1000, 2),
            "checks": results,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    async def check_single(self, check_name: str) -> Dict:
        """执行单个健康检查"""
        if check_name not in self.checks:
            return {
                "healthy": False,
                "error": f"Unknown health check: {check_name}",
                "timestamp": time.time(),
            }
        return await self.checks[check_name]()

    async def _check_database(self) -> Dict:
        """检查数据库连接"""
        start_time = time.time()
        if not await self.database.health_check():
            return {
                "healthy": False,
                "error": "Database connection failed",
                "timestamp": time.time(),
            }

        db_info = await self.database.get_connection_info()
        return {
            "healthy": True,
            "response_time_ms": round((time.time() - start_time) * 1000, 2),
            "details": db_info,
            "timestamp": time.time(),
        }

    async def _check_disk(self) -> Dict:
        """检查上传目录所在磁盘空间"""
        path = Path(settings.UPLOAD_DIR)
        while not path.exists() and path != path.parent:
            path = path.parent
        total, used, free = shutil.disk_usage(str(path.resolve()))

        usage_percent = used / total
        return {
            "healthy": usage_percent < 0.9,
            "details": {
                "path": str(path),
                "total_gb": round(total / 1024**3, 2),
                "used_gb": round(used / 1024**3, 2),
                "free_gb": round(free / 1024**3, 2),
                "usage_percent": round(usage_percent, 3),
            },
            "warning": "High disk usage" if usage_percent > 0.8 else None,
            "timestamp": time.time(),
        }

    async def _check_memory(self) -> Dict:
        """检查内存使用"""
        memory = psutil.virtual_memory()
        return {
            "healthy": memory.percent < 90,
            "details": {
                "total_gb": round(memory.total / 1024**3, 2),
                "used_gb": round(memory.used / 1024**3, 2),
                "available_gb": round(memory.available / 1024**3, 2),
                "usage_percent": memory.percent,
            },
            "warning": "High memory usage" if memory.percent > 80 else None,
            "timestamp": time.time(),
        }


def get_process_metrics() -> Dict:
    """当前进程资源占用"""
    process = psutil.Process()
    return {
        "memory_mb": round(process.memory_info().rss / 1024**2, 2),
        "num_threads": process.num_threads(),
        "cpu_count": psutil.cpu_count(),
    }


# 创建全局健康检查器实例
health_checker = HealthChecker()
