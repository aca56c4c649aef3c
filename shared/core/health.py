"""
Health and metrics endpoints.

Liveness is a constant answer; readiness checks the database, redis when
configured, disk and memory, and answers 503 when any dependency fails.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine import Engine
from typing import Dict, Any, Optional
import os
import time
import redis
from datetime import datetime, timezone
from enum import Enum
import psutil
import logging

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


class ServiceHealth:
    """Builds the health router for one service and keeps check counters."""

    def __init__(
        self,
        service_name: str,
        version: str = "1.0.0",
        engine: Optional[Engine] = None,
        redis_url: Optional[str] = None,
    ):
        self.service_name = service_name
        self.version = version
        self.engine = engine
        self.redis_url = redis_url
        self.start_time = time.time()
        self.checks_performed = 0
        self.last_check_time = None

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        async def health_check() -> Dict[str, Any]:
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": _now()
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        async def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        async def readiness() -> JSONResponse:
            """Readiness: checks every dependency and reports each one."""
            checks = self.perform_readiness_checks()
            overall_status = self.calculate_overall_status(checks)
            status_code = (
                status.HTTP_503_SERVICE_UNAVAILABLE
                if overall_status == HealthStatus.FAIL
                else status.HTTP_200_OK
            )
            return JSONResponse(status_code=status_code, content={
                "status": overall_status,
                "version": self.version,
                "serviceId": self.service_name,
                "checks": checks,
                "timestamp": _now()
            })

        @router.get("/metrics")
        async def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            memory = process.memory_info()
            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": time.time() - self.start_time,
                "checks_performed": self.checks_performed,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads()
                }
            }

        return router

    def perform_readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        self.last_check_time = time.time()

        checks = {}
        if self.engine is not None:
            checks["database:connectivity"] = self._check_database()
        if self.redis_url:
            checks["cache:connectivity"] = self._check_redis()
        checks["storage:disk_space"] = self._check_disk_space()
        checks["system:memory"] = self._check_memory()
        return checks

    def _check_database(self) -> Dict[str, Any]:
        try:
            start_time = time.time()
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            return {
                "status": HealthStatus.PASS,
                "componentType": "datastore",
                "observedValue": f"{(time.time() - start_time) * 1000:.2f}",
                "observedUnit": "ms",
                "time": _now()
            }
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": HealthStatus.FAIL,
                "componentType": "datastore",
                "output": str(e),
                "time": _now()
            }

    def _check_redis(self) -> Dict[str, Any]:
        try:
            start_time = time.time()
            redis.from_url(self.redis_url, socket_connect_timeout=1).ping()
            return {
                "status": HealthStatus.PASS,
                "componentType": "cache",
                "observedValue": f"{(time.time() - start_time) * 1000:.2f}",
                "observedUnit": "ms",
                "time": _now()
            }
        except Exception as e:
            # the view cache falls back to process memory
            return {
                "status": HealthStatus.WARN,
                "componentType": "cache",
                "output": str(e),
                "time": _now()
            }

    def _check_disk_space(self) -> Dict[str, Any]:
        free_gb = psutil.disk_usage('/').free / (1024 ** 3)
        if free_gb < 1:
            status_val = HealthStatus.FAIL
        elif free_gb < 5:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS
        return {
            "status": status_val,
            "componentType": "system",
            "observedValue": f"{free_gb:.2f}",
            "observedUnit": "GB",
            "time": _now()
        }

    def _check_memory(self) -> Dict[str, Any]:
        available_mb = psutil.virtual_memory().available / (1024 ** 2)
        if available_mb < 100:
            status_val = HealthStatus.FAIL
        elif available_mb < 500:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS
        return {
            "status": status_val,
            "componentType": "system",
            "observedValue": f"{available_mb:.2f}",
            "observedUnit": "MB",
            "time": _now()
        }

    @staticmethod
    def calculate_overall_status(checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        statuses = [check.get("status", HealthStatus.PASS) for check in checks.values()]
        if HealthStatus.FAIL in statuses:
            return HealthStatus.FAIL
        if HealthStatus.WARN in statuses:
            return HealthStatus.WARN
        return HealthStatus.PASS
