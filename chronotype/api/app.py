"""
FastAPI 应用配置

配置 CORS、路由注册、仪表盘静态页面托管。
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from ..config import AppConfig, get_config
from ..stats import StatsReporter
from .routers import stats

logger = logging.getLogger(__name__)

FRONTEND_PATH = Path(__file__).resolve().parent.parent / "frontend"


def create_app(reporter: StatsReporter, config: Optional[AppConfig] = None) -> FastAPI:
    """
    创建 FastAPI 应用实例

    Args:
        reporter: 统计视图，所有查询都经由它读取存储
        config: 应用配置，默认取全局配置

    配置：
    - CORS 中间件
    - API 路由
    - 仪表盘静态页面
    """
    if config is None:
        config = get_config()

    app = FastAPI(
        title="ChronoType",
        description="键盘使用统计 API",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )
    app.state.reporter = reporter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(stats.router)

    # 静态页面必须最后挂载，否则会吞掉 /api 路由
    if config.dashboard.enabled:
        if FRONTEND_PATH.exists():
            app.mount("/", StaticFiles(directory=str(FRONTEND_PATH), html=True), name="dashboard")
            logger.info(f"Serving dashboard from {FRONTEND_PATH}")
        else:
            logger.warning(f"Dashboard path not found: {FRONTEND_PATH}")

    return app
