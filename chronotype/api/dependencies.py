"""
依赖注入模块

提供 FastAPI 依赖项。
"""

from fastapi import Request

from ..stats import StatsReporter


async def get_stats_reporter(request: Request) -> StatsReporter:
    """获取应用创建时注入的统计视图"""
    return request.app.state.reporter
