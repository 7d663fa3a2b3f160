"""
统计 API

供仪表盘轮询的汇总接口和每日统计列表。
"""

from typing import List

from fastapi import APIRouter, Depends

from ...models import DailyStats, StatsSummary
from ...stats import StatsReporter
from ..dependencies import get_stats_reporter

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/all-stats", response_model=StatsSummary)
def get_all_stats(reporter: StatsReporter = Depends(get_stats_reporter)):
    """
    获取仪表盘汇总

    今日按键数、今日平均每分钟按键数、累计天数、累计按键数及完整每日统计。
    仪表盘每 10 秒轮询一次。
    """
    return reporter.get_today_summary()


@router.get("/stats", response_model=List[DailyStats])
def list_daily_stats(reporter: StatsReporter = Depends(get_stats_reporter)):
    """获取每日统计，按日期升序"""
    return reporter.get_daily_stats()
