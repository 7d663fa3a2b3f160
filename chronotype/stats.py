"""
统计计算

从存储快照实时推导每日统计和仪表盘汇总。不缓存，每次查询重新计算。
"""

import logging
import time
from typing import List, Optional

from .models import DailyCounter, DailyStats, StatsSummary
from .store import AggregateStore, local_date

logger = logging.getLogger(__name__)


def calculate_daily_stats(counter: DailyCounter) -> DailyStats:
    """
    计算单日统计

    活跃分钟数 = (最后一次按键 - 第一次按键) 秒数整除 60，至少为 1。
    只有一次按键（或全部落在同一分钟内）时 avg_per_minute 等于按键数，
    这是有意的近似，而不是除零保护的副作用。

    Raises:
        ValueError: 计数或时间戳不合法
    """
    if counter.count < 1:
        raise ValueError(f"count must be positive, got {counter.count}")
    if counter.last_event_time < counter.first_event_time:
        raise ValueError(
            f"end_time {counter.last_event_time} is before start_time {counter.first_event_time}"
        )

    active_minutes = max(1, (counter.last_event_time - counter.first_event_time) // 60)
    return DailyStats(
        date=counter.date,
        total_keystrokes=counter.count,
        avg_per_minute=counter.count / active_minutes,
        active_minutes=active_minutes,
    )


def activity_level(avg_per_minute: float) -> str:
    """按每分钟平均按键数划分活跃等级（与仪表盘配色一致）"""
    if avg_per_minute > 100:
        return "Very High"
    if avg_per_minute > 50:
        return "High"
    if avg_per_minute > 20:
        return "Moderate"
    return "Low"


class StatsReporter:
    """只读统计视图，除存储引用外无状态"""

    def __init__(self, store: AggregateStore):
        self.store = store

    def get_daily_stats(self) -> List[DailyStats]:
        """
        获取每日统计

        按日期升序返回；数据异常的日期记录警告后跳过，不影响其他日期。
        """
        snapshot = self.store.snapshot()

        stats = []
        for day in sorted(snapshot):
            try:
                stats.append(calculate_daily_stats(snapshot[day]))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed day {day}: {e}")
        return stats

    def get_today_summary(self, today: Optional[str] = None) -> StatsSummary:
        """
        获取今日汇总

        Args:
            today: 今天的日期（YYYY-MM-DD），默认取本地当前日期

        Returns:
            今日按键数与平均值（今天无数据时为 0）、累计天数、累计按键数及完整每日统计
        """
        if today is None:
            today = local_date(time.time())

        stats = self.get_daily_stats()

        summary = StatsSummary(
            total_days=len(stats),
            total_keys=sum(s.total_keystrokes for s in stats),
            stats=stats,
        )
        for s in stats:
            if s.date == today:
                summary.total_today = s.total_keystrokes
                summary.avg_today = s.avg_per_minute
                break
        return summary
