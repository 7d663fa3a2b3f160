"""
数据模型定义

包括：
- DailyCounter：每日按键计数（存储内部的可变记录）
- Pydantic 模型：持久化文件条目、API 响应
"""

from dataclasses import dataclass
from typing import List

from pydantic import BaseModel, Field


# =============================================================================
# 内部可变记录
# =============================================================================

@dataclass
class DailyCounter:
    """
    某一天的按键聚合

    date 创建后不变；count 只增不减；
    始终满足 last_event_time >= first_event_time。
    """
    date: str
    count: int = 0
    first_event_time: int = 0
    last_event_time: int = 0

    def to_record(self) -> "PersistedDay":
        return PersistedDay(
            date=self.date,
            count=self.count,
            start_time=self.first_event_time,
            end_time=self.last_event_time,
        )

    @classmethod
    def from_record(cls, record: "PersistedDay") -> "DailyCounter":
        return cls(
            date=record.date,
            count=record.count,
            first_event_time=record.start_time,
            last_event_time=record.end_time,
        )


# =============================================================================
# 持久化文件格式
# =============================================================================

class PersistedDay(BaseModel):
    """数据文件中的单日条目（字段顺序即写出顺序）"""
    date: str
    count: int = Field(..., ge=0)
    start_time: int
    end_time: int


# =============================================================================
# Pydantic 响应模型（用于 API）
# =============================================================================

class DailyStats(BaseModel):
    """每日统计（查询时实时计算，不缓存、不落盘）"""
    date: str
    total_keystrokes: int
    avg_per_minute: float
    active_minutes: int


class StatsSummary(BaseModel):
    """仪表盘汇总（GET /api/all-stats）"""
    total_today: int = 0
    avg_today: float = 0.0
    total_days: int = 0
    total_keys: int = 0
    stats: List[DailyStats] = Field(default_factory=list)
