"""
按日聚合存储

进程内唯一持有实时计数的地方。写入来自采集线程（pynput 回调），
读取来自 API 请求和落盘任务，由一把读写锁协调：
- record_event 取写锁，只做内存操作，不做任何 I/O
- snapshot 取读锁，复制后立即释放，调用方拿到的是副本
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional

from .models import DailyCounter

logger = logging.getLogger(__name__)


def local_date(timestamp: float) -> str:
    """Unix 时间戳对应的本地日期（YYYY-MM-DD）"""
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d")


class ReadWriteLock:
    """
    读写锁

    允许多个读者并发，写者独占。写者优先：有写者等待时新读者排队，
    避免仪表盘的连续读取把采集线程饿住。
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self):
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class AggregateStore:
    """
    日期 -> DailyCounter 的内存映射

    只增长不淘汰；外部只能拿到 snapshot() 返回的副本。
    revision 每次修改递增，供持久化判断是否有新数据。
    """

    def __init__(self):
        # 每日计数：{"2024-03-15": DailyCounter}
        self._days: Dict[str, DailyCounter] = {}
        self._revision = 0
        self._lock = ReadWriteLock()

    def record_event(self, timestamp: int):
        """
        记录一次按键

        按本地日期归档；当天第一次出现时创建计数器。
        乱序到达时 first/last 只向更早/更晚方向移动。
        """
        ts = int(timestamp)
        day = local_date(ts)

        with self._lock.write():
            counter = self._days.get(day)
            if counter is None:
                counter = DailyCounter(date=day, first_event_time=ts, last_event_time=ts)
                self._days[day] = counter

            counter.count += 1
            if ts > counter.last_event_time:
                counter.last_event_time = ts
            elif ts < counter.first_event_time:
                counter.first_event_time = ts
            self._revision += 1

    def snapshot(self) -> Mapping[str, DailyCounter]:
        """获取当前所有日期的只读副本"""
        with self._lock.read():
            return MappingProxyType({day: replace(c) for day, c in self._days.items()})

    def load(self, data: Mapping[str, DailyCounter]):
        """
        整体替换存储内容

        仅在启动阶段、采集开始前调用。
        """
        with self._lock.write():
            self._days = {day: replace(c) for day, c in data.items()}
            self._revision += 1
        logger.debug(f"Store loaded with {len(data)} days")

    def get(self, day: str) -> Optional[DailyCounter]:
        """获取某一天计数的副本"""
        with self._lock.read():
            counter = self._days.get(day)
            return replace(counter) if counter else None

    @property
    def revision(self) -> int:
        with self._lock.read():
            return self._revision

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._days)
