"""
持久化管理

启动时从 JSON 文件恢复聚合数据，运行期间定期落盘。

落盘基于 snapshot() 副本进行，序列化和文件 I/O 期间不持有存储锁，
不会阻塞按键记录。两次落盘之间的数据在异常退出时会丢失（最多一个周期）。
"""

import asyncio
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from .models import DailyCounter, PersistedDay
from .store import AggregateStore

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_INTERVAL = 30


class PersistenceManager:
    """数据文件读写及定期落盘"""

    def __init__(self, store: AggregateStore, path: str):
        """
        Args:
            store: 聚合存储
            path: 数据文件路径
        """
        self.store = store
        self.path = Path(path)
        # 最近一次成功写盘（或恢复）时的 revision
        self._flushed_revision: Optional[int] = None
        self._flush_lock = threading.Lock()

    def restore(self) -> int:
        """
        从数据文件恢复存储

        文件不存在视为全新启动；文件损坏时记录错误并以空数据启动；
        单个日期条目校验失败时跳过该条目。

        Returns:
            恢复的天数
        """
        if not self.path.exists():
            logger.info(f"No data file at {self.path}, starting fresh")
            self.store.load({})
            self._flushed_revision = self.store.revision
            return 0

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except OSError as e:
            # 文件本身可能完好（权限不足、被其他进程占用），不改名
            logger.error(f"Failed to read data file {self.path}: {e}; starting with empty data")
            self.store.load({})
            return 0
        except (ValueError, RecursionError) as e:
            logger.error(f"Failed to parse data file {self.path}: {e}; starting with empty data")
            self._quarantine()
            self.store.load({})
            return 0

        if not isinstance(raw, dict):
            logger.error(f"Malformed data file {self.path}: top level is not an object; starting with empty data")
            self._quarantine()
            self.store.load({})
            return 0

        days: Dict[str, DailyCounter] = {}
        for key, entry in raw.items():
            try:
                record = PersistedDay.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping malformed entry {key!r} in {self.path}: {e.errors()}")
                continue

            if record.date != key:
                logger.warning(f"Entry {key!r} has mismatched date {record.date!r}, using key")
                record = record.model_copy(update={"date": key})
            days[key] = DailyCounter.from_record(record)

        self.store.load(days)
        self._flushed_revision = self.store.revision
        logger.info(f"Restored {len(days)} days from {self.path}")
        return len(days)

    def _quarantine(self):
        """把无法解析的数据文件改名保留，避免下一次落盘直接覆盖"""
        backup = self.path.with_name(self.path.name + ".corrupt")
        try:
            os.replace(self.path, backup)
            logger.warning(f"Moved unreadable data file to {backup}")
        except OSError as e:
            logger.warning(f"Could not move unreadable data file aside: {e}")

    def serialize(self) -> str:
        """把当前快照序列化为带缩进的 JSON 文本（按日期排序）"""
        snapshot = self.store.snapshot()
        payload = {
            day: snapshot[day].to_record().model_dump()
            for day in sorted(snapshot)
        }
        return json.dumps(payload, indent=2, ensure_ascii=False)

    def flush(self, force: bool = False) -> bool:
        """
        落盘一次

        先写同目录临时文件再 os.replace，崩溃时不会破坏上一次写入的文件。
        任何失败只记录日志，等待下一个周期重试。

        Args:
            force: 即使没有新数据也写盘

        Returns:
            是否写入了文件
        """
        # 定期任务的工作线程与退出时的最后一次落盘可能重叠，串行执行保证后写入的快照更新
        with self._flush_lock:
            return self._flush_locked(force)

    def _flush_locked(self, force: bool) -> bool:
        revision = self.store.revision
        if not force and revision == self._flushed_revision:
            logger.debug("No new events since last flush, skipping")
            return False

        try:
            content = self.serialize()
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize data: {e}", exc_info=True)
            return False

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            logger.error(f"Failed to write data file {self.path}: {e}")
            return False
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

        self._flushed_revision = revision
        logger.debug(f"Flushed {len(content)} bytes to {self.path}")
        return True

    async def run_periodic(self, interval: int = DEFAULT_FLUSH_INTERVAL):
        """
        运行定期落盘任务

        每隔 interval 秒在工作线程中执行 flush()；任务被取消时做最后一次落盘。
        """
        logger.info(f"Starting persistence task (interval={interval}s, path={self.path})")

        try:
            while True:
                await asyncio.sleep(interval)
                try:
                    await asyncio.to_thread(self.flush)
                except Exception as e:
                    logger.error(f"Persistence loop error: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Persistence task cancelled, writing final snapshot")
            try:
                await asyncio.to_thread(self.flush, True)
            except Exception as e:
                logger.error(f"Final flush failed: {e}", exc_info=True)
            raise
