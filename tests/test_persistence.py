"""
单元测试：持久化

测试覆盖：
- 文件不存在 / 损坏 / 部分条目损坏时的恢复
- 写盘格式
- 落盘后恢复的一致性
- 写盘失败不抛出
- 定期任务与取消时的最后一次落盘
"""

import asyncio
import json

from chronotype.models import DailyCounter
from chronotype.persistence import PersistenceManager
from chronotype.stats import StatsReporter
from chronotype.store import AggregateStore

from conftest import local_ts


class TestRestore:
    """restore 测试"""

    def test_missing_file(self, persistence, store):
        """测试：文件不存在时以空数据启动"""
        assert persistence.restore() == 0
        assert len(store) == 0

    def test_restart_scenario(self, persistence, store, data_file):
        """测试：从已有文件恢复后统计正确"""
        data_file.write_text(json.dumps({
            "2024-01-01": {"date": "2024-01-01", "count": 5, "start_time": 1704067200, "end_time": 1704067260}
        }), encoding="utf-8")

        assert persistence.restore() == 1

        stats = StatsReporter(store).get_daily_stats()
        assert len(stats) == 1
        assert stats[0].date == "2024-01-01"
        assert stats[0].total_keystrokes == 5
        assert stats[0].active_minutes == 1
        assert stats[0].avg_per_minute == 5.0

    def test_malformed_json(self, persistence, store, data_file):
        """测试：JSON 语法错误时以空数据启动，原文件改名保留"""
        data_file.write_text('{"2024-01-01": {"date": ', encoding="utf-8")

        assert persistence.restore() == 0
        assert len(store) == 0
        assert not data_file.exists()
        assert (data_file.parent / "keystroke_data.json.corrupt").exists()

    def test_deeply_nested_json(self, persistence, store, data_file):
        """测试：嵌套过深导致解析递归溢出时同样以空数据启动"""
        data_file.write_text("[" * 100000 + "]" * 100000, encoding="utf-8")

        assert persistence.restore() == 0
        assert len(store) == 0
        assert (data_file.parent / "keystroke_data.json.corrupt").exists()

    def test_unreadable_file_not_renamed(self, persistence, store, data_file):
        """测试：读取失败（非解析失败）时以空数据启动，但不改名原文件"""
        data_file.mkdir()

        assert persistence.restore() == 0
        assert len(store) == 0
        assert data_file.is_dir()
        assert not (data_file.parent / "keystroke_data.json.corrupt").exists()

    def test_non_object_top_level(self, persistence, store, data_file):
        """测试：顶层不是对象"""
        data_file.write_text("[1, 2, 3]", encoding="utf-8")

        assert persistence.restore() == 0
        assert len(store) == 0

    def test_bad_entry_skipped(self, persistence, store, data_file):
        """测试：单个条目不合法时跳过，其余照常恢复"""
        data_file.write_text(json.dumps({
            "2024-01-01": {"date": "2024-01-01", "count": 5, "start_time": 1704067200, "end_time": 1704067260},
            "2024-01-02": {"date": "2024-01-02", "count": -3, "start_time": 1704153600, "end_time": 1704153600},
            "2024-01-03": {"date": "2024-01-03", "count": 7},
            "2024-01-04": "garbage",
        }), encoding="utf-8")

        assert persistence.restore() == 1
        assert set(store.snapshot()) == {"2024-01-01"}

    def test_key_wins_over_date_field(self, persistence, store, data_file):
        """测试：条目 date 与键不一致时以键为准"""
        data_file.write_text(json.dumps({
            "2024-01-01": {"date": "1999-12-31", "count": 2, "start_time": 1704067200, "end_time": 1704067200}
        }), encoding="utf-8")

        persistence.restore()
        assert store.get("2024-01-01").date == "2024-01-01"

    def test_restore_replaces_existing(self, persistence, store, data_file):
        """测试：restore 整体替换内存数据"""
        store.record_event(local_ts(2024, 3, 15))
        data_file.write_text("{}", encoding="utf-8")

        persistence.restore()
        assert len(store) == 0


class TestFlush:
    """flush 测试"""

    def test_file_format(self, persistence, store, data_file):
        """测试：写出的文件为带缩进的 JSON，字段完整且顺序固定"""
        store.load({
            "2024-01-02": DailyCounter("2024-01-02", 3, 1704153600, 1704153700),
            "2024-01-01": DailyCounter("2024-01-01", 5, 1704067200, 1704067260),
        })

        assert persistence.flush() is True

        text = data_file.read_text(encoding="utf-8")
        assert text.startswith('{\n  "2024-01-01": {\n    "date": "2024-01-01",')
        data = json.loads(text)
        assert list(data) == ["2024-01-01", "2024-01-02"]
        assert list(data["2024-01-01"]) == ["date", "count", "start_time", "end_time"]
        assert data["2024-01-02"] == {
            "date": "2024-01-02", "count": 3, "start_time": 1704153600, "end_time": 1704153700
        }

    def test_round_trip(self, store, data_file):
        """测试：落盘后立即恢复，数据与落盘前一致"""
        for i in range(30):
            store.record_event(local_ts(2024, 3, 15, 9) + i * 7)
        store.record_event(local_ts(2024, 3, 16, 9))

        PersistenceManager(store, str(data_file)).flush()
        before = dict(store.snapshot())

        restored = AggregateStore()
        PersistenceManager(restored, str(data_file)).restore()

        assert dict(restored.snapshot()) == before
        assert StatsReporter(restored).get_daily_stats() == StatsReporter(store).get_daily_stats()

    def test_skip_when_unchanged(self, persistence, store, data_file):
        """测试：没有新事件时不重复写盘，force 时照写"""
        persistence.restore()
        assert persistence.flush() is False
        assert not data_file.exists()

        store.record_event(local_ts(2024, 3, 15))
        assert persistence.flush() is True
        assert persistence.flush() is False
        assert persistence.flush(force=True) is True

    def test_write_failure_is_swallowed(self, store, tmp_path):
        """测试：写盘失败只返回 False，不抛出，不留临时文件"""
        target = tmp_path / "occupied"
        target.mkdir()
        store.record_event(local_ts(2024, 3, 15))

        manager = PersistenceManager(store, str(target))
        assert manager.flush() is False
        assert [p.name for p in tmp_path.iterdir()] == ["occupied"]

    def test_retry_after_failure(self, store, tmp_path):
        """测试：失败后下一次落盘仍会尝试写入"""
        target = tmp_path / "data.json"
        target.mkdir()
        store.record_event(local_ts(2024, 3, 15))
        manager = PersistenceManager(store, str(target))
        assert manager.flush() is False

        target.rmdir()
        assert manager.flush() is True
        assert json.loads(target.read_text(encoding="utf-8"))["2024-03-15"]["count"] == 1

    def test_creates_parent_directory(self, store, tmp_path):
        target = tmp_path / "nested" / "dir" / "data.json"
        store.record_event(local_ts(2024, 3, 15))

        assert PersistenceManager(store, str(target)).flush() is True
        assert target.exists()


class TestRunPeriodic:
    """定期落盘任务测试"""

    def test_periodic_flush_and_final_flush(self, persistence, store, data_file):
        """测试：周期性写盘，取消时写入最新数据"""
        ts = local_ts(2024, 3, 15, 10)

        async def scenario():
            task = asyncio.create_task(persistence.run_periodic(interval=0.02))
            store.record_event(ts)
            await asyncio.sleep(0.2)
            first = json.loads(data_file.read_text(encoding="utf-8"))

            store.record_event(ts + 1)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            return first

        first = asyncio.run(scenario())

        assert first["2024-03-15"]["count"] == 1
        final = json.loads(data_file.read_text(encoding="utf-8"))
        assert final["2024-03-15"]["count"] == 2
        assert final["2024-03-15"]["end_time"] == ts + 1

    def test_cancellation_propagates(self, persistence):
        """测试：取消后任务状态为 cancelled"""

        async def scenario():
            task = asyncio.create_task(persistence.run_periodic(interval=10))
            await asyncio.sleep(0)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            return task

        task = asyncio.run(scenario())
        assert task.cancelled()

    def test_final_flush_error_keeps_cancellation(self, persistence, monkeypatch):
        """测试：最后一次落盘抛出意外异常时，任务仍以取消结束"""

        def broken_flush(force=False):
            raise RuntimeError("disk exploded")

        monkeypatch.setattr(persistence, "flush", broken_flush)

        async def scenario():
            task = asyncio.create_task(persistence.run_periodic(interval=10))
            await asyncio.sleep(0)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            return task

        task = asyncio.run(scenario())
        assert task.cancelled()
