"""
测试公共夹具
"""

from datetime import datetime
from typing import List

import pytest

from chronotype.config import reset_config
from chronotype.persistence import PersistenceManager
from chronotype.sources import EventSource
from chronotype.stats import StatsReporter
from chronotype.store import AggregateStore


class SyntheticEventSource(EventSource):
    """测试用事件源：由测试代码直接注入带指定时间戳的事件"""

    name = "synthetic"

    def __init__(self, fail_on_start: bool = False):
        super().__init__()
        self.fail_on_start = fail_on_start
        self.started = 0
        self.stopped = 0

    def _start(self):
        if self.fail_on_start:
            raise OSError("hook registration refused")
        self.started += 1

    def _stop(self):
        self.stopped += 1

    def inject(self, timestamps: List[int]):
        for ts in timestamps:
            self.emit(ts)


def local_ts(year, month, day, hour=12, minute=0, second=0) -> int:
    """本地时间对应的 Unix 时间戳，保证测试与主机时区无关"""
    return int(datetime(year, month, day, hour, minute, second).timestamp())


@pytest.fixture(autouse=True)
def _reset_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def store():
    return AggregateStore()


@pytest.fixture
def reporter(store):
    return StatsReporter(store)


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "keystroke_data.json"


@pytest.fixture
def persistence(store, data_file):
    return PersistenceManager(store, str(data_file))


@pytest.fixture
def source():
    return SyntheticEventSource()
