"""
事件源抽象

事件源负责检测原始输入并给每个事件打上时间戳，通过唯一注册的回调
onEvent(timestamp) 交给核心处理。具体平台的钩子实现为适配器。
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)

EventCallback = Callable[[int], None]


class CaptureError(RuntimeError):
    """采集注册失败（启动阶段致命）"""


class EventSource(ABC):
    """
    事件源基类

    子类实现 _start/_stop，并在检测到事件时调用 emit()。
    emit() 会吞掉回调抛出的异常并记录日志：采集线程一旦因异常退出，
    整个进程生命周期内都不会再有数据。
    """

    name = "abstract"

    def __init__(self):
        self._callback: Optional[EventCallback] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self, callback: EventCallback):
        """
        注册回调并开始采集

        Raises:
            CaptureError: 已注册过回调，或底层钩子安装失败
        """
        if self._callback is not None:
            raise CaptureError(f"{self.name} event source already has a callback registered")

        self._callback = callback
        try:
            self._start()
        except CaptureError:
            self._callback = None
            raise
        except Exception as e:
            self._callback = None
            raise CaptureError(f"Failed to start {self.name} event source: {e}") from e

        self._running = True
        logger.info(f"Event source '{self.name}' started")

    def stop(self):
        """停止采集，之后不再投递事件"""
        if not self._running:
            return
        self._running = False
        try:
            self._stop()
        finally:
            self._callback = None
        logger.info(f"Event source '{self.name}' stopped")

    def emit(self, timestamp: Optional[int] = None):
        """投递一个事件；未注册回调时丢弃"""
        callback = self._callback
        if callback is None:
            return

        if timestamp is None:
            timestamp = int(time.time())

        try:
            callback(timestamp)
        except Exception:
            logger.exception(f"Event callback failed for timestamp {timestamp}, event dropped")

    @abstractmethod
    def _start(self):
        """安装底层钩子"""

    @abstractmethod
    def _stop(self):
        """卸载底层钩子"""
