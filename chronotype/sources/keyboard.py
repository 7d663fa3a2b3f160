"""
键盘事件源

基于 pynput 全局键盘监听。pynput 在自己的线程中回调 on_press，
回调内只做时间戳和计数，尽快返回。
"""

import logging
import threading
from typing import Any, Optional, Set

from .base import CaptureError, EventSource

logger = logging.getLogger(__name__)

# 启动后等待监听线程初始化的时间（秒），期间退出视为钩子安装失败
STARTUP_GRACE = 0.5


class KeyboardEventSource(EventSource):
    """全局键盘按下事件"""

    name = "keyboard"

    def __init__(self, count_repeats: bool = True):
        """
        Args:
            count_repeats: 按住不放产生的自动重复是否计数。
                False 时同一个键在松开前只计一次。
        """
        super().__init__()
        self.count_repeats = count_repeats
        self._listener: Optional[Any] = None
        self._pressed: Set[Any] = set()
        self._pressed_lock = threading.Lock()

    def _start(self):
        # 延迟导入：无图形环境时 pynput 在导入阶段就会失败
        try:
            from pynput import keyboard
        except ImportError as e:
            raise CaptureError(f"Keyboard hook backend unavailable: {e}") from e

        listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
        listener.daemon = True
        listener.start()
        listener.join(STARTUP_GRACE)

        if not listener.is_alive():
            try:
                listener.join()
            except Exception as e:
                raise CaptureError(f"Failed to install keyboard hook: {e}") from e
            raise CaptureError("Keyboard listener exited during startup")

        self._listener = listener
        logger.info("Keyboard hook installed - monitoring keystrokes")

    def _stop(self):
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
        with self._pressed_lock:
            self._pressed.clear()

    def _on_press(self, key, *args):
        if not self.count_repeats:
            with self._pressed_lock:
                if key in self._pressed:
                    return
                self._pressed.add(key)
        self.emit()

    def _on_release(self, key, *args):
        if not self.count_repeats:
            with self._pressed_lock:
                self._pressed.discard(key)
