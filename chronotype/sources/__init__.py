"""
事件源模块

包含事件源抽象和键盘适配器
"""

from ..config import CaptureConfig
from .base import CaptureError, EventCallback, EventSource
from .keyboard import KeyboardEventSource


def create_event_source(config: CaptureConfig) -> EventSource:
    """根据配置创建事件源"""
    return KeyboardEventSource(count_repeats=config.count_repeats)


__all__ = [
    "CaptureError",
    "EventCallback",
    "EventSource",
    "KeyboardEventSource",
    "create_event_source",
]
