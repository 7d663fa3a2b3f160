"""
HTTP 查询接口
"""

from .app import create_app

__all__ = ["create_app"]
