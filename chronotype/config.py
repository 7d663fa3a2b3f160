"""
配置加载模块

从 config.yaml 加载配置，使用 Pydantic 校验，支持通过环境变量指定配置文件路径。
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field


class StorageConfig(BaseModel):
    """持久化配置"""
    path: str = "keystroke_data.json"
    flush_interval: int = Field(default=30, ge=1, description="落盘间隔（秒）")


class CaptureConfig(BaseModel):
    """按键采集配置"""
    count_repeats: bool = Field(default=True, description="按住不放时的自动重复是否计数")


class APIConfig(BaseModel):
    """API 服务配置"""
    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: List[str] = ["http://localhost:8080", "http://127.0.0.1:8080"]


class DashboardConfig(BaseModel):
    """仪表盘配置"""
    enabled: bool = True


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None


class AppConfig(BaseModel):
    """应用配置（完整配置）"""
    storage: StorageConfig = Field(default_factory=StorageConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径
    2. 环境变量 CHRONOTYPE_CONFIG
    3. 当前目录下的 config.yaml

    文件中的相对路径以配置文件所在目录为基准解析，避免依赖启动时的工作目录。
    配置文件不存在时返回默认配置。
    """
    if config_path is None:
        config_path = os.environ.get("CHRONOTYPE_CONFIG", "config.yaml")

    config_file = Path(config_path)
    if not config_file.exists():
        return AppConfig()

    with open(config_file, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    if not raw_config:
        return AppConfig()

    base_dir = config_file.resolve().parent

    def _resolve_path(value: Optional[str]) -> Optional[str]:
        if not value:
            return value
        path = Path(value)
        if path.is_absolute():
            return str(path)
        return str((base_dir / path).resolve())

    storage = raw_config.setdefault("storage", {}) or {}
    if "path" in storage:
        storage["path"] = _resolve_path(storage["path"])
    raw_config["storage"] = storage

    logging_section = raw_config.setdefault("logging", {}) or {}
    logging_section["file"] = _resolve_path(logging_section.get("file"))
    raw_config["logging"] = logging_section

    return AppConfig(**raw_config)


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
