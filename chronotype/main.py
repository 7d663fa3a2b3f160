"""
主程序入口

启动顺序：
1. 从数据文件恢复聚合存储（在接收任何事件之前）
2. 注册键盘事件源（失败则退出）
3. 并发运行定期落盘任务和 REST API 服务

退出顺序：先停止事件源，再取消落盘任务（取消时会做最后一次落盘）。
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import uvicorn
import yaml
from pydantic import ValidationError

from . import __version__
from .api import create_app
from .config import AppConfig, get_config
from .persistence import PersistenceManager
from .sources import CaptureError, EventSource, create_event_source
from .stats import StatsReporter
from .store import AggregateStore

logger = logging.getLogger(__name__)


def setup_logging(config: AppConfig):
    """配置日志"""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)

    # 降低第三方库日志级别
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


async def run_api_server(reporter: StatsReporter, config: AppConfig):
    """运行 API 服务器"""
    app = create_app(reporter, config)

    server_config = uvicorn.Config(
        app=app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
        access_log=False
    )
    server = uvicorn.Server(server_config)
    await server.serve()


async def run(config: AppConfig, source: Optional[EventSource] = None) -> int:
    """
    组装并运行所有组件

    Args:
        config: 应用配置
        source: 事件源，默认按配置创建键盘事件源

    Returns:
        进程退出码
    """
    store = AggregateStore()
    persistence = PersistenceManager(store, config.storage.path)
    reporter = StatsReporter(store)

    persistence.restore()

    if source is None:
        source = create_event_source(config.capture)
    try:
        source.start(store.record_event)
    except CaptureError as e:
        logger.critical(f"Cannot capture input events: {e}")
        return 1

    persistence_task = asyncio.create_task(
        persistence.run_periodic(config.storage.flush_interval)
    )

    url = f"http://{config.api.host}:{config.api.port}"
    logger.info(f"ChronoType server active on {url}")

    try:
        await run_api_server(reporter, config)
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    finally:
        source.stop()
        persistence_task.cancel()
        try:
            await persistence_task
        except asyncio.CancelledError:
            pass
        # 任务在首次调度前被取消时不会执行自己的最后一次落盘；已落盘则此处跳过
        persistence.flush()
        logger.info("Shutdown complete")

    return 0


async def main() -> int:
    """主函数：加载配置并运行"""
    config = get_config()
    setup_logging(config)

    logger.info("=" * 60)
    logger.info(f"ChronoType v{__version__}")
    logger.info("=" * 60)
    logger.info(f"Data file: {config.storage.path} (flush every {config.storage.flush_interval}s)")

    return await run(config)


def cli():
    """命令行入口"""
    try:
        exit_code = asyncio.run(main())
    except (ValidationError, yaml.YAMLError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
