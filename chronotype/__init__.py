"""
ChronoType - 键盘使用统计服务

负责：
- 监听全局按键事件，按本地日期聚合计数
- 每 30s 将聚合数据写入 JSON 文件，启动时恢复
- 提供 REST API 和自动刷新的仪表盘
"""

__version__ = "1.0.0"
