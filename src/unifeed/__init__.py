"""unifeed -- 多来源消息聚合

将 Telegram、Discord、GitHub、Jira 的消息合并为一个按时间倒序的统一消息流，
并通过本地 SQLite 缓存实现缓存优先加载与基于水位线的增量同步。
"""

__version__ = "0.1.0"
