"""Cache 异常"""


class CacheError(Exception):
    """缓存读写失败（I/O、损坏、磁盘满等）

    调用方按非致命错误处理：读失败降级为实时拉取，写失败跳过水位推进。
    """

    def __init__(self, operation: str, original_error: Exception) -> None:
        """
        Args:
            operation: 失败的缓存操作名
            original_error: 原始异常
        """
        super().__init__(f"缓存操作失败: {operation} -- {original_error}")
        self.operation = operation
        self.original_error = original_error
