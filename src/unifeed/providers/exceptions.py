"""Provider 异常体系

同步核心把所有 provider 异常视为非致命：该 provider 本轮贡献零条消息。
发送失败则转换为对调用方可见的 SendResult。
"""


class ProviderError(Exception):
    """Provider 基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可在下一轮刷新时自行恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class ProviderUnavailableError(ProviderError):
    """Provider 不可达（连接失败、超时、DNS 解析失败、5xx 等）"""

    def __init__(self, provider_key: str, original_error: Exception | str) -> None:
        """
        Args:
            provider_key: 出错的 provider 实例标识
            original_error: 原始异常或描述
        """
        super().__init__(
            f"Provider 不可达: {provider_key} -- {original_error}",
            recoverable=True,
        )
        self.provider_key = provider_key
        self.original_error = original_error


class ProviderAuthError(ProviderError):
    """认证失败（401/403），需要人工修正凭据，重试无效"""

    def __init__(self, provider_key: str, status_code: int) -> None:
        super().__init__(
            f"Provider 认证失败: {provider_key} (HTTP {status_code})",
            recoverable=False,
        )
        self.provider_key = provider_key
        self.status_code = status_code


class UnsupportedOperationError(ProviderError):
    """provider 不支持该操作（如只读 provider 的发送）"""

    def __init__(self, provider_key: str, operation: str = "send_message") -> None:
        super().__init__(
            f"{provider_key} 不支持 {operation}",
            recoverable=False,
        )
        self.provider_key = provider_key
