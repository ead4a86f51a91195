"""unifeed Sync -- 聚合、增量同步与刷新调度"""

from .aggregator import AggregationEngine, ProviderFetchResult
from .merge import merge_messages
from .orchestrator import SyncOrchestrator
from .scheduler import RefreshScheduler

__all__ = [
    "AggregationEngine",
    "ProviderFetchResult",
    "SyncOrchestrator",
    "RefreshScheduler",
    "merge_messages",
]
