"""Synthetic document workload generator for MongoDB."""

from .config import ConfigError, RunConfig
from .documents import DocumentGenerator, serialized_size
from .loader import BulkLoader, IndexGuard, LoadResult, Partition, partitions
from .metrics import MetricsAggregator, MetricsSnapshot, OpKind
from .worker import MixedWorker, WorkerResult

__version__ = '0.1.0'

__all__ = [
    'BulkLoader',
    'ConfigError',
    'DocumentGenerator',
    'IndexGuard',
    'LoadResult',
    'MetricsAggregator',
    'MetricsSnapshot',
    'MixedWorker',
    'OpKind',
    'Partition',
    'RunConfig',
    'WorkerResult',
    'partitions',
    'serialized_size',
]
