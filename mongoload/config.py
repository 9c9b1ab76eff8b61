import math
import os
from dataclasses import dataclass
from typing import Optional

from tabulate import tabulate

# --- Defaults ---
DEFAULT_DATABASE = 'loadtest'
DEFAULT_COLLECTION = 'documents'
DEFAULT_TOTAL_DATA_SIZE_GB = 1.0
DEFAULT_WRITE_PERCENTAGE = 50
DEFAULT_NUM_THREADS = 10
DEFAULT_TARGET_DOCUMENT_SIZE = 4096
DEFAULT_MAX_POOL_SIZE = 100
DEFAULT_LOG_LEVEL = 'INFO'
DEFAULT_METRICS_EXPORT_INTERVAL_MS = 60000

GIGABYTE = 1024 * 1024 * 1024
#server limit on a single BSON document
MAX_DOCUMENT_SIZE = 16 * 1024 * 1024

LOG_LEVELS = ('CRITICAL', 'ERROR', 'WARNING', 'INFO', 'DEBUG')

TRUE_VALUES = ('1', 'true', 'yes', 'on')
FALSE_VALUES = ('0', 'false', 'no', 'off', '')


class ConfigError(Exception):
    """Raised when a setting is missing or has an unusable value."""


def documents_per_thread(total_size_gb, target_document_size, num_threads):
    total_documents = int(total_size_gb * GIGABYTE) // target_document_size
    return total_documents // num_threads


@dataclass(frozen=True)
class RunConfig:
    connection_string: str
    database_name: str = DEFAULT_DATABASE
    collection_name: str = DEFAULT_COLLECTION
    total_data_size_gb: float = DEFAULT_TOTAL_DATA_SIZE_GB
    write_percentage: int = DEFAULT_WRITE_PERCENTAGE
    num_threads: int = DEFAULT_NUM_THREADS
    target_document_size: int = DEFAULT_TARGET_DOCUMENT_SIZE
    sharded: bool = False
    max_pool_size: int = DEFAULT_MAX_POOL_SIZE
    log_level: str = DEFAULT_LOG_LEVEL
    progress_plot: Optional[str] = None
    metrics_export_interval_ms: int = DEFAULT_METRICS_EXPORT_INTERVAL_MS

    def __post_init__(self):
        if not self.connection_string:
            raise ConfigError('MONGODB_URI must be set')
        if self.num_threads < 1:
            raise ConfigError(f'NUM_THREADS must be at least 1, got {self.num_threads}')
        if not 0 <= self.write_percentage <= 100:
            raise ConfigError(f'WRITE_PERCENTAGE must be between 0 and 100, got {self.write_percentage}')
        if self.target_document_size < 1:
            raise ConfigError(f'TARGET_DOCUMENT_SIZE must be positive, got {self.target_document_size}')
        if self.target_document_size > MAX_DOCUMENT_SIZE:
            raise ConfigError(f'TARGET_DOCUMENT_SIZE must not exceed {MAX_DOCUMENT_SIZE} bytes, '
                              f'got {self.target_document_size}')
        if not math.isfinite(self.total_data_size_gb):
            raise ConfigError(f'TOTAL_DATA_SIZE_GB must be a finite number, got {self.total_data_size_gb}')
        if self.total_data_size_gb < 0:
            raise ConfigError(f'TOTAL_DATA_SIZE_GB must not be negative, got {self.total_data_size_gb}')
        if self.max_pool_size < 1:
            raise ConfigError(f'MONGODB_MAX_POOL_SIZE must be at least 1, got {self.max_pool_size}')
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f'LOG_LEVEL must be one of {", ".join(LOG_LEVELS)}, got {self.log_level!r}')
        if self.metrics_export_interval_ms < 1:
            raise ConfigError(f'METRICS_EXPORT_INTERVAL_MS must be positive, got {self.metrics_export_interval_ms}')

    @property
    def documents_per_thread(self):
        return documents_per_thread(self.total_data_size_gb, self.target_document_size, self.num_threads)

    @property
    def total_documents(self):
        return self.num_threads * self.documents_per_thread

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        return cls(
            connection_string=env.get('MONGODB_URI', ''),
            database_name=env.get('MONGODB_DATABASE') or DEFAULT_DATABASE,
            collection_name=env.get('MONGODB_COLLECTION') or DEFAULT_COLLECTION,
            total_data_size_gb=_number(env, 'TOTAL_DATA_SIZE_GB', DEFAULT_TOTAL_DATA_SIZE_GB, float),
            write_percentage=_number(env, 'WRITE_PERCENTAGE', DEFAULT_WRITE_PERCENTAGE, int),
            num_threads=_number(env, 'NUM_THREADS', DEFAULT_NUM_THREADS, int),
            target_document_size=_number(env, 'TARGET_DOCUMENT_SIZE', DEFAULT_TARGET_DOCUMENT_SIZE, int),
            sharded=_flag(env, 'MONGODB_SHARDED'),
            max_pool_size=_number(env, 'MONGODB_MAX_POOL_SIZE', DEFAULT_MAX_POOL_SIZE, int),
            log_level=(env.get('LOG_LEVEL') or DEFAULT_LOG_LEVEL).upper(),
            progress_plot=env.get('PROGRESS_PLOT') or None,
            metrics_export_interval_ms=_number(env, 'METRICS_EXPORT_INTERVAL_MS',
                                               DEFAULT_METRICS_EXPORT_INTERVAL_MS, int),
        )

    def summary_table(self):
        #never echo the URI, it may carry credentials
        rows = [
            ['Database', self.database_name],
            ['Collection', self.collection_name],
            ['Total data size (GB)', self.total_data_size_gb],
            ['Target document size (bytes)', self.target_document_size],
            ['Threads', self.num_threads],
            ['Documents per thread', self.documents_per_thread],
            ['Write percentage', self.write_percentage],
            ['Sharded', self.sharded],
            ['Max pool size', self.max_pool_size],
        ]
        return tabulate(rows, headers=['Setting', 'Value'], tablefmt='grid')


def _number(env, name, default, convert):
    raw = env.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return convert(raw.strip())
    except ValueError:
        raise ConfigError(f'{name} must be a number, got {raw!r}') from None


def _flag(env, name):
    raw = (env.get(name) or '').strip().lower()
    if raw in TRUE_VALUES:
        return True
    if raw in FALSE_VALUES:
        return False
    raise ConfigError(f'{name} must be true or false, got {raw!r}')
