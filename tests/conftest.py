"""Shared fixtures: in-memory stand-ins for the pymongo collection and client."""

import threading
from unittest.mock import MagicMock

import pytest

from mongoload.config import RunConfig
from mongoload.loader import IndexGuard
from mongoload.metrics import MetricsAggregator

# 20 documents of 1024 bytes
TINY_DATA_SIZE_GB = 20 / 2 ** 20


class StubGenerator:
    """Cheap stand-in for DocumentGenerator when document content is irrelevant."""

    def generate(self, index, target_size):
        return {'_id': f'doc-{index}', 'index': index, 'payload': 'x'}


class FakeClock:

    def __init__(self, now_ms=1_000_000):
        self.now_ms = now_ms

    def __call__(self):
        return self.now_ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def metrics(clock):
    return MetricsAggregator(clock=clock)


@pytest.fixture
def collection():
    return MagicMock(name='collection')


@pytest.fixture
def generator():
    return StubGenerator()


@pytest.fixture
def index_guard():
    return IndexGuard()


@pytest.fixture
def stop_event():
    return threading.Event()


@pytest.fixture
def tiny_config():
    return RunConfig(
        connection_string='mongodb://localhost:27017',
        total_data_size_gb=TINY_DATA_SIZE_GB,
        num_threads=4,
        target_document_size=1024,
        write_percentage=50,
    )
