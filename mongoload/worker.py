import logging
import random
import threading
import time
from dataclasses import dataclass

from bson.errors import InvalidDocument
from pymongo.errors import PyMongoError

from .documents import DocumentGenerator
from .loader import INDEX_FIELD
from .metrics import OpKind

logger = logging.getLogger(__name__)

#fields never rewritten by an upsert, the key and the immutable _id
KEY_FIELDS = ('_id', INDEX_FIELD)


@dataclass
class WorkerResult:
    thread_id: int
    operations: int
    reads: int = 0
    writes: int = 0
    errors: int = 0
    cancelled: bool = False


class MixedWorker:

    def __init__(self, collection, metrics, thread_id=0, generator=None, rng=None, stop_event=None):
        self.collection = collection
        self.metrics = metrics
        self.thread_id = thread_id
        self.generator = generator or DocumentGenerator()
        self.rng = rng or random.Random()
        self.stop_event = stop_event or threading.Event()

    def run(self, operation_count, write_percentage, target_size):
        result = WorkerResult(self.thread_id, operation_count)
        logger.info(f'Thread {self.thread_id}: Starting {operation_count} mixed operations.')
        log_every = max(1, operation_count // 10)

        for i in range(operation_count):
            if self.stop_event.is_set():
                result.cancelled = True
                break
            is_write = self.rng.randrange(100) < write_percentage
            key = self.rng.randrange(operation_count)
            try:
                if is_write:
                    self.write(key, target_size)
                    result.writes += 1
                else:
                    self.read(key)
                    result.reads += 1
            except (PyMongoError, InvalidDocument) as e:
                logger.warning(f'Thread {self.thread_id}: Operation failed: {e}')
                self.metrics.record_failure()
                result.errors += 1

            if (i + 1) % log_every == 0:
                logger.info(f'Thread {self.thread_id}: Completed {i + 1}/{operation_count} operations. '
                            f'reads={result.reads} writes={result.writes} errors={result.errors}')

        logger.info(f'Thread {self.thread_id}: Finished. {result}')
        return result

    def write(self, key, target_size):
        doc = self.generator.generate(key, target_size)
        update = {'$set': {field: value for field, value in doc.items() if field not in KEY_FIELDS}}

        started = time.perf_counter()
        self.collection.update_one({INDEX_FIELD: key}, update, upsert=True)
        elapsed_ms = (time.perf_counter() - started) * 1000

        self.metrics.record_latency(OpKind.WRITE, elapsed_ms)
        self.metrics.record_operation(OpKind.WRITE)
        logger.debug(f'Updated document with index: {key}')

    def read(self, key):
        started = time.perf_counter()
        doc = self.collection.find_one({INDEX_FIELD: key})
        elapsed_ms = (time.perf_counter() - started) * 1000

        self.metrics.record_latency(OpKind.READ, elapsed_ms)
        self.metrics.record_operation(OpKind.READ)
        logger.debug(f'Read document with index: {key if doc is not None else "not found"}')
