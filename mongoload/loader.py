import logging
import threading
import time
from dataclasses import dataclass

import pymongo
from bson.errors import InvalidDocument
from pymongo.errors import BulkWriteError, OperationFailure, PyMongoError

from .documents import DocumentGenerator
from .metrics import OpKind

logger = logging.getLogger(__name__)

# --- Configuration ---
BATCH_SIZE = 1000
MAX_RETRIES = 5
RETRY_DELAY_SECONDS = 1.0
INDEX_FIELD = 'index'

DUPLICATE_KEY = 11000
#IndexOptionsConflict, IndexKeySpecsConflict
INDEX_EXISTS_CODES = (85, 86)


@dataclass(frozen=True)
class Partition:
    start: int
    count: int

    @property
    def stop(self):
        return self.start + self.count

    def indices(self):
        return range(self.start, self.stop)


def partitions(num_threads, docs_per_thread):
    return [Partition(i * docs_per_thread, docs_per_thread) for i in range(num_threads)]


def batches(partition, batch_size=BATCH_SIZE):
    for start in range(partition.start, partition.stop, batch_size):
        yield range(start, min(start + batch_size, partition.stop))


@dataclass
class LoadResult:
    thread_id: int
    partition: Partition
    inserted: int = 0
    failed_batches: int = 0
    cancelled: bool = False


class IndexGuard:
    """One-shot flag: the first claim() wins, every later one is refused."""

    def __init__(self):
        self._lock = threading.Lock()
        self._claimed = False

    def claim(self):
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    @property
    def claimed(self):
        return self._claimed


def _only_duplicates(exc):
    errors = exc.details.get('writeErrors', [])
    return bool(errors) and all(err.get('code') == DUPLICATE_KEY for err in errors)


class BulkLoader:

    def __init__(self, collection, metrics, index_guard, thread_id=0, generator=None,
                 stop_event=None, batch_size=BATCH_SIZE, max_retries=MAX_RETRIES,
                 retry_delay=RETRY_DELAY_SECONDS):
        self.collection = collection
        self.metrics = metrics
        self.index_guard = index_guard
        self.thread_id = thread_id
        self.generator = generator or DocumentGenerator()
        self.stop_event = stop_event or threading.Event()
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def ensure_index(self):
        if not self.index_guard.claim():
            return False
        logger.info(f"Creating index on '{INDEX_FIELD}' field")
        try:
            self.collection.create_index([(INDEX_FIELD, pymongo.ASCENDING)], background=True)
        except OperationFailure as e:
            if e.code not in INDEX_EXISTS_CODES:
                raise
            logger.info('Index already exists')
            return True
        logger.info('Index creation completed')
        return True

    def load(self, partition, target_size):
        result = LoadResult(self.thread_id, partition)
        logger.info(f'Thread {self.thread_id}: Starting to insert {partition.count} documents '
                    f'[{partition.start}, {partition.stop}).')
        log_every = max(1, partition.count // 10)

        for indices in batches(partition, self.batch_size):
            if self.stop_event.is_set():
                result.cancelled = True
                break
            batch = [self.generator.generate(i, target_size) for i in indices]
            outcome = self._write_batch(batch)
            if outcome is None:
                result.cancelled = True
                break
            if outcome:
                before = result.inserted
                result.inserted += len(batch)
                if result.inserted // log_every != before // log_every:
                    logger.info(f'Thread {self.thread_id}: Inserted {result.inserted}/{partition.count} documents.')
            else:
                result.failed_batches += 1
                self.metrics.record_failure()

        if result.cancelled:
            logger.warning(f'Thread {self.thread_id}: Cancelled after inserting {result.inserted} documents.')
        else:
            logger.info(f'Thread {self.thread_id}: Finished inserting documents.')
        return result

    def _write_batch(self, batch):
        """True when committed, False once retries run out, None if cancelled."""
        attempt = 0
        while True:
            attempt += 1
            started = time.perf_counter()
            try:
                self.collection.insert_many(batch, ordered=False)
            except BulkWriteError as e:
                #a previous attempt already committed these documents
                if attempt > 1 and _only_duplicates(e):
                    self._record_success(len(batch), started)
                    return True
                logger.error(f'Thread {self.thread_id}: Error inserting batch: {e}')
            except (PyMongoError, InvalidDocument) as e:
                logger.error(f'Thread {self.thread_id}: Error inserting batch: {e}')
            else:
                self._record_success(len(batch), started)
                return True

            if attempt >= self.max_retries:
                logger.error(f'Thread {self.thread_id}: Max retries reached. Skipping batch of '
                             f'{len(batch)} documents starting at index {batch[0]["index"]}.')
                return False
            logger.info(f'Thread {self.thread_id}: Retrying in {self.retry_delay * 1000:.0f} ms '
                        f'(Attempt {attempt} of {self.max_retries})')
            if self.stop_event.wait(self.retry_delay):
                logger.error(f'Thread {self.thread_id}: Interrupted during retry delay')
                return None

    def _record_success(self, count, started):
        elapsed_ms = (time.perf_counter() - started) * 1000
        self.metrics.record_latency(OpKind.WRITE, elapsed_ms)
        self.metrics.record_operation(OpKind.WRITE, count)
