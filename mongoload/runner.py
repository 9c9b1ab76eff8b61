import functools
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from pymongo.errors import PyMongoError

from .loader import BulkLoader, IndexGuard, partitions
from .metrics import format_progress_line
from .store import SetupError
from .worker import MixedWorker

logger = logging.getLogger(__name__)

REPORT_INTERVAL_SECONDS = 10


class ProgressReporter(threading.Thread):
    """Prints a progress line every interval until stop() is called."""

    def __init__(self, metrics, tracker=None, interval=REPORT_INTERVAL_SECONDS, total_documents=None,
                 progress_label='documents inserted'):
        super().__init__(name='progress-reporter', daemon=True)
        self.metrics = metrics
        self.tracker = tracker
        self.interval = interval
        self.total_documents = total_documents
        self.progress_label = progress_label
        self.samples = []
        self._done = threading.Event()

    def run(self):
        while True:
            self.tick()
            if self._done.wait(self.interval):
                break

    def tick(self):
        snapshot = self.metrics.snapshot()
        self.samples.append(snapshot)
        print(format_progress_line(snapshot), flush=True)
        if self.total_documents:
            percentage = snapshot.total_ops * 100.0 / self.total_documents
            logger.info(f'Overall Progress: {snapshot.total_ops} / {self.total_documents} '
                        f'{self.progress_label} ({percentage:.2f}%)')
        if self.tracker is not None:
            logger.debug(f'Cluster State: {self.tracker.current_snapshot()}')
        return snapshot

    def stop(self):
        self._done.set()
        if self.is_alive():
            self.join()


def wait_for(futures, stop_event):
    """Collect every task result; Ctrl-C cancels the tasks but still drains them."""
    results = []
    for future in futures:
        while True:
            try:
                results.append(future.result())
                break
            except KeyboardInterrupt:
                logger.warning('Interrupted, waiting for workers to stop...')
                stop_event.set()
            except Exception:
                logger.exception('Worker task terminated unexpectedly')
                break
    return results


def run_tasks(tasks, num_threads, stop_event, reporter):
    with ThreadPoolExecutor(max_workers=num_threads, thread_name_prefix='worker') as executor:
        futures = [executor.submit(task) for task in tasks]
        reporter.start()
        try:
            results = wait_for(futures, stop_event)
        finally:
            reporter.stop()
    return results


def run_load(config, collection, metrics, tracker=None, stop_event=None, interval=REPORT_INTERVAL_SECONDS):
    stop_event = stop_event or threading.Event()
    guard = IndexGuard()
    loaders = [
        BulkLoader(collection, metrics, guard, thread_id=i, stop_event=stop_event)
        for i in range(config.num_threads)
    ]
    try:
        loaders[0].ensure_index()
    except PyMongoError as e:
        raise SetupError(f'Index creation failed: {e}') from e

    logger.info(f'Preparing to insert {config.total_documents} documents')
    tasks = [
        functools.partial(loader.load, partition, config.target_document_size)
        for loader, partition in zip(loaders, partitions(config.num_threads, config.documents_per_thread))
    ]
    reporter = ProgressReporter(metrics, tracker, interval, total_documents=config.total_documents)

    metrics.reset()
    started = time.time()
    results = run_tasks(tasks, config.num_threads, stop_event, reporter)
    duration = int(time.time() - started)

    inserted = sum(r.inserted for r in results)
    logger.info(f'Data loading completed. {inserted} documents inserted. Duration: {duration} seconds')
    return results, reporter.samples


def run_workload(config, collection, metrics, tracker=None, stop_event=None, interval=REPORT_INTERVAL_SECONDS):
    stop_event = stop_event or threading.Event()
    workers = [
        MixedWorker(collection, metrics, thread_id=i, stop_event=stop_event)
        for i in range(config.num_threads)
    ]
    tasks = [
        functools.partial(worker.run, config.documents_per_thread, config.write_percentage,
                          config.target_document_size)
        for worker in workers
    ]
    reporter = ProgressReporter(metrics, tracker, interval, total_documents=config.total_documents,
                                progress_label='documents')

    metrics.reset()
    results = run_tasks(tasks, config.num_threads, stop_event, reporter)
    logger.info('Load test completed.')
    return results, reporter.samples
