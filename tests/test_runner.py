"""Tests for the worker pool and progress reporter."""

import re
from concurrent.futures import Future

from pymongo.errors import OperationFailure
import pytest

from mongoload.cluster import ClusterStateTracker
from mongoload.loader import LoadResult
from mongoload.metrics import OpKind
from mongoload.runner import ProgressReporter, run_load, run_workload, wait_for
from mongoload.store import SetupError
from mongoload.worker import WorkerResult


class TestProgressReporter:

    def test_tick_prints_progress_line(self, metrics, clock, capsys):
        metrics.record_operation(OpKind.READ, 4)
        clock.now_ms += 2000
        reporter = ProgressReporter(metrics)
        snap = reporter.tick()

        out = capsys.readouterr().out
        assert ' 2 sec: 4 operations; 2.0 current ops/sec; [READ: Count=4' in out
        assert reporter.samples == [snap]

    def test_tick_logs_load_progress(self, metrics, caplog):
        metrics.record_operation(OpKind.WRITE, 25)
        reporter = ProgressReporter(metrics, total_documents=100)
        with caplog.at_level('INFO', logger='mongoload.runner'):
            reporter.tick()
        assert 'Overall Progress: 25 / 100 documents inserted (25.00%)' in caplog.text

    def test_tick_logs_workload_progress(self, metrics, caplog):
        metrics.record_operation(OpKind.READ, 10)
        reporter = ProgressReporter(metrics, total_documents=40, progress_label='documents')
        with caplog.at_level('INFO', logger='mongoload.runner'):
            reporter.tick()
        assert 'Overall Progress: 10 / 40 documents (25.00%)' in caplog.text

    def test_tick_logs_cluster_state(self, metrics, caplog):
        reporter = ProgressReporter(metrics, tracker=ClusterStateTracker())
        with caplog.at_level('DEBUG', logger='mongoload.runner'):
            reporter.tick()
        assert 'Cluster State: Topology: Unknown' in caplog.text

    def test_stop_ends_thread(self, metrics, capsys):
        reporter = ProgressReporter(metrics, interval=60)
        reporter.start()
        reporter.stop()
        assert not reporter.is_alive()
        assert len(reporter.samples) == 1

    def test_stop_before_start(self, metrics):
        ProgressReporter(metrics).stop()


class TestWaitFor:

    def test_failed_task_does_not_hide_others(self, stop_event, caplog):
        ok, broken = Future(), Future()
        ok.set_result('done')
        broken.set_exception(RuntimeError('worker crashed'))

        with caplog.at_level('ERROR', logger='mongoload.runner'):
            results = wait_for([broken, ok], stop_event)

        assert results == ['done']
        assert 'Worker task terminated unexpectedly' in caplog.text
        assert not stop_event.is_set()

    def test_interrupt_cancels_and_keeps_collecting(self, stop_event, caplog):
        class InterruptedOnce:
            def __init__(self, value):
                self.value = value
                self.calls = 0

            def result(self):
                self.calls += 1
                if self.calls == 1:
                    raise KeyboardInterrupt
                return self.value

        first, second = InterruptedOnce('first'), Future()
        second.set_result('second')

        with caplog.at_level('WARNING', logger='mongoload.runner'):
            results = wait_for([first, second], stop_event)

        assert results == ['first', 'second']
        assert first.calls == 2
        assert stop_event.is_set()
        assert 'Interrupted, waiting for workers to stop...' in caplog.text


class TestRunLoad:

    def test_loads_every_partition(self, tiny_config, collection, metrics, capsys):
        results, samples = run_load(tiny_config, collection, metrics, interval=60)

        assert sorted(r.partition.start for r in results) == [0, 5, 10, 15]
        assert all(isinstance(r, LoadResult) and r.inserted == 5 for r in results)
        assert collection.insert_many.call_count == 4
        collection.create_index.assert_called_once()
        assert metrics.snapshot().write_ops == 20
        assert samples

    def test_index_failure_aborts_before_loading(self, tiny_config, collection, metrics):
        collection.create_index.side_effect = OperationFailure('not authorized', code=13)
        with pytest.raises(SetupError):
            run_load(tiny_config, collection, metrics, interval=60)
        collection.insert_many.assert_not_called()

    def test_resets_metrics_first(self, tiny_config, collection, metrics, capsys):
        metrics.record_failure()
        metrics.record_operation(OpKind.READ, 99)
        run_load(tiny_config, collection, metrics, interval=60)
        snap = metrics.snapshot()
        assert snap.failed_ops == 0
        assert snap.read_ops == 0


class TestRunWorkload:

    def test_runs_one_worker_per_thread(self, tiny_config, collection, metrics, capsys):
        results, _ = run_workload(tiny_config, collection, metrics, interval=60)

        assert sorted(r.thread_id for r in results) == [0, 1, 2, 3]
        assert all(isinstance(r, WorkerResult) and r.operations == 5 for r in results)
        snap = metrics.snapshot()
        assert snap.total_ops == 20
        assert snap.read_ops + snap.write_ops == 20
        assert collection.find_one.call_count + collection.update_one.call_count == 20

    def test_reports_progress_against_total_operations(self, tiny_config, collection, metrics, caplog, capsys):
        with caplog.at_level('INFO', logger='mongoload.runner'):
            run_workload(tiny_config, collection, metrics, interval=60)
        assert re.search(r'Overall Progress: \d+ / 20 documents \(', caplog.text)
        assert 'documents inserted' not in caplog.text
