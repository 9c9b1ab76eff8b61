"""Process-wide operation counters shared by workers and the reporter thread.

One ``MetricsAggregator`` is created per process and handed to every loader,
worker and reporter. Each counter is guarded by its own lock so an update
never waits on an unrelated field; snapshots are consistent per field only.
Given an OpenTelemetry meter, the aggregator also feeds the same counts to
exported instruments.
"""

import enum
import sys
import threading
import time
from dataclasses import dataclass
from datetime import datetime

from opentelemetry.metrics import Observation
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource


class OpKind(enum.Enum):
    READ = 'read'
    WRITE = 'write'


def current_time_ms():
    return int(time.time() * 1000)


class _Counter:

    def __init__(self, value=0):
        self._lock = threading.Lock()
        self._value = value

    def add(self, amount=1):
        with self._lock:
            self._value += amount
            return self._value

    def set(self, value):
        with self._lock:
            self._value = value

    def get(self):
        with self._lock:
            return self._value


@dataclass(frozen=True)
class MetricsSnapshot:
    total_ops: int = 0
    read_ops: int = 0
    write_ops: int = 0
    failed_ops: int = 0
    latest_read_latency_ms: float = 0.0
    latest_write_latency_ms: float = 0.0
    start_time_ms: int = 0
    taken_at_ms: int = 0

    @property
    def elapsed_ms(self):
        return max(0, self.taken_at_ms - self.start_time_ms)

    @property
    def elapsed_seconds(self):
        return self.elapsed_ms // 1000

    @property
    def current_throughput(self):
        if self.elapsed_seconds == 0:
            return 0.0
        return self.total_ops / self.elapsed_seconds

    @property
    def overall_throughput(self):
        if self.elapsed_ms == 0:
            return 0.0
        return self.total_ops * 1000 / self.elapsed_ms


class MetricsAggregator:

    def __init__(self, clock=current_time_ms, meter=None):
        self._clock = clock
        self._total = _Counter()
        self._reads = _Counter()
        self._writes = _Counter()
        self._failed = _Counter()
        self._read_latency = _Counter(0.0)
        self._write_latency = _Counter(0.0)
        self._start_time = _Counter(clock())
        self._exported = None
        if meter is not None:
            self._exported = _ExportedInstruments(meter, self)

    def record_operation(self, kind, count=1):
        self._total.add(count)
        if kind is OpKind.READ:
            self._reads.add(count)
        else:
            self._writes.add(count)
        if self._exported:
            self._exported.operation(kind, count)

    def record_latency(self, kind, latency_ms):
        #last writer wins, this is a live readout rather than an average
        if kind is OpKind.READ:
            self._read_latency.set(latency_ms)
        else:
            self._write_latency.set(latency_ms)

    def record_failure(self):
        self._failed.add()
        if self._exported:
            self._exported.failed.add(1)

    def reset(self):
        for counter in (self._total, self._reads, self._writes, self._failed):
            counter.set(0)
        self._read_latency.set(0.0)
        self._write_latency.set(0.0)
        self._start_time.set(self._clock())

    def snapshot(self):
        return MetricsSnapshot(
            total_ops=self._total.get(),
            read_ops=self._reads.get(),
            write_ops=self._writes.get(),
            failed_ops=self._failed.get(),
            latest_read_latency_ms=self._read_latency.get(),
            latest_write_latency_ms=self._write_latency.get(),
            start_time_ms=self._start_time.get(),
            taken_at_ms=self._clock(),
        )


class _ExportedInstruments:
    """OpenTelemetry mirror of an aggregator: counters fed on record, gauges read on collect.

    Exported counters are cumulative for the life of the process and ignore reset().
    """

    def __init__(self, meter, aggregator):
        self.total = meter.create_counter(
            'total_operations', unit='{operation}', description='Completed read and write operations')
        self.reads = meter.create_counter(
            'read_operations', unit='{operation}', description='Completed point reads')
        self.writes = meter.create_counter(
            'write_operations', unit='{operation}', description='Inserted or upserted documents')
        self.failed = meter.create_counter(
            'failed_operations', unit='{operation}', description='Operations or batches given up on')
        meter.create_observable_gauge(
            'read_latency', callbacks=[self._observe(aggregator._read_latency)], unit='ms',
            description='Latency of the most recent read')
        meter.create_observable_gauge(
            'write_latency', callbacks=[self._observe(aggregator._write_latency)], unit='ms',
            description='Latency of the most recent write')
        meter.create_observable_gauge(
            'throughput', callbacks=[self._observe_throughput(aggregator)], unit='{operation}/s',
            description='Operations per second since the phase started')

    def operation(self, kind, count):
        self.total.add(count)
        if kind is OpKind.READ:
            self.reads.add(count)
        else:
            self.writes.add(count)

    @staticmethod
    def _observe(counter):
        def callback(options):
            yield Observation(counter.get())
        return callback

    @staticmethod
    def _observe_throughput(aggregator):
        def callback(options):
            snap = aggregator.snapshot()
            if snap.elapsed_seconds > 0:
                yield Observation(snap.current_throughput)
        return callback


def build_meter_provider(export_interval_ms, out=None):
    """Meter provider that dumps every instrument to stderr (or *out*) periodically and on shutdown."""
    exporter = ConsoleMetricExporter(out=out or sys.stderr)
    reader = PeriodicExportingMetricReader(exporter, export_interval_millis=export_interval_ms)
    return MeterProvider(resource=Resource.create({SERVICE_NAME: 'mongoload'}), metric_readers=[reader])


def _latency_block(label, count, latency_ms):
    latency_us = latency_ms * 1000
    return f'[{label}: Count={count}, Max={latency_us:.0f}, Min={latency_us:.0f}, Avg={latency_us:.2f}]'


def format_progress_line(snapshot):
    taken_at = datetime.fromtimestamp(snapshot.taken_at_ms / 1000)
    stamp = f'{taken_at:%Y-%m-%d %H:%M:%S}:{snapshot.taken_at_ms % 1000:03d}'
    return (
        f'{stamp} {snapshot.elapsed_seconds} sec: {snapshot.total_ops} operations; '
        f'{snapshot.current_throughput:.1f} current ops/sec; '
        f'{_latency_block("READ", snapshot.read_ops, snapshot.latest_read_latency_ms)} '
        f'{_latency_block("UPDATE", snapshot.write_ops, snapshot.latest_write_latency_ms)}'
    )


def format_final_report(snapshot):
    lines = [
        f'[OVERALL], RunTime(ms), {snapshot.elapsed_ms}',
        f'[OVERALL], Throughput(ops/sec), {snapshot.overall_throughput:.2f}',
        f'[READ], Operations, {snapshot.read_ops}',
        f'[READ], AverageLatency(us), {snapshot.latest_read_latency_ms * 1000:.2f}',
        f'[UPDATE], Operations, {snapshot.write_ops}',
        f'[UPDATE], AverageLatency(us), {snapshot.latest_write_latency_ms * 1000:.2f}',
        f'[FAILED], Operations, {snapshot.failed_ops}',
    ]
    return '\n'.join(lines)
