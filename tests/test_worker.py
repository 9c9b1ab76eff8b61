"""Tests for the mixed read/write worker."""

import random

from pymongo.errors import AutoReconnect, DocumentTooLarge

from mongoload.worker import MixedWorker


def make_worker(collection, metrics, generator, **kwargs):
    kwargs.setdefault('rng', random.Random(7))
    return MixedWorker(collection, metrics, generator=generator, **kwargs)


class TestRun:

    def test_all_writes(self, collection, metrics, generator):
        result = make_worker(collection, metrics, generator).run(200, 100, 1024)

        assert collection.update_one.call_count == 200
        collection.find_one.assert_not_called()
        assert result.writes == 200
        snap = metrics.snapshot()
        assert snap.total_ops == snap.write_ops == 200

    def test_all_reads(self, collection, metrics, generator):
        result = make_worker(collection, metrics, generator).run(150, 0, 1024)

        assert collection.find_one.call_count == 150
        collection.update_one.assert_not_called()
        assert result.reads == 150
        snap = metrics.snapshot()
        assert snap.total_ops == snap.read_ops == 150

    def test_mix_roughly_follows_write_percentage(self, collection, metrics, generator):
        make_worker(collection, metrics, generator).run(4000, 25, 1024)
        snap = metrics.snapshot()
        assert snap.read_ops + snap.write_ops == 4000
        assert 800 < snap.write_ops < 1200

    def test_keys_stay_in_operation_range(self, collection, metrics, generator):
        make_worker(collection, metrics, generator).run(50, 50, 1024)
        keys = [c.args[0]['index'] for c in collection.find_one.call_args_list]
        keys += [c.args[0]['index'] for c in collection.update_one.call_args_list]
        assert len(keys) == 50
        assert all(0 <= key < 50 for key in keys)

    def test_failures_are_counted_and_loop_continues(self, collection, metrics, generator):
        collection.find_one.side_effect = [AutoReconnect('down'), None] * 50
        result = make_worker(collection, metrics, generator).run(100, 0, 1024)

        assert collection.find_one.call_count == 100
        assert result.errors == 50
        snap = metrics.snapshot()
        assert snap.failed_ops == 50
        assert snap.total_ops == snap.read_ops == 50

    def test_oversized_document_counts_as_failed_operation(self, collection, metrics, generator):
        collection.update_one.side_effect = [DocumentTooLarge('BSON document too large')] + [None] * 99
        result = make_worker(collection, metrics, generator).run(100, 100, 1024)

        assert collection.update_one.call_count == 100
        assert result.errors == 1
        assert result.writes == 99
        assert metrics.snapshot().failed_ops == 1

    def test_stop_event_cancels(self, collection, metrics, generator, stop_event):
        stop_event.set()
        result = make_worker(collection, metrics, generator, stop_event=stop_event).run(100, 50, 1024)

        assert result.cancelled
        collection.find_one.assert_not_called()
        collection.update_one.assert_not_called()


class TestWrite:

    def test_upsert_replaces_payload_fields(self, collection, metrics, generator):
        make_worker(collection, metrics, generator).write(42, 1024)

        (filter_doc, update), kwargs = collection.update_one.call_args
        assert filter_doc == {'index': 42}
        assert kwargs == {'upsert': True}
        assert update == {'$set': {'payload': 'x'}}

    def test_upsert_never_sets_key_fields(self, collection, metrics):
        worker = MixedWorker(collection, metrics, rng=random.Random(1))
        worker.write(3, 8192)

        fields = collection.update_one.call_args.args[1]['$set']
        assert '_id' not in fields
        assert 'index' not in fields
        assert {'user', 'order', 'product', 'shipping', 'payment', 'metadata', 'padding'} <= set(fields)

    def test_records_write_latency(self, collection, metrics, generator, clock):
        make_worker(collection, metrics, generator).write(1, 1024)
        snap = metrics.snapshot()
        assert snap.write_ops == 1
        assert snap.latest_write_latency_ms >= 0.0


class TestRead:

    def test_point_lookup(self, collection, metrics, generator):
        collection.find_one.return_value = {'index': 9}
        make_worker(collection, metrics, generator).read(9)

        collection.find_one.assert_called_once_with({'index': 9})
        assert metrics.snapshot().read_ops == 1
