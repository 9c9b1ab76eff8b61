"""Tests for the command line entry point."""

import logging
from unittest.mock import MagicMock

import pytest

from mongoload import cli
from tests.conftest import TINY_DATA_SIZE_GB

ENV = {
    'MONGODB_URI': 'mongodb://localhost:27017',
    'TOTAL_DATA_SIZE_GB': str(TINY_DATA_SIZE_GB),
    'TARGET_DOCUMENT_SIZE': '1024',
    'NUM_THREADS': '2',
}


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    package_logger = logging.getLogger('mongoload')
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def client(monkeypatch):
    client = MagicMock(name='client')
    client['loadtest'].list_collection_names.return_value = ['documents']
    monkeypatch.setattr(cli, 'connect', lambda config, tracker: client)
    return client


def test_default_mode_is_mixed_workload():
    assert cli.build_parser().parse_args([]).mode == 'run'


def test_unknown_mode_rejected():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(['bogus'])


def test_missing_uri_exits_with_error():
    assert cli.main([], environ={}) == 1


def test_stress_mode_unsupported():
    assert cli.main(['stress'], environ=ENV) == 2


def test_mixed_workload_run(client, capsys):
    assert cli.main([], environ=ENV) == 0

    out = capsys.readouterr().out
    assert '[OVERALL], RunTime(ms), ' in out
    assert '[READ], Operations, ' in out
    assert '[UPDATE], AverageLatency(us), ' in out
    client.close.assert_called_once()


def test_metrics_exported_at_exit(client, capsys):
    assert cli.main([], environ={**ENV, 'METRICS_EXPORT_INTERVAL_MS': '600000'}) == 0

    err = capsys.readouterr().err
    assert 'read_operations' in err
    assert 'write_operations' in err


def test_load_run(client, capsys):
    assert cli.main(['load'], environ=ENV) == 0

    out = capsys.readouterr().out
    assert '[UPDATE], Operations, 20' in out
    assert 'Failed batches' in out
    collection = client['loadtest']['documents']
    assert collection.insert_many.call_count == 2


def test_setup_failure_exits_before_workers(client):
    from pymongo.errors import OperationFailure

    collection = client['loadtest']['documents']
    collection.create_index.side_effect = OperationFailure('not authorized', code=13)
    assert cli.main(['load'], environ=ENV) == 1
    collection.insert_many.assert_not_called()
    client.close.assert_called_once()


def test_progress_plot_written(client, tmp_path, capsys):
    plot = tmp_path / 'progress.png'
    assert cli.main([], environ={**ENV, 'PROGRESS_PLOT': str(plot)}) == 0
    assert plot.exists()
