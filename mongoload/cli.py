import argparse
import logging
import sys
import threading

from pymongo.errors import PyMongoError

from .cluster import ClusterStateTracker
from .config import ConfigError, RunConfig
from .metrics import MetricsAggregator, build_meter_provider, format_final_report
from .report import plot_progress, results_table
from .runner import run_load, run_workload
from .store import SetupError, connect, get_collection, prepare_collection

logger = logging.getLogger('mongoload')

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def configure_logging(level):
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def build_parser():
    parser = argparse.ArgumentParser(
        prog='mongoload',
        description='Synthetic document workload generator for MongoDB',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Settings come from the environment:
  MONGODB_URI (required), MONGODB_DATABASE, MONGODB_COLLECTION,
  TOTAL_DATA_SIZE_GB, WRITE_PERCENTAGE, NUM_THREADS, TARGET_DOCUMENT_SIZE,
  MONGODB_SHARDED, MONGODB_MAX_POOL_SIZE, LOG_LEVEL, PROGRESS_PLOT,
  METRICS_EXPORT_INTERVAL_MS

Examples:
  # bulk load the dataset
  MONGODB_URI=mongodb://localhost:27017 mongoload load

  # mixed read/write workload against the loaded dataset
  MONGODB_URI=mongodb://localhost:27017 WRITE_PERCENTAGE=20 mongoload
        """
    )
    parser.add_argument('mode', nargs='?', default='run', choices=['load', 'stress', 'run'],
                        help='load: bulk load the dataset; run (default): mixed read/write workload')
    return parser


def main(argv=None, environ=None):
    args = build_parser().parse_args(argv)

    try:
        config = RunConfig.from_env(environ)
    except ConfigError as e:
        configure_logging(logging.INFO)
        logger.error(f'Configuration error: {e}')
        return 1
    configure_logging(config.log_level)

    if args.mode == 'stress':
        logger.error('stress mode is not supported by this tool')
        return 2

    print('=' * 80)
    print('LOAD PHASE' if args.mode == 'load' else 'MIXED WORKLOAD PHASE')
    print('=' * 80)
    print(config.summary_table())

    meter_provider = build_meter_provider(config.metrics_export_interval_ms)
    try:
        return _run(args.mode, config, meter_provider.get_meter('mongoload'))
    finally:
        meter_provider.shutdown()


def _run(mode, config, meter):
    metrics = MetricsAggregator(meter=meter)
    tracker = ClusterStateTracker()
    stop_event = threading.Event()
    try:
        client = connect(config, tracker)
    except PyMongoError as e:
        logger.error(f'Could not create client: {e}')
        return 1
    try:
        collection = get_collection(client, config)
        if mode == 'load':
            logger.info('Starting data loading phase')
            prepare_collection(client, config)
            results, samples = run_load(config, collection, metrics, tracker, stop_event)
        else:
            logger.info('Starting load testing phase')
            results, samples = run_workload(config, collection, metrics, tracker, stop_event)
    except SetupError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning('Interrupted before the run started')
        return 130
    finally:
        client.close()

    print(format_final_report(metrics.snapshot()))
    print(results_table(results))
    if config.progress_plot and samples:
        plot_progress(samples, config.progress_plot)
        print(f'Progress chart saved: {config.progress_plot}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
