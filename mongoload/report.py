import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from tabulate import tabulate

from .loader import LoadResult


def results_table(results):
    if results and isinstance(results[0], LoadResult):
        headers = ['Thread', 'Start index', 'Documents', 'Inserted', 'Failed batches', 'Cancelled']
        rows = [[r.thread_id, r.partition.start, r.partition.count, r.inserted, r.failed_batches, r.cancelled]
                for r in results]
    else:
        headers = ['Thread', 'Operations', 'Reads', 'Writes', 'Errors', 'Cancelled']
        rows = [[r.thread_id, r.operations, r.reads, r.writes, r.errors, r.cancelled] for r in results]
    return tabulate(rows, headers=headers, tablefmt='grid')


def plot_progress(samples, output_path):
    elapsed = [s.elapsed_ms / 1000 for s in samples]
    throughput = [s.current_throughput for s in samples]
    read_us = [s.latest_read_latency_ms * 1000 for s in samples]
    write_us = [s.latest_write_latency_ms * 1000 for s in samples]

    fig, (top, bottom) = plt.subplots(2, 1, figsize=(10, 8), sharex=True)

    top.plot(elapsed, throughput, color='green', marker='o')
    top.set_title('Throughput over time')
    top.set_ylabel('ops/sec')
    top.grid(True, alpha=0.3)

    bottom.plot(elapsed, read_us, label='READ', color='blue', marker='o')
    bottom.plot(elapsed, write_us, label='UPDATE', color='orange', marker='o')
    bottom.set_title('Latest latency')
    bottom.set_xlabel('Elapsed (s)')
    bottom.set_ylabel('Latency (us)')
    bottom.grid(True, alpha=0.3)

    #legend below the chart
    bottom.legend(loc='upper center', bbox_to_anchor=(0.5, -0.2), fancybox=True, shadow=True, ncol=2)

    fig.tight_layout()
    fig.savefig(output_path, dpi=100)
    plt.close(fig)
    return output_path
