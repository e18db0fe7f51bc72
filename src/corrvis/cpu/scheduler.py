"""
Work distribution for the CPU correlator.

The outer loop of a correlation pass runs over the lower station of each
baseline. Station ``sq`` owns the ``nstations - sq - 1`` baselines it forms
with higher-numbered stations, so the work per station shrinks linearly and a
static split of stations across threads leaves most workers idle at the end.
Instead, a fixed pool of threads pulls one station at a time from a shared
queue until the queue is empty.
"""

from concurrent.futures import ThreadPoolExecutor, FIRST_EXCEPTION, wait
from multiprocessing import cpu_count
import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class ParallelScheduler:
    """Run a per-station task over every station with dynamic scheduling.

    Parameters
    ----------
    nthreads : int, optional
        Number of worker threads. If None, all available CPUs are used. With a
        single thread, stations are processed inline in increasing order.
    """

    def __init__(self, nthreads: int | None = None):
        if nthreads is None:
            nthreads = cpu_count()
        if nthreads < 1:
            raise ValueError(f"nthreads must be at least 1; got {nthreads}")
        self.nthreads = nthreads

    def run(self, task: Callable[[int], None], nstations: int) -> list[int]:
        """
        Call ``task(sq)`` once for every station index ``sq`` in [0, nstations).

        The last station has no higher-numbered partner and owns no
        baselines, so it is never dispatched. Each worker takes the next
        unclaimed station as soon as it finishes its current one.

        Parameters
        ----------
        task
            Callable taking a single station index. It must only write to
            output owned by that station.
        nstations
            Number of stations.

        Returns
        -------
        list of int
            The number of stations processed by each worker, for diagnostics.
        """
        nrows = max(nstations - 1, 0)
        nworkers = min(self.nthreads, nrows)

        if nworkers <= 1:
            for sq in range(nrows):
                task(sq)
            return [nrows]

        # A shared iterator handed out one item at a time is the work queue.
        queue = iter(range(nrows))
        lock = threading.Lock()
        counts = [0] * nworkers

        def _next_station():
            with lock:
                return next(queue, None)

        def _worker(worker_id):
            while True:
                sq = _next_station()
                if sq is None:
                    return
                task(sq)
                counts[worker_id] += 1

        init_time = time.time()
        with ThreadPoolExecutor(max_workers=nworkers) as pool:
            futures = [pool.submit(_worker, i) for i in range(nworkers)]
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            for future in done:
                if future.exception() is not None:
                    # Stop handing out further stations before re-raising.
                    with lock:
                        for _ in queue:
                            pass
                    raise future.exception()

        logger.debug(
            f"Processed {nrows} stations on {nworkers} threads in "
            f"{time.time() - init_time:.3f} s; per-thread counts {counts}"
        )
        return counts
