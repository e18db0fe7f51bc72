"""Utilities for logging / output during a correlation run."""

import datetime
import logging
import time
import tracemalloc as tm
import psutil


logger = logging.getLogger(__name__)


def human_readable_size(size, decimal_places=2, indicate_sign=False):
    """Get a human-readable data size.

    From: https://stackoverflow.com/a/43690506/1467820
    """
    for unit in ["B", "KiB", "MiB", "GiB", "TiB", "PiB"]:
        if abs(size) < 1024.0:
            break
        if unit != "PiB":
            size /= 1024.0

    if indicate_sign:
        return f"{size:+.{decimal_places}f} {unit}"
    else:
        return f"{size:.{decimal_places}f} {unit}"


def process_memory(pr: psutil.Process) -> int:
    """Resident memory of the process not shared with others, in bytes."""
    info = pr.memory_info()
    return info.rss - getattr(info, "shared", 0)


def printmem(pr: psutil.Process, msg: str = ""):
    """Log memory usage of the process."""
    info = pr.memory_info()
    shm = getattr(info, "shared", 0)
    used = info.rss - shm

    logger.info(
        f"{msg} Memory Usage [{pr.pid}]: {human_readable_size(used)} internal, "
        f"{human_readable_size(shm)} shared."
    )


def memtrace(highest_peak: int) -> int:
    """Log traced memory and return the highest peak seen so far."""
    if not tm.is_tracing():
        return highest_peak

    cm, pm = tm.get_traced_memory()
    highest_peak = max(pm, highest_peak)
    logger.info(f"Current Memory usage   : {cm / 1024**3:.3f} GB")
    logger.info(f"Peak Mem usage         : {pm / 1024**3:.3f} GB")
    logger.info(f"Tracemalloc Peak Memory (tot)(GB): {highest_peak / 1024**3:.2f}")
    tm.reset_peak()
    return highest_peak


def log_progress(start_time, prev_time, iters, niters, pr, last_mem):
    """Log progress through the (time, channel) samples of a run.

    Returns the time and memory usage to pass back in on the next call.
    """
    if not logger.isEnabledFor(logging.INFO):
        return prev_time, last_mem

    t = time.time()
    lapsed = datetime.timedelta(seconds=(t - prev_time))
    total = datetime.timedelta(seconds=(t - start_time))
    per_iter = total / iters
    expected = per_iter * niters

    used = process_memory(pr)
    mem = human_readable_size(used)
    memdiff = human_readable_size(used - last_mem, indicate_sign=True)

    logger.info(
        f"""
        Progress Info   [{iters}/{niters} samples ({100 * iters / niters:.1f}%)]
            -> Update Time:   {lapsed}
            -> Total Time:    {total} [{per_iter} per sample]
            -> Expected Time: {expected} [{expected - total} remaining]
            -> Memory Usage:  {mem}  [{memdiff}]
        """
    )

    return t, used
