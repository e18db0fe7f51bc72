import threading

import pytest

from corrvis.cpu.scheduler import ParallelScheduler


@pytest.mark.parametrize("nthreads", [1, 2, 4, 16])
@pytest.mark.parametrize("nstations", [2, 3, 10, 33])
def test_every_station_runs_once(nthreads, nstations):
    seen = []
    lock = threading.Lock()

    def task(sq):
        with lock:
            seen.append(sq)

    counts = ParallelScheduler(nthreads).run(task, nstations)

    # The last station owns no baselines.
    assert sorted(seen) == list(range(nstations - 1))
    assert sum(counts) == nstations - 1


def test_sequential_runs_in_order():
    seen = []
    counts = ParallelScheduler(1).run(seen.append, 6)
    assert seen == [0, 1, 2, 3, 4]
    assert counts == [5]


def test_never_more_workers_than_stations():
    counts = ParallelScheduler(8).run(lambda sq: None, 4)
    assert len(counts) == 3


def test_single_station_runs_nothing():
    seen = []
    ParallelScheduler(4).run(seen.append, 1)
    assert seen == []


def test_work_is_assigned_dynamically():
    """A worker stuck on one station does not hold up the rest."""
    nstations = 11
    release = threading.Event()
    done = []
    lock = threading.Lock()

    def task(sq):
        if sq == 0:
            assert release.wait(timeout=30)
            return
        with lock:
            done.append(sq)
            if len(done) == nstations - 2:
                release.set()

    counts = ParallelScheduler(2).run(task, nstations)
    assert sorted(counts) == [1, nstations - 2]


def test_exception_is_raised():
    def task(sq):
        if sq == 3:
            raise RuntimeError("bad station")

    with pytest.raises(RuntimeError, match="bad station"):
        ParallelScheduler(3).run(task, 20)

    with pytest.raises(RuntimeError, match="bad station"):
        ParallelScheduler(1).run(task, 20)


def test_default_thread_count():
    assert ParallelScheduler().nthreads >= 1


@pytest.mark.parametrize("nthreads", [0, -2])
def test_invalid_thread_count(nthreads):
    with pytest.raises(ValueError, match="nthreads must be at least 1"):
        ParallelScheduler(nthreads)
