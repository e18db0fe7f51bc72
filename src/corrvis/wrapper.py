from multiprocessing import cpu_count
from typing import Literal
import logging
import os
import time
import memray
import numpy as np
import psutil
import ray

from . import logutils
from .core.correlate import (
    CorrelationEngine,
    InvalidArgumentError,
    get_precision,
    precision_dtypes,
)
from .core.jones import evaluate_jones_K, join_jones
from .core.utils import get_task_chunks, num_baselines, speed_of_light
from .cpu.cpu_correlate import CPUCorrelationEngine

logger = logging.getLogger(__name__)


def create_correlation_engine(
    backend: Literal["cpu", "gpu"] = "cpu", **kwargs
) -> CorrelationEngine:
    """Create a correlation engine for the specified backend.

    Parameters
    ----------
    backend
        The backend to use for correlation.
        Currently supported: "cpu", "gpu". The GPU backend requires cupy.
    **kwargs
        Additional keyword arguments to pass to the engine constructor.

    Returns
    -------
    CorrelationEngine
        A correlation engine instance for the specified backend.

    Raises
    ------
    ValueError
        If the specified backend is not supported.
    """
    if backend == "cpu":
        return CPUCorrelationEngine(**kwargs)
    elif backend == "gpu":
        from .gpu.gpu_correlate import GPUCorrelationEngine

        return GPUCorrelationEngine(**kwargs)
    else:
        raise ValueError(f"Unsupported backend: {backend}")


def cross_correlate(
    jones: np.ndarray,
    brightness: np.ndarray,
    l: np.ndarray,
    m: np.ndarray,
    n: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    w: np.ndarray,
    vis: np.ndarray | None = None,
    uv_min_lambda: float = 0.0,
    uv_max_lambda: float = np.inf,
    inv_wavelength: float = 1.0,
    frac_bandwidth: float = 0.0,
    gaussian: tuple | None = None,
    compensated: bool | None = None,
    nthreads: int | None = None,
    backend: Literal["cpu", "gpu"] = "cpu",
) -> np.ndarray:
    """
    Run one correlation pass, adding into ``vis``.

    If ``vis`` is None a zero-initialized buffer of the right shape and dtype
    is allocated. Otherwise results are added to its existing contents, so
    channels or time samples can be summed by passing the same buffer.

    See :meth:`corrvis.core.correlate.CorrelationEngine.correlate` for the
    remaining parameters.

    Returns
    -------
    vis : np.ndarray
        Array of shape (nbls,) for scalar Jones terms, or (nbls, 2, 2) for
        2x2 Jones terms, indexed by :func:`corrvis.core.utils.baseline_index`.
    """
    jones = np.asarray(jones)
    if vis is None:
        _, complex_dtype = precision_dtypes[get_precision(jones.dtype)]
        nbls = num_baselines(jones.shape[0])
        shape = (nbls, 2, 2) if jones.ndim == 4 else (nbls,)
        vis = np.zeros(shape, dtype=complex_dtype)

    engine = create_correlation_engine(backend=backend)
    return engine.correlate(
        jones,
        brightness,
        l,
        m,
        n,
        u,
        v,
        w,
        vis,
        uv_min_lambda=uv_min_lambda,
        uv_max_lambda=uv_max_lambda,
        inv_wavelength=inv_wavelength,
        frac_bandwidth=frac_bandwidth,
        gaussian=gaussian,
        compensated=compensated,
        nthreads=nthreads,
    )


def _evaluate_vis_chunk(
    time_idx: slice,
    freq_idx: slice,
    station_uvw: np.ndarray,
    freqs: np.ndarray,
    brightness: np.ndarray,
    l: np.ndarray,
    m: np.ndarray,
    n: np.ndarray,
    jones: np.ndarray | None,
    polarized: bool,
    precision: int,
    uv_min_lambda: float,
    uv_max_lambda: float,
    channel_bandwidth: float,
    gaussian: tuple | None,
    compensated: bool | None,
    accumulate: bool,
    nthreads: int | None,
    backend: str,
    trace_mem: bool = False,
) -> np.ndarray:
    """
    Correlate a contiguous block of (time, channel) samples.

    Returns an array of shape (nt, nf, nbls[, 2, 2]), or (nbls[, 2, 2]) holding
    the sum over the block when ``accumulate`` is set.
    """
    pid = os.getpid()
    pr = psutil.Process(pid)

    if trace_mem:
        memray.Tracker(f"memray-{time.time()}_{pid}.bin").__enter__()

    _, complex_dtype = precision_dtypes[precision]
    engine = create_correlation_engine(backend=backend)

    times_here = range(station_uvw.shape[0])[time_idx]
    freqs_here = range(len(freqs))[freq_idx]
    nstations = station_uvw.shape[1]
    nbls = num_baselines(nstations)
    pol_shape = (2, 2) if polarized else ()

    if accumulate:
        vis = np.zeros((nbls,) + pol_shape, dtype=complex_dtype)
    else:
        vis = np.zeros(
            (len(times_here), len(freqs_here), nbls) + pol_shape, dtype=complex_dtype
        )

    niters = len(times_here) * len(freqs_here)
    iters = 0
    start_time = prev_time = time.time()
    last_mem = logutils.process_memory(pr)

    for time_index, ti in enumerate(times_here):
        u, v, w = station_uvw[ti].T

        for freq_index, fi in enumerate(freqs_here):
            freq = freqs[fi]
            inv_wavelength = freq / speed_of_light

            K = evaluate_jones_K(u, v, w, l, m, n, inv_wavelength, dtype=complex_dtype)
            if jones is not None:
                E = jones[ti, fi].astype(complex_dtype, copy=False)
            elif polarized:
                E = np.broadcast_to(
                    np.eye(2, dtype=complex_dtype), K.shape + (2, 2)
                )
            else:
                E = None
            jones_here = join_jones(E, K)

            out = vis if accumulate else vis[time_index, freq_index]
            engine.correlate(
                jones_here,
                brightness[fi],
                l,
                m,
                n,
                u,
                v,
                w,
                out,
                uv_min_lambda=uv_min_lambda,
                uv_max_lambda=uv_max_lambda,
                inv_wavelength=inv_wavelength,
                frac_bandwidth=channel_bandwidth / freq,
                gaussian=gaussian,
                compensated=compensated,
                nthreads=nthreads,
            )

            iters += 1
            prev_time, last_mem = logutils.log_progress(
                start_time, prev_time, iters, niters, pr, last_mem
            )

    return vis


def simulate_vis(
    station_uvw: np.ndarray,
    freqs: np.ndarray,
    brightness: np.ndarray,
    l: np.ndarray,
    m: np.ndarray,
    n: np.ndarray,
    jones: np.ndarray | None = None,
    polarized: bool = False,
    precision: int = 2,
    uv_min_lambda: float = 0.0,
    uv_max_lambda: float = np.inf,
    channel_bandwidth: float = 0.0,
    gaussian: tuple | None = None,
    compensated: bool | None = None,
    accumulate: bool = False,
    nprocesses: int | None = 1,
    nthreads: int | None = None,
    force_use_ray: bool = False,
    trace_mem: bool = False,
    enable_memory_monitor: bool = False,
    backend: Literal["cpu", "gpu"] = "cpu",
) -> np.ndarray:
    """
    Simulate cross-correlated visibilities over times and frequency channels.

    For each (time, channel) sample the interferometer phase is evaluated as a
    scalar Jones term, joined with the station-beam Jones terms, and every
    baseline is correlated.

    Parameters:
    ----------
    station_uvw : np.ndarray
        Station (u, v, w) coordinates in metres, shape (ntimes, nstations, 3)
        or (nstations, 3) for a single time. See
        :func:`corrvis.core.coordinates.station_uvw_at`.
    freqs : np.ndarray
        Frequencies of the channels in Hz.
    brightness : np.ndarray
        Source intensities of shape (nfreqs, nsources) or (nsources,) for
        scalar simulations, or brightness matrices of shape
        (nfreqs, nsources, 2, 2) or (nsources, 2, 2) for polarized
        simulations (see :func:`corrvis.core.sky.stokes_to_brightness`).
    l, m, n : np.ndarray
        Source direction cosines relative to the phase-tracking centre.
    jones : np.ndarray, optional
        Station-beam Jones terms of shape (ntimes, nfreqs, nstations,
        nsources) or (ntimes, nfreqs, nstations, nsources, 2, 2). If None, an
        identity beam is used.
    polarized : bool, default = False
        Whether to correlate 2x2 Jones terms.
    precision : int, optional
        Which precision level to use for floats and complex numbers
        Allowed values:
        - 1: float32, complex64
        - 2: float64, complex128
    uv_min_lambda, uv_max_lambda : float
        Range of baseline uv-distance in wavelengths to correlate, evaluated
        per channel.
    channel_bandwidth : float, default = 0.0
        Channel width in Hz. Bandwidth smearing uses channel_bandwidth / freq.
    gaussian : tuple of np.ndarray, optional
        Gaussian source parameters (a, b, c).
    compensated : bool, optional
        Force compensated summation on or off. If None, only single-precision
        scalar runs compensate.
    accumulate : bool, default = False
        Sum every (time, channel) sample into a single buffer instead of
        returning them separately.
    nprocesses : int, optional
        The number of parallel processes to use. Samples are split into
        contiguous chunks of times and channels. Set to 1 to disable
        multiprocessing entirely, or to None to use all available processors.
    nthreads : int, optional
        Total number of correlator threads. If None, all available CPUs are
        shared between the processes.
    force_use_ray : bool, default = False
        Whether to force the use of Ray even for a single process.
    trace_mem : bool, default = False
        Record memory allocations of each worker with memray.
    enable_memory_monitor : bool, default = False
        Turn on Ray memory monitoring.
    backend : str
        Backend to use for correlation ("cpu" or "gpu").

    Returns:
    -------
    vis : np.ndarray
        Array of shape (ntimes, nfreqs, nbls) if polarized is False, and
        (ntimes, nfreqs, nbls, 2, 2) if polarized is True. With ``accumulate``
        the leading two axes are summed away.
    """
    if precision not in precision_dtypes:
        raise ValueError(f"Invalid precision: {precision}")
    real_dtype, complex_dtype = precision_dtypes[precision]

    station_uvw = np.asarray(station_uvw, dtype=float)
    if station_uvw.ndim == 2:
        station_uvw = station_uvw[None]
    if station_uvw.ndim != 3 or station_uvw.shape[-1] != 3:
        raise InvalidArgumentError(
            "station_uvw must have shape (ntimes, nstations, 3); "
            f"got {station_uvw.shape}"
        )
    freqs = np.atleast_1d(np.asarray(freqs, dtype=float))
    ntimes, nstations, _ = station_uvw.shape
    nfreqs = len(freqs)

    brightness = np.asarray(brightness)
    pol_ndim = 2 if polarized else 0
    if brightness.ndim == 1 + pol_ndim:
        brightness = np.broadcast_to(brightness, (nfreqs,) + brightness.shape)
    if brightness.ndim != 2 + pol_ndim or brightness.shape[0] != nfreqs:
        raise InvalidArgumentError(
            f"brightness must have a leading axis of {nfreqs} channels; "
            f"got shape {brightness.shape}"
        )

    if jones is not None:
        jones = np.asarray(jones)
        if jones.shape[:3] != (ntimes, nfreqs, nstations):
            raise InvalidArgumentError(
                f"jones must have leading shape ({ntimes}, {nfreqs}, {nstations}); "
                f"got {jones.shape}"
            )
        if (jones.ndim == 6) != polarized:
            raise InvalidArgumentError(
                "jones must have 2x2 trailing axes exactly when polarized is True"
            )

    l, m, n = (np.asarray(x, dtype=real_dtype) for x in (l, m, n))

    # Get number of processes for multiprocessing
    if nprocesses is None:
        nprocesses = cpu_count()

    nprocesses, time_chunks, freq_chunks = get_task_chunks(nprocesses, ntimes, nfreqs)
    use_ray = nprocesses > 1 or force_use_ray

    ncpus = nthreads or cpu_count()
    nthreads_per_proc = [
        max(1, ncpus // nprocesses + (i < ncpus % nprocesses)) for i in range(nprocesses)
    ]
    logger.info(
        f"Splitting {ntimes} times x {nfreqs} channels into {nprocesses} chunks "
        f"with {nthreads_per_proc} threads per process."
    )

    if use_ray:
        required_shm = station_uvw.nbytes + freqs.nbytes + brightness.nbytes
        if jones is not None:
            required_shm += jones.nbytes
        required_shm += (ntimes * nfreqs * num_baselines(nstations) * 4) * np.dtype(
            complex_dtype
        ).itemsize
        logger.info(
            f"Initializing with {2*required_shm/1024**3:.2f} GB of shared memory"
        )

        if not ray.is_initialized():
            if trace_mem:
                os.environ["RAY_record_ref_creation_sites"] = "1"
            if not enable_memory_monitor:
                os.environ["RAY_memory_monitor_refresh_ms"] = "0"
            os.environ["RAY_object_spilling_threshold"] = "1.0"

            try:
                ray.init(
                    num_cpus=nprocesses,
                    object_store_memory=max(2 * required_shm, 80 * 1024**2),
                    include_dashboard=False,
                )
            except ValueError:
                # If there is a ray cluster already running, just connect to it.
                ray.init()

        # Put data into shared-memory pool
        station_uvw = ray.put(station_uvw)
        brightness = ray.put(brightness)
        jones = ray.put(jones)
        fnc = ray.remote(_evaluate_vis_chunk).remote
    else:
        fnc = _evaluate_vis_chunk

    init_time = time.time()
    futures = [
        fnc(
            time_idx=tc,
            freq_idx=fc,
            station_uvw=station_uvw,
            freqs=freqs,
            brightness=brightness,
            l=l,
            m=m,
            n=n,
            jones=jones,
            polarized=polarized,
            precision=precision,
            uv_min_lambda=uv_min_lambda,
            uv_max_lambda=uv_max_lambda,
            channel_bandwidth=channel_bandwidth,
            gaussian=gaussian,
            compensated=compensated,
            accumulate=accumulate,
            nthreads=nthi,
            backend=backend,
            trace_mem=use_ray and trace_mem,
        )
        for nthi, tc, fc in zip(nthreads_per_proc, time_chunks, freq_chunks)
    ]

    if use_ray:
        futures = ray.get(futures)

    logger.info(f"Main loop evaluation time: {time.time() - init_time}")

    pol_shape = (2, 2) if polarized else ()
    nbls = num_baselines(nstations)
    if accumulate:
        vis = np.zeros((nbls,) + pol_shape, dtype=complex_dtype)
        for future in futures:
            vis += future
        return vis

    vis = np.zeros((ntimes, nfreqs, nbls) + pol_shape, dtype=complex_dtype)
    for tc, fc, future in zip(time_chunks, freq_chunks, futures):
        vis[tc, fc] = future
    return vis
