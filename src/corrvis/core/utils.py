import numpy as np

speed_of_light = 299792458.0  # m/s


def num_baselines(nstations: int) -> int:
    """Number of cross-correlation baselines for ``nstations`` stations."""
    return nstations * (nstations - 1) // 2


def baseline_index(nstations: int, p: int, q: int) -> int:
    """
    Return the triangular index of the baseline formed by stations p and q.

    The index is independent of argument order. Baselines are laid out row by
    row on the lower-numbered station, so for three stations the pairs
    (0, 1), (0, 2) and (1, 2) map to 0, 1 and 2.

    Parameters:
    ----------
        nstations: int
            Total number of stations in the array.
        p, q: int
            Station indices. Must differ.

    Returns:
    -------
        index: int
            Value in the range [0, nstations * (nstations - 1) / 2).
    """
    if p < q:
        p, q = q, p
    return q * (nstations - 1) - (q - 1) * q // 2 + p - q - 1


def baseline_pairs(nstations: int) -> np.ndarray:
    """
    Station pairs for every baseline, ordered by baseline index.

    Returns an integer array of shape (nbls, 2) holding (q, p) with q < p.
    """
    q, p = np.triu_indices(nstations, k=1)
    return np.stack([q, p], axis=-1)


def baseline_uvw(u: np.ndarray, v: np.ndarray, w: np.ndarray) -> np.ndarray:
    """
    Compute baseline coordinates from station coordinates.

    Each baseline vector is station p minus station q, with p > q, which is the
    same orientation used by the correlation kernels.

    Parameters:
    ----------
        u, v, w: np.ndarray
            Station coordinates, each of shape (nstations,).

    Returns:
    -------
        uvw: np.ndarray
            Array of shape (nbls, 3) in baseline-index order.
    """
    pairs = baseline_pairs(len(u))
    q, p = pairs[:, 0], pairs[:, 1]
    return np.stack([u[p] - u[q], v[p] - v[q], w[p] - w[q]], axis=-1)


def get_task_chunks(
    nprocesses: int, ntimes: int, nfreqs: int
) -> tuple[int, list[slice], list[slice]]:
    """Split the (time, channel) samples of a simulation into process chunks.

    Chunks run over whole channel ranges for a block of times where possible,
    and only split channels once there are fewer times than processes.

    Parameters
    ----------
    nprocesses : int
        The number of processes that can be used.
    ntimes : int
        The number of time samples.
    nfreqs : int
        The number of frequency channels.

    Returns
    -------
    nprocesses : int
        The number of processes to actually use. This is 1 if there are
        fewer samples than processes, in which case threading within a single
        process is preferred.
    time_chunks : list of slices
        One slice of time indices per chunk.
    freq_chunks : list of slices
        One slice of channel indices per chunk.
    """
    ntasks = ntimes * nfreqs

    if nprocesses <= 1 or ntasks < 2 * nprocesses:
        return 1, [slice(0, ntimes)], [slice(0, nfreqs)]

    if ntimes >= nprocesses:
        nt = int(np.ceil(ntimes / nprocesses))
        time_chunks = [slice(i, min(ntimes, i + nt)) for i in range(0, ntimes, nt)]
        freq_chunks = [slice(0, nfreqs)] * len(time_chunks)
        return len(time_chunks), time_chunks, freq_chunks

    # Fewer times than processes: give every time its own share of the channels.
    nfc = int(np.ceil(nprocesses / ntimes))
    nf = int(np.ceil(nfreqs / nfc))
    time_chunks = []
    freq_chunks = []
    for ti in range(ntimes):
        for fi in range(0, nfreqs, nf):
            time_chunks.append(slice(ti, ti + 1))
            freq_chunks.append(slice(fi, min(nfreqs, fi + nf)))
    return len(time_chunks), time_chunks, freq_chunks
