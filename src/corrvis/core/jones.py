"""Phase (K) Jones terms and Jones-table combination."""

import numpy as np


def evaluate_jones_K(u, v, w, l, m, n, inv_wavelength: float, dtype=np.complex128):
    """
    Evaluate the interferometer phase term for every station and source.

    The correlators only multiply Jones terms, so the geometric phase of each
    source enters through this scalar Jones term, indexed [station, source]:
    exp(-2 pi i (u l + v m + w (n - 1)) / wavelength).

    Parameters
    ----------
    u, v, w : array_like
        Station coordinates in metres, shape (nstations,).
    l, m, n : array_like
        Source direction cosines, shape (nsources,).
    inv_wavelength : float
        Inverse of the observing wavelength in 1/m.
    dtype : np.dtype
        Complex dtype of the result.

    Returns
    -------
    np.ndarray
        Array of shape (nstations, nsources).
    """
    u, v, w = (np.asarray(x, dtype=float)[:, None] for x in (u, v, w))
    l, m, n = (np.asarray(x, dtype=float)[None, :] for x in (l, m, n))
    phase = -2 * np.pi * inv_wavelength * (u * l + v * m + w * (n - 1))
    return np.exp(1j * phase).astype(dtype)


def join_jones(E: np.ndarray | None, K: np.ndarray) -> np.ndarray:
    """
    Combine station-beam Jones terms with phase Jones terms.

    Parameters
    ----------
    E : np.ndarray or None
        Station-beam terms of shape (nstations, nsources) or
        (nstations, nsources, 2, 2). None means an identity beam.
    K : np.ndarray
        Scalar phase terms of shape (nstations, nsources).

    Returns
    -------
    np.ndarray
        The product E K with the shape and dtype of E (or K when E is None).
    """
    if E is None:
        return K
    if E.ndim == 4:
        return (E * K[..., None, None]).astype(E.dtype, copy=False)
    return (E * K).astype(E.dtype, copy=False)
