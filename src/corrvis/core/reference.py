"""
Vectorized reference correlator.

This is an independent, array-at-a-time formulation of the same visibility
sums computed by the CPU kernels. It is used to cross-validate the kernels,
and by the GPU backend with ``xp=cupy``.
"""

import numpy as np

from .utils import baseline_pairs, num_baselines


def correlate_reference(
    jones,
    brightness,
    l,
    m,
    n,
    u,
    v,
    w,
    uv_min_lambda: float = 0.0,
    uv_max_lambda: float = np.inf,
    inv_wavelength: float = 1.0,
    frac_bandwidth: float = 0.0,
    gaussian: tuple | None = None,
    block_size: int = 256,
    xp=np,
):
    """
    Compute cross-correlations for every baseline, blocks of baselines at a time.

    Parameters
    ----------
    jones, brightness, l, m, n, u, v, w
        As for :meth:`corrvis.core.correlate.CorrelationEngine.correlate`.
        All arrays must already live in the array module ``xp``.
    uv_min_lambda, uv_max_lambda, inv_wavelength, frac_bandwidth, gaussian
        As for :meth:`corrvis.core.correlate.CorrelationEngine.correlate`.
    block_size : int
        Number of baselines evaluated together. Memory use is proportional to
        ``block_size * nsources``.
    xp : module
        Array module, numpy or cupy.

    Returns
    -------
    vis
        New array of shape (nbls,) or (nbls, 2, 2) with the dtype of ``jones``.
    """
    nstations, nsources = jones.shape[:2]
    polarized = jones.ndim == 4
    nbls = num_baselines(nstations)
    pairs = baseline_pairs(nstations)

    shape = (nbls, 2, 2) if polarized else (nbls,)
    vis = xp.zeros(shape, dtype=jones.dtype)

    for start in range(0, nbls, block_size):
        stop = min(nbls, start + block_size)
        q = xp.asarray(pairs[start:stop, 0])
        p = xp.asarray(pairs[start:stop, 1])

        uu = (u[p] - u[q]) * inv_wavelength
        vv = (v[p] - v[q]) * inv_wavelength
        ww = (w[p] - w[q]) * inv_wavelength
        uv_len = xp.sqrt(uu**2 + vv**2)
        keep = (uv_len >= uv_min_lambda) & (uv_len <= uv_max_lambda)

        # numpy's sinc is normalized, sin(pi x) / (pi x)
        delay = np.pi * frac_bandwidth * (
            uu[:, None] * l[None, :]
            + vv[:, None] * m[None, :]
            + ww[:, None] * (n[None, :] - 1)
        )
        smear = xp.sinc(delay / np.pi)

        if gaussian is not None:
            a, b, c = gaussian
            smear = smear * xp.exp(
                -(
                    a[None, :] * (uu**2)[:, None]
                    + b[None, :] * (2 * uu * vv)[:, None]
                    + c[None, :] * (vv**2)[:, None]
                )
            )

        if polarized:
            jp_b = xp.einsum("bsij,sjk->bsik", jones[p], brightness)
            contrib = xp.einsum("bsik,bslk->bsil", jp_b, xp.conj(jones[q]))
            block = xp.sum(contrib * smear[:, :, None, None], axis=1)
        else:
            block = xp.sum(
                jones[p] * xp.conj(jones[q]) * brightness[None, :] * smear, axis=1
            )

        block[~keep] = 0
        vis[start:stop] += block.astype(jones.dtype)

    return vis
