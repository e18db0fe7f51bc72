"""
Numba correlation kernels for the CPU backend.

Every kernel is compiled once per floating-point precision from the same
source, so single- and double-precision passes follow an identical order of
operations. All arithmetic inside a precision stays in that precision.
"""

from typing import NamedTuple
import numpy as np
import numba as nb

from ..core import utils
from ..core.correlate import precision_dtypes

# Triangular baseline index, shared with the pure-Python helper
baseline_index = nb.njit(utils.baseline_index, nogil=True)


class Kernels(NamedTuple):
    """The compiled kernels for one precision."""

    sinc: callable
    evaluate_baseline_terms: callable
    compensated_add: callable
    correlate_row_scalar: callable
    correlate_row_polarized: callable


def _build_kernels(precision: int) -> Kernels:
    real_dtype, complex_dtype = precision_dtypes[precision]
    zero = real_dtype(0.0)
    one = real_dtype(1.0)
    pi = real_dtype(np.pi)
    czero = complex_dtype(0.0)

    @nb.njit(nogil=True)
    def sinc(x):  # pragma: no cover
        """Unnormalized sinc, sin(x) / x, equal to one at the origin."""
        if x == zero:
            return one
        return np.sin(x) / x

    @nb.njit(nogil=True)
    def evaluate_baseline_terms(
        up, uq, vp, vq, wp, wq, inv_wavelength, frac_bandwidth
    ):  # pragma: no cover
        """
        Evaluate the per-baseline terms used for every source.

        Returns
        -------
        uv_len
            Baseline uv-distance in wavelengths (w is not included).
        uu, vv, ww
            Baseline coordinates in wavelengths, scaled by
            pi * frac_bandwidth for the bandwidth-smearing argument.
        uu2, vv2, uuvv
            uu**2, vv**2 and 2*uu*vv before scaling, for Gaussian sources.
        """
        uu = (up - uq) * inv_wavelength
        vv = (vp - vq) * inv_wavelength
        ww = (wp - wq) * inv_wavelength
        uv_len = np.sqrt(uu * uu + vv * vv)

        uu2 = uu * uu
        vv2 = vv * vv
        uuvv = (one + one) * uu * vv

        factor = pi * frac_bandwidth
        return uv_len, uu * factor, vv * factor, ww * factor, uu2, vv2, uuvv

    @nb.njit(nogil=True)
    def compensated_add(total, guard, value):  # pragma: no cover
        """
        Add ``value`` to a running sum, carrying the rounding error in ``guard``.

        Returns the updated (total, guard) pair.
        """
        t1 = value - guard
        t2 = total + t1
        guard = (t2 - total) - t1
        return t2, guard

    @nb.njit(nogil=True)
    def correlate_row_scalar(
        sq,
        jones,
        brightness,
        l,
        m,
        n,
        u,
        v,
        w,
        ga,
        gb,
        gc,
        extended,
        uv_min_lambda,
        uv_max_lambda,
        inv_wavelength,
        frac_bandwidth,
        compensated,
        vis,
    ):  # pragma: no cover
        """
        Correlate station ``sq`` against every station with a higher index.

        Writes only to the baselines whose lower station is ``sq``.
        """
        nstations, nsources = jones.shape
        for sp in range(sq + 1, nstations):
            uv_len, uu, vv, ww, uu2, vv2, uuvv = evaluate_baseline_terms(
                u[sp], u[sq], v[sp], v[sq], w[sp], w[sq],
                inv_wavelength, frac_bandwidth,
            )

            # Baseline length filter
            if uv_len < uv_min_lambda or uv_len > uv_max_lambda:
                continue

            total = czero
            guard = czero
            for i in range(nsources):
                smear = sinc(uu * l[i] + vv * m[i] + ww * (n[i] - one))
                if extended:
                    smear *= np.exp(-(ga[i] * uu2 + gb[i] * uuvv + gc[i] * vv2))

                value = jones[sp, i] * np.conj(jones[sq, i]) * (brightness[i] * smear)
                if compensated:
                    total, guard = compensated_add(total, guard, value)
                else:
                    total += value

            vis[baseline_index(nstations, sp, sq)] += total

    @nb.njit(nogil=True)
    def correlate_row_polarized(
        sq,
        jones,
        brightness,
        l,
        m,
        n,
        u,
        v,
        w,
        ga,
        gb,
        gc,
        extended,
        uv_min_lambda,
        uv_max_lambda,
        inv_wavelength,
        frac_bandwidth,
        compensated,
        vis,
    ):  # pragma: no cover
        """
        Polarized version of :func:`correlate_row_scalar`.

        The contribution of each source is J_p B J_q^H, with the four matrix
        elements summed independently.
        """
        nstations, nsources = jones.shape[:2]
        total = np.zeros(4, dtype=complex_dtype)
        guard = np.zeros(4, dtype=complex_dtype)
        value = np.zeros(4, dtype=complex_dtype)

        for sp in range(sq + 1, nstations):
            uv_len, uu, vv, ww, uu2, vv2, uuvv = evaluate_baseline_terms(
                u[sp], u[sq], v[sp], v[sq], w[sp], w[sq],
                inv_wavelength, frac_bandwidth,
            )

            if uv_len < uv_min_lambda or uv_len > uv_max_lambda:
                continue

            total[:] = czero
            guard[:] = czero
            for i in range(nsources):
                smear = sinc(uu * l[i] + vv * m[i] + ww * (n[i] - one))
                if extended:
                    smear *= np.exp(-(ga[i] * uu2 + gb[i] * uuvv + gc[i] * vv2))

                p = jones[sp, i]
                q = jones[sq, i]
                b = brightness[i]

                # T = J_p B
                t00 = p[0, 0] * b[0, 0] + p[0, 1] * b[1, 0]
                t01 = p[0, 0] * b[0, 1] + p[0, 1] * b[1, 1]
                t10 = p[1, 0] * b[0, 0] + p[1, 1] * b[1, 0]
                t11 = p[1, 0] * b[0, 1] + p[1, 1] * b[1, 1]

                # T J_q^H
                q00 = np.conj(q[0, 0])
                q01 = np.conj(q[0, 1])
                q10 = np.conj(q[1, 0])
                q11 = np.conj(q[1, 1])
                value[0] = (t00 * q00 + t01 * q01) * smear
                value[1] = (t00 * q10 + t01 * q11) * smear
                value[2] = (t10 * q00 + t11 * q01) * smear
                value[3] = (t10 * q10 + t11 * q11) * smear

                for k in range(4):
                    if compensated:
                        total[k], guard[k] = compensated_add(
                            total[k], guard[k], value[k]
                        )
                    else:
                        total[k] += value[k]

            idx = baseline_index(nstations, sp, sq)
            vis[idx, 0, 0] += total[0]
            vis[idx, 0, 1] += total[1]
            vis[idx, 1, 0] += total[2]
            vis[idx, 1, 1] += total[3]

    return Kernels(
        sinc=sinc,
        evaluate_baseline_terms=evaluate_baseline_terms,
        compensated_add=compensated_add,
        correlate_row_scalar=correlate_row_scalar,
        correlate_row_polarized=correlate_row_polarized,
    )


_kernels = {precision: _build_kernels(precision) for precision in precision_dtypes}


def get_kernels(precision: int) -> Kernels:
    """Return the compiled kernels for precision 1 (single) or 2 (double)."""
    try:
        return _kernels[precision]
    except KeyError:
        raise ValueError(f"Invalid precision: {precision}") from None
