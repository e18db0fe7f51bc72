"""
Core correlation functionality for corrvis.

This module defines the base class and input contract shared by the
correlation backends, independent of the specific backend implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import numpy as np

from .utils import num_baselines

# Real and complex dtypes for each precision level
precision_dtypes = {
    1: (np.float32, np.complex64),
    2: (np.float64, np.complex128),
}


class InvalidArgumentError(ValueError):
    """Raised when the inputs to a correlation pass are inconsistent."""


def default_compensation(precision: int, polarized: bool) -> bool:
    """Whether running sums use compensated summation when not specified.

    Only single-precision scalar correlation compensates by default. Wider
    mantissas, and the lower source counts typical of matrix correlation,
    make the extra work unnecessary elsewhere.
    """
    return precision == 1 and not polarized


def get_precision(dtype) -> int:
    """Return the precision level (1 or 2) matching a complex dtype."""
    dtype = np.dtype(dtype)
    for precision, (_, complex_dtype) in precision_dtypes.items():
        if dtype == complex_dtype:
            return precision
    raise InvalidArgumentError(
        f"Jones terms must be complex64 or complex128; got {dtype}"
    )


@dataclass
class CorrelationInputs:
    """Validated and precision-matched arrays for one correlation pass."""

    jones: np.ndarray
    brightness: np.ndarray
    l: np.ndarray
    m: np.ndarray
    n: np.ndarray
    u: np.ndarray
    v: np.ndarray
    w: np.ndarray
    vis: np.ndarray
    gaussian: tuple | None
    uv_min_lambda: float
    uv_max_lambda: float
    inv_wavelength: float
    frac_bandwidth: float
    precision: int
    polarized: bool
    compensated: bool

    @property
    def nstations(self) -> int:
        return self.jones.shape[0]

    @property
    def nsources(self) -> int:
        return self.jones.shape[1]


def validate_inputs(
    jones,
    brightness,
    l,
    m,
    n,
    u,
    v,
    w,
    vis,
    uv_min_lambda: float = 0.0,
    uv_max_lambda: float = np.inf,
    inv_wavelength: float = 1.0,
    frac_bandwidth: float = 0.0,
    gaussian: tuple | None = None,
    compensated: bool | None = None,
) -> CorrelationInputs:
    """
    Check the shapes and types of a correlation pass and cast real inputs.

    Precision is taken from the dtype of the Jones table. Real-valued inputs
    are converted to the matching real dtype, and the brightness to the
    matching complex dtype when polarized. The output buffer is never copied,
    so it must already have the right dtype and shape.

    Raises
    ------
    InvalidArgumentError
        If any precondition of the correlation kernels is violated.
    """
    jones = np.asarray(jones)
    precision = get_precision(jones.dtype)
    real_dtype, complex_dtype = precision_dtypes[precision]

    if jones.ndim == 2:
        polarized = False
    elif jones.ndim == 4 and jones.shape[2:] == (2, 2):
        polarized = True
    else:
        raise InvalidArgumentError(
            "Jones table must have shape (nstations, nsources) or "
            f"(nstations, nsources, 2, 2); got {jones.shape}"
        )

    nstations, nsources = jones.shape[:2]
    if nstations < 2:
        raise InvalidArgumentError(
            f"At least two stations are required; got {nstations}"
        )

    def _station_array(name, arr):
        arr = np.ascontiguousarray(arr, dtype=real_dtype)
        if arr.shape != (nstations,):
            raise InvalidArgumentError(
                f"{name} must have shape ({nstations},); got {arr.shape}"
            )
        return arr

    def _source_array(name, arr):
        arr = np.ascontiguousarray(arr, dtype=real_dtype)
        if arr.shape != (nsources,):
            raise InvalidArgumentError(
                f"{name} must have shape ({nsources},); got {arr.shape}"
            )
        return arr

    u, v, w = (_station_array(k, a) for k, a in zip("uvw", (u, v, w)))
    l, m, n = (_source_array(k, a) for k, a in zip("lmn", (l, m, n)))

    brightness = np.asarray(brightness)
    if polarized:
        brightness = np.ascontiguousarray(brightness, dtype=complex_dtype)
        expected = (nsources, 2, 2)
    else:
        if np.iscomplexobj(brightness):
            raise InvalidArgumentError(
                "Scalar correlation takes real source intensities"
            )
        brightness = np.ascontiguousarray(brightness, dtype=real_dtype)
        expected = (nsources,)
    if brightness.shape != expected:
        raise InvalidArgumentError(
            f"brightness must have shape {expected}; got {brightness.shape}"
        )

    if gaussian is not None:
        if len(gaussian) != 3:
            raise InvalidArgumentError(
                "gaussian must be a tuple of three arrays (a, b, c)"
            )
        gaussian = tuple(_source_array(k, a) for k, a in zip("abc", gaussian))

    nbls = num_baselines(nstations)
    expected = (nbls, 2, 2) if polarized else (nbls,)
    if not isinstance(vis, np.ndarray):
        raise InvalidArgumentError("vis must be a pre-allocated numpy array")
    if vis.shape != expected:
        raise InvalidArgumentError(
            f"vis must have shape {expected}; got {vis.shape}"
        )
    if vis.dtype != complex_dtype:
        raise InvalidArgumentError(
            f"vis must have dtype {np.dtype(complex_dtype)} to match the Jones "
            f"terms; got {vis.dtype}"
        )
    if not vis.flags.writeable:
        raise InvalidArgumentError("vis must be writeable")

    if uv_min_lambda > uv_max_lambda:
        raise InvalidArgumentError(
            f"uv_min_lambda ({uv_min_lambda}) exceeds uv_max_lambda "
            f"({uv_max_lambda})"
        )

    if compensated is None:
        compensated = default_compensation(precision, polarized)

    return CorrelationInputs(
        jones=np.ascontiguousarray(jones),
        brightness=brightness,
        l=l,
        m=m,
        n=n,
        u=u,
        v=v,
        w=w,
        vis=vis,
        gaussian=gaussian,
        uv_min_lambda=float(uv_min_lambda),
        uv_max_lambda=float(uv_max_lambda),
        inv_wavelength=float(inv_wavelength),
        frac_bandwidth=float(frac_bandwidth),
        precision=precision,
        polarized=polarized,
        compensated=bool(compensated),
    )


class CorrelationEngine(ABC):
    """Base class for visibility correlation engines."""

    @abstractmethod
    def correlate(
        self,
        jones: np.ndarray,
        brightness: np.ndarray,
        l: np.ndarray,
        m: np.ndarray,
        n: np.ndarray,
        u: np.ndarray,
        v: np.ndarray,
        w: np.ndarray,
        vis: np.ndarray,
        uv_min_lambda: float = 0.0,
        uv_max_lambda: float = np.inf,
        inv_wavelength: float = 1.0,
        frac_bandwidth: float = 0.0,
        gaussian: tuple | None = None,
        compensated: bool | None = None,
        nthreads: int | None = None,
    ) -> np.ndarray:
        """
        Cross-correlate every baseline and add the result into ``vis``.

        Parameters
        ----------
        jones : np.ndarray
            Station-beam Jones terms indexed [station, source]. Shape
            (nstations, nsources) for scalar correlation, or
            (nstations, nsources, 2, 2) for polarized correlation. The dtype
            (complex64 or complex128) selects the precision of the whole pass.
        brightness : np.ndarray
            Source intensities of shape (nsources,) when scalar, or brightness
            matrices of shape (nsources, 2, 2) when polarized.
        l, m, n : np.ndarray
            Source direction cosines relative to the phase-tracking centre.
        u, v, w : np.ndarray
            Station coordinates. Multiplied by ``inv_wavelength`` they must be
            in wavelengths.
        vis : np.ndarray
            Pre-allocated output of shape (nbls,) or (nbls, 2, 2), indexed by
            :func:`corrvis.core.utils.baseline_index`. Results are added to
            the existing contents.
        uv_min_lambda, uv_max_lambda : float
            Range of baseline uv-distance, in wavelengths, to correlate.
            Baselines outside the range receive no contribution.
        inv_wavelength : float
            Inverse of the observing wavelength.
        frac_bandwidth : float
            Channel bandwidth divided by frequency, for bandwidth smearing.
        gaussian : tuple of np.ndarray, optional
            Gaussian source shape parameters (a, b, c), see
            :func:`corrvis.core.sky.gaussian_source_parameters`. Point sources
            are assumed when omitted.
        compensated : bool, optional
            Use compensated summation for the per-baseline source sums. If
            None, only single-precision scalar correlation compensates.
        nthreads : int, optional
            Number of worker threads. If None, all available CPUs are used.

        Returns
        -------
        np.ndarray
            The ``vis`` buffer.
        """
        pass
