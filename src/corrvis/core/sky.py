"""Source brightness and shape helpers for building correlator inputs."""

import numpy as np

# Conversion from full width at half maximum to standard deviation
fwhm_to_sigma = 1.0 / (2.0 * np.sqrt(2.0 * np.log(2.0)))


def stokes_to_brightness(
    stokes_i: np.ndarray,
    stokes_q: np.ndarray | None = None,
    stokes_u: np.ndarray | None = None,
    stokes_v: np.ndarray | None = None,
) -> np.ndarray:
    """
    Build the 2x2 source brightness matrix for linear feeds.

    Parameters
    ----------
    stokes_i, stokes_q, stokes_u, stokes_v : np.ndarray
        Stokes parameters per source. Missing Q, U or V are taken as zero.

    Returns
    -------
    brightness : np.ndarray
        Complex array of shape (..., 2, 2) holding
        [[I + Q, U + iV], [U - iV, I - Q]]. There is no factor of one half, so
        an unpolarized source correlated with identity Jones terms gives
        XX = YY = I, as in scalar correlation.
    """
    stokes_i = np.asarray(stokes_i, dtype=float)
    zeros = np.zeros_like(stokes_i)
    stokes_q = zeros if stokes_q is None else np.asarray(stokes_q, dtype=float)
    stokes_u = zeros if stokes_u is None else np.asarray(stokes_u, dtype=float)
    stokes_v = zeros if stokes_v is None else np.asarray(stokes_v, dtype=float)

    brightness = np.array(
        [
            [stokes_i + stokes_q, stokes_u + 1j * stokes_v],
            [stokes_u - 1j * stokes_v, stokes_i - stokes_q],
        ]
    )
    return np.moveaxis(brightness, (0, 1), (-2, -1))


def gaussian_source_parameters(fwhm_major, fwhm_minor, position_angle):
    """
    Convert Gaussian source shapes to the uv-plane parameters (a, b, c).

    The visibility of a Gaussian source is attenuated relative to a point
    source by exp(-(a u^2 + 2 b u v + c v^2)), with u and v in wavelengths.

    Parameters
    ----------
    fwhm_major, fwhm_minor : array_like
        Full width at half maximum along the major and minor axes, in radians.
    position_angle : array_like
        Position angle of the major axis, east of north, in radians.

    Returns
    -------
    a, b, c : np.ndarray
        Shape parameters. Sources with zero width give zeros, i.e. point
        sources.
    """
    fwhm_major = np.asarray(fwhm_major, dtype=float)
    fwhm_minor = np.asarray(fwhm_minor, dtype=float)
    position_angle = np.asarray(position_angle, dtype=float)

    # The Fourier transform of a Gaussian of width sigma has exponent
    # -2 pi^2 sigma^2 |u|^2.
    var_major = 2.0 * np.pi**2 * (fwhm_major * fwhm_to_sigma) ** 2
    var_minor = 2.0 * np.pi**2 * (fwhm_minor * fwhm_to_sigma) ** 2

    cos_pa_2 = np.cos(position_angle) ** 2
    sin_pa_2 = np.sin(position_angle) ** 2
    sin_2pa = np.sin(2.0 * position_angle)

    a = cos_pa_2 * var_minor + sin_pa_2 * var_major
    b = 0.5 * sin_2pa * (var_major - var_minor)
    c = sin_pa_2 * var_minor + cos_pa_2 * var_major
    return a, b, c
