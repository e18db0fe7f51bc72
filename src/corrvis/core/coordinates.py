"""Coordinate conversions for building station and source inputs."""

import numpy as np
from astropy import units as un
from astropy.coordinates import EarthLocation
from astropy.time import Time


def radec_to_lmn(ra, dec, ra0: float, dec0: float):
    """
    Direction cosines of sources relative to a phase-tracking centre.

    Parameters:
    ----------
        ra, dec: array_like
            Source right ascension and declination in radians.
        ra0, dec0: float
            Phase-tracking centre in radians.

    Returns:
    -------
        l, m, n: np.ndarray
            Direction cosines, with l increasing to the east and n = 1 at the
            phase centre.
    """
    ra = np.asarray(ra, dtype=float)
    dec = np.asarray(dec, dtype=float)
    dra = ra - ra0
    cos_dec = np.cos(dec)

    l = cos_dec * np.sin(dra)
    m = np.cos(dec0) * np.sin(dec) - np.sin(dec0) * cos_dec * np.cos(dra)
    n = np.sin(dec0) * np.sin(dec) + np.cos(dec0) * cos_dec * np.cos(dra)
    return l, m, n


def ecef_to_station_uvw(x, y, z, ra0: float, dec0: float, lst: float):
    """
    Rotate station positions into (u, v, w) for a phase-tracking centre.

    Parameters:
    ----------
        x, y, z: array_like
            Station positions in metres, as offsets from the array centre along
            the Earth-centred, Earth-fixed axes.
        ra0, dec0: float
            Phase-tracking centre in radians.
        lst: float
            Local apparent sidereal time in radians.

    Returns:
    -------
        u, v, w: np.ndarray
            Station coordinates in metres.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    z = np.asarray(z, dtype=float)

    ha0 = lst - ra0
    sin_ha0, cos_ha0 = np.sin(ha0), np.cos(ha0)
    sin_dec0, cos_dec0 = np.sin(dec0), np.cos(dec0)

    t = x * cos_ha0 - y * sin_ha0
    u = x * sin_ha0 + y * cos_ha0
    v = z * cos_dec0 - t * sin_dec0
    w = t * cos_dec0 + z * sin_dec0
    return u, v, w


def station_uvw_at(
    x, y, z, ra0: float, dec0: float, times: np.ndarray | Time, location: EarthLocation
) -> np.ndarray:
    """
    Station (u, v, w) coordinates at a sequence of times.

    Parameters:
    ----------
        x, y, z: array_like
            Station ECEF offsets from the array centre in metres.
        ra0, dec0: float
            Phase-tracking centre in radians.
        times: astropy.Time or array_like
            Observation times (Julian dates if not a Time object).
        location: EarthLocation
            Location of the array centre.

    Returns:
    -------
        uvw: np.ndarray
            Array of shape (ntimes, nstations, 3) in metres.
    """
    if not isinstance(times, Time):
        times = Time(np.atleast_1d(times), format="jd")
    times = times.reshape(-1)

    lst = times.sidereal_time("apparent", longitude=location.lon).to_value(un.rad)
    return np.stack(
        [np.stack(ecef_to_station_uvw(x, y, z, ra0, dec0, t), axis=-1) for t in lst]
    )
