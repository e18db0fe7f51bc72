import typer
from pathlib import Path
import logging
from rich.console import Console
from rich.rule import Rule
import time
import cProfile
import pstats
import numpy as np

from .wrapper import simulate_vis
from .core.coordinates import ecef_to_station_uvw, radec_to_lmn
from .utils import default_backend

cns = Console()

logger = logging.getLogger("corrvis")

app = typer.Typer()


def get_standard_sim_params(
    nstations: int,
    nsources: int,
    nfreq: int,
    ntimes: int,
    freq_min: float,
    array_radius: float = 1000.0,
    field_radius: float = 0.05,
    seed: int = 42,
):
    """Random station layout and source list for profiling runs.

    Stations are scattered in a disk of ``array_radius`` metres, observed
    over a one-hour track at declination -30 degrees, and sources are
    scattered within ``field_radius`` radians of the phase centre.
    """
    rng = np.random.default_rng(seed)

    r = array_radius * np.sqrt(rng.uniform(size=nstations))
    theta = rng.uniform(0, 2 * np.pi, size=nstations)
    x, y = r * np.cos(theta), r * np.sin(theta)
    z = rng.normal(scale=1.0, size=nstations)

    ra0, dec0 = 0.0, np.deg2rad(-30.0)
    lsts = np.linspace(-np.pi / 24, np.pi / 24, ntimes)
    station_uvw = np.stack(
        [np.stack(ecef_to_station_uvw(x, y, z, ra0, dec0, lst), axis=-1) for lst in lsts]
    )

    ra = ra0 + rng.uniform(-field_radius, field_radius, size=nsources)
    dec = dec0 + rng.uniform(-field_radius, field_radius, size=nsources)
    l, m, n = radec_to_lmn(ra, dec, ra0, dec0)

    freqs = np.linspace(freq_min, 1.2 * freq_min, nfreq)
    flux = rng.uniform(0.1, 10.0, size=(nfreq, nsources))
    return station_uvw, freqs, flux, l, m, n


def get_label(**kwargs) -> str:
    """Label identifying a profiling run from its parameters."""
    return "_".join(f"{k}{v}" for k, v in kwargs.items())


@app.command()
def run_profile(
    nstations: int = 64,
    nsource: int = 1000,
    nfreq: int = 1,
    ntimes: int = 1,
    double_precision: bool = True,
    polarized: bool = False,
    outdir: Path = Path(".").absolute(),
    log_level: str = "INFO",
    nprocesses: int = 1,
    nthreads: int = 0,
    uv_max: float = np.inf,
    channel_bandwidth: float = 0.0,  # Hz
    freq_min: float = 100,  # MHz
    compensated: str = "auto",
    backend: str = "cpu",
    seed: int = 42,
):
    """Profile a correlation run on a random array and sky."""
    logging.basicConfig()
    logger.setLevel(log_level.upper())

    if backend == "auto":
        backend = default_backend()

    compensate = {"auto": None, "yes": True, "no": False}[compensated.lower()]

    station_uvw, freqs, flux, l, m, n = get_standard_sim_params(
        nstations, nsource, nfreq, ntimes, freq_min * 1e6, seed=seed
    )
    if polarized:
        brightness = np.zeros(flux.shape + (2, 2), dtype=complex)
        brightness[..., 0, 0] = flux
        brightness[..., 1, 1] = flux
    else:
        brightness = flux

    cns.print(Rule("Running corrvis profile"))
    cns.print(f"  NSTATIONS:        {nstations:>7}")
    cns.print(f"  NBASELINES:       {nstations * (nstations - 1) // 2:>7}")
    cns.print(f"  NTIMES:           {ntimes:>7}")
    cns.print(f"  NFREQ:            {nfreq:>7}")
    cns.print(f"  NSOURCE:          {nsource:>7}")
    cns.print(f"  DOUBLE-PRECISION: {double_precision:>7}")
    cns.print(f"  POLARIZED:        {polarized:>7}")
    cns.print(f"  COMPENSATED:      {compensated:>7}")
    cns.print(f"  NPROCESSES:       {nprocesses:>7}")
    cns.print(f"  NTHREADS:         {nthreads or 'all':>7}")
    cns.print(f"  BACKEND:          {backend:>7}")
    cns.print(Rule())

    str_id = get_label(
        nstations=nstations,
        nsource=nsource,
        nfreq=nfreq,
        ntimes=ntimes,
        double=double_precision,
        pol=polarized,
        backend=backend,
    )
    outfile = str(outdir / f"{str_id}.prof")

    init_time = time.time()
    cProfile.runctx(
        """simulate_vis(
    station_uvw=station_uvw,
    freqs=freqs,
    brightness=brightness,
    l=l,
    m=m,
    n=n,
    polarized=polarized,
    precision=2 if double_precision else 1,
    uv_max_lambda=uv_max,
    channel_bandwidth=channel_bandwidth,
    compensated=compensate,
    nprocesses=nprocesses,
    nthreads=nthreads or None,
    backend=backend,
        )""",
        globals(),
        locals(),
        outfile,
    )
    out_time = time.time()
    cns.print("TOTAL TIME: ", out_time - init_time)

    p = pstats.Stats(outfile)
    p.sort_stats("cumulative").print_stats(50)


if __name__ == "__main__":
    app()
