import sys

import numpy as np
import pytest

from corrvis import wrapper
from corrvis.core.correlate import InvalidArgumentError
from corrvis.core.sky import stokes_to_brightness
from corrvis.core.utils import baseline_uvw, num_baselines, speed_of_light
from corrvis.cpu.cpu_correlate import CPUCorrelationEngine

from conftest import gpu_test, make_inputs


def get_sim_params(ntimes=3, nfreqs=2, nstations=5, nsources=8, seed=3):
    rng = np.random.default_rng(seed)
    station_uvw = rng.uniform(-30, 30, size=(ntimes, nstations, 3))
    station_uvw[..., 2] *= 0.1
    freqs = np.linspace(100e6, 120e6, nfreqs)
    l, m = rng.uniform(-0.05, 0.05, size=(2, nsources))
    n = np.sqrt(1 - l**2 - m**2)
    flux = rng.uniform(1, 2, size=(nfreqs, nsources))
    return station_uvw, freqs, flux, l, m, n


def test_create_engine():
    engine = wrapper.create_correlation_engine("cpu")
    assert isinstance(engine, CPUCorrelationEngine)

    with pytest.raises(ValueError, match="Unsupported backend: tpu"):
        wrapper.create_correlation_engine("tpu")


@gpu_test
def test_create_gpu_engine():
    from corrvis.gpu.gpu_correlate import GPUCorrelationEngine

    engine = wrapper.create_correlation_engine("gpu", block_size=64)
    assert isinstance(engine, GPUCorrelationEngine)


@pytest.mark.parametrize("precision", [1, 2])
@pytest.mark.parametrize("polarized", [False, True])
def test_cross_correlate_allocates(precision, polarized):
    inputs = make_inputs(nstations=5, polarized=polarized, precision=precision)
    vis = wrapper.cross_correlate(**inputs)

    nbls = num_baselines(5)
    assert vis.shape == ((nbls, 2, 2) if polarized else (nbls,))
    assert vis.dtype == inputs["jones"].dtype

    again = wrapper.cross_correlate(**inputs, vis=vis.copy())
    np.testing.assert_allclose(again, 2 * vis, rtol=1e-5)


@pytest.mark.parametrize("polarized", [False, True])
@pytest.mark.parametrize("precision", [1, 2])
def test_simulate_vis_shapes(polarized, precision):
    station_uvw, freqs, flux, l, m, n = get_sim_params()
    brightness = stokes_to_brightness(flux) if polarized else flux

    vis = wrapper.simulate_vis(
        station_uvw, freqs, brightness, l, m, n, polarized=polarized,
        precision=precision, nthreads=2,
    )
    pol_shape = (2, 2) if polarized else ()
    assert vis.shape == (3, 2, num_baselines(5)) + pol_shape
    assert vis.dtype == (np.complex64 if precision == 1 else np.complex128)


def test_simulate_vis_matches_direct_sum():
    station_uvw, freqs, flux, l, m, n = get_sim_params()
    vis = wrapper.simulate_vis(station_uvw, freqs, flux, l, m, n, nthreads=1)

    for ti in range(station_uvw.shape[0]):
        buvw = baseline_uvw(*station_uvw[ti].T)
        for fi, freq in enumerate(freqs):
            phase = (
                -2j * np.pi * freq / speed_of_light
                * (buvw[:, :1] * l + buvw[:, 1:2] * m + buvw[:, 2:] * (n - 1))
            )
            expected = np.sum(flux[fi] * np.exp(phase), axis=1)
            np.testing.assert_allclose(vis[ti, fi], expected, rtol=1e-10, atol=1e-12)


def test_phase_centre_source_gives_flux():
    station_uvw, freqs, _, _, _, _ = get_sim_params()
    vis = wrapper.simulate_vis(
        station_uvw, freqs, np.array([3.0]), [0.0], [0.0], [1.0], nthreads=1
    )
    np.testing.assert_allclose(vis, 3.0)


def test_single_time_station_uvw():
    station_uvw, freqs, flux, l, m, n = get_sim_params(ntimes=1)
    vis = wrapper.simulate_vis(station_uvw[0], freqs, flux, l, m, n)
    assert vis.shape == (1, 2, num_baselines(5))


def test_accumulate_sums_samples():
    station_uvw, freqs, flux, l, m, n = get_sim_params()
    vis = wrapper.simulate_vis(station_uvw, freqs, flux, l, m, n, channel_bandwidth=1e5)
    total = wrapper.simulate_vis(
        station_uvw, freqs, flux, l, m, n, channel_bandwidth=1e5, accumulate=True
    )
    assert total.shape == (num_baselines(5),)
    np.testing.assert_allclose(total, vis.sum(axis=(0, 1)), rtol=1e-10, atol=1e-12)


def test_station_beam_is_applied():
    station_uvw, freqs, flux, l, m, n = get_sim_params()
    gain = np.full((3, 2, 5, 8), 2.0 + 0j)

    vis = wrapper.simulate_vis(station_uvw, freqs, flux, l, m, n)
    beam_vis = wrapper.simulate_vis(station_uvw, freqs, flux, l, m, n, jones=gain)
    np.testing.assert_allclose(beam_vis, 4 * vis, rtol=1e-10, atol=1e-12)


def test_polarized_identity_beam_matches_scalar():
    station_uvw, freqs, flux, l, m, n = get_sim_params()

    vis = wrapper.simulate_vis(station_uvw, freqs, flux, l, m, n)
    pol = wrapper.simulate_vis(
        station_uvw, freqs, stokes_to_brightness(flux), l, m, n, polarized=True
    )
    np.testing.assert_allclose(pol[..., 0, 0], vis, rtol=1e-10, atol=1e-12)
    np.testing.assert_allclose(pol[..., 1, 1], vis, rtol=1e-10, atol=1e-12)
    np.testing.assert_allclose(pol[..., 0, 1], 0, atol=1e-12)


def test_uv_range_is_per_channel():
    # A 30 m baseline is 10 wavelengths long in the first channel and 20 in the second.
    station_uvw = np.array([[0.0, 0.0, 0.0], [30.0, 0.0, 0.0]])
    freqs = speed_of_light / np.array([3.0, 1.5])
    vis = wrapper.simulate_vis(
        station_uvw, freqs, np.array([1.0]), [0.0], [0.0], [1.0],
        uv_max_lambda=15.0,
    )
    np.testing.assert_allclose(vis[0, :, 0], [1.0, 0.0])


@pytest.mark.skipif(sys.platform == "darwin", reason="ray multiprocessing on macOS")
@pytest.mark.parametrize("shape", [(4, 1), (1, 4)])
def test_ray_matches_serial(shape):
    ntimes, nfreqs = shape
    station_uvw, freqs, flux, l, m, n = get_sim_params(ntimes=ntimes, nfreqs=nfreqs)

    serial = wrapper.simulate_vis(station_uvw, freqs, flux, l, m, n, nthreads=1)
    parallel = wrapper.simulate_vis(
        station_uvw, freqs, flux, l, m, n, nprocesses=2, nthreads=2
    )
    np.testing.assert_allclose(parallel, serial, rtol=1e-12)


class TestSimulateErrors:
    def test_bad_precision(self):
        station_uvw, freqs, flux, l, m, n = get_sim_params()
        with pytest.raises(ValueError, match="Invalid precision: 3"):
            wrapper.simulate_vis(station_uvw, freqs, flux, l, m, n, precision=3)

    def test_bad_station_uvw(self):
        station_uvw, freqs, flux, l, m, n = get_sim_params()
        with pytest.raises(InvalidArgumentError, match="station_uvw"):
            wrapper.simulate_vis(station_uvw[..., :2], freqs, flux, l, m, n)

    def test_bad_brightness(self):
        station_uvw, freqs, flux, l, m, n = get_sim_params()
        with pytest.raises(InvalidArgumentError, match="leading axis of 2 channels"):
            wrapper.simulate_vis(station_uvw, freqs, flux[:1].repeat(3, 0), l, m, n)

    def test_bad_jones_shape(self):
        station_uvw, freqs, flux, l, m, n = get_sim_params()
        with pytest.raises(InvalidArgumentError, match="leading shape"):
            wrapper.simulate_vis(
                station_uvw, freqs, flux, l, m, n, jones=np.ones((3, 2, 4, 8), complex)
            )

    def test_polarized_jones_mismatch(self):
        station_uvw, freqs, flux, l, m, n = get_sim_params()
        with pytest.raises(InvalidArgumentError, match="2x2 trailing axes"):
            wrapper.simulate_vis(
                station_uvw, freqs, flux, l, m, n,
                jones=np.ones((3, 2, 5, 8, 2, 2), complex),
            )
