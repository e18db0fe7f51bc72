"""Global configuration for pytest in corrvis tests."""

import numpy as np
import pytest


# Check GPU availability once at the start of the test session
def check_gpu_available():
    """Check if GPU implementation can be used."""
    try:
        import cupy as cp
        return cp.cuda.is_available()
    except ImportError:
        return False


# Store GPU availability as a session-scoped variable
GPU_AVAILABLE = check_gpu_available()

# Create a marker for GPU tests
gpu_test = pytest.mark.skipif(
    not GPU_AVAILABLE,
    reason="GPU not available (cupy not installed or no CUDA device)"
)


def make_inputs(
    nstations=6,
    nsources=20,
    polarized=False,
    precision=2,
    seed=42,
    array_size=50.0,
    field_size=0.1,
):
    """Random but well-formed inputs for a single correlation pass."""
    rng = np.random.default_rng(seed)
    real_dtype = np.float32 if precision == 1 else np.float64
    complex_dtype = np.complex64 if precision == 1 else np.complex128

    u, v = rng.uniform(-array_size, array_size, size=(2, nstations))
    w = rng.uniform(-1, 1, size=nstations)

    l, m = rng.uniform(-field_size, field_size, size=(2, nsources))
    n = np.sqrt(1 - l**2 - m**2)

    shape = (nstations, nsources, 2, 2) if polarized else (nstations, nsources)
    jones = rng.normal(size=shape) + 1j * rng.normal(size=shape)

    if polarized:
        stokes = rng.uniform(0, 1, size=(4, nsources))
        stokes[0] += 2
        brightness = np.zeros((nsources, 2, 2), dtype=complex)
        brightness[:, 0, 0] = stokes[0] + stokes[1]
        brightness[:, 0, 1] = stokes[2] + 1j * stokes[3]
        brightness[:, 1, 0] = stokes[2] - 1j * stokes[3]
        brightness[:, 1, 1] = stokes[0] - stokes[1]
    else:
        brightness = rng.uniform(0.5, 5.0, size=nsources).astype(real_dtype)

    return dict(
        jones=jones.astype(complex_dtype),
        brightness=brightness,
        l=l.astype(real_dtype),
        m=m.astype(real_dtype),
        n=n.astype(real_dtype),
        u=u.astype(real_dtype),
        v=v.astype(real_dtype),
        w=w.astype(real_dtype),
    )


@pytest.fixture
def scalar_inputs():
    return make_inputs()


@pytest.fixture
def polarized_inputs():
    return make_inputs(polarized=True)
