import numpy as np

from corrvis.core.jones import evaluate_jones_K, join_jones


def test_jones_K_phase():
    u = np.array([0.0, 2.0])
    v = np.array([0.0, 1.0])
    w = np.array([0.0, 0.5])
    l, m = np.array([0.1]), np.array([-0.2])
    n = np.sqrt(1 - l**2 - m**2)

    K = evaluate_jones_K(u, v, w, l, m, n, inv_wavelength=0.5)
    assert K.shape == (2, 1)
    assert K.dtype == np.complex128

    expected = np.exp(-1j * np.pi * (2.0 * 0.1 + 1.0 * -0.2 + 0.5 * (n[0] - 1)))
    np.testing.assert_allclose(K[0, 0], 1.0)
    np.testing.assert_allclose(K[1, 0], expected)


def test_jones_K_is_unit_modulus():
    rng = np.random.default_rng(2)
    u, v, w = rng.normal(size=(3, 6)) * 100
    l, m = rng.uniform(-0.1, 0.1, size=(2, 9))
    n = np.sqrt(1 - l**2 - m**2)

    K = evaluate_jones_K(u, v, w, l, m, n, 1 / 2.0, dtype=np.complex64)
    assert K.dtype == np.complex64
    np.testing.assert_allclose(np.abs(K), 1.0, rtol=1e-6)


def test_join_scalar():
    E = np.full((3, 4), 2.0 + 0j)
    K = np.full((3, 4), 1j)
    np.testing.assert_allclose(join_jones(E, K), 2j)
    assert join_jones(None, K) is K


def test_join_matrix():
    E = np.broadcast_to(np.array([[1, 2], [3, 4]], dtype=np.complex64), (2, 3, 2, 2))
    K = np.full((2, 3), -1j, dtype=np.complex64)
    joined = join_jones(E, K)
    assert joined.shape == (2, 3, 2, 2)
    assert joined.dtype == np.complex64
    np.testing.assert_allclose(joined[1, 2], -1j * np.array([[1, 2], [3, 4]]))
