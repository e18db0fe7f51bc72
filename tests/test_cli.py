import numpy as np
from typer.testing import CliRunner

from corrvis import cli

runner = CliRunner()


def test_get_label():
    assert cli.get_label(nstations=4, pol=False) == "nstations4_polFalse"


def test_standard_sim_params():
    station_uvw, freqs, flux, l, m, n = cli.get_standard_sim_params(
        nstations=6, nsources=10, nfreq=3, ntimes=2, freq_min=100e6
    )
    assert station_uvw.shape == (2, 6, 3)
    assert freqs.shape == (3,)
    assert flux.shape == (3, 10)
    np.testing.assert_allclose(l**2 + m**2 + n**2, 1.0)


def test_run_profile(tmp_path):
    result = runner.invoke(
        cli.app,
        [
            "--nstations", "4",
            "--nsource", "5",
            "--nfreq", "2",
            "--ntimes", "2",
            "--nthreads", "1",
            "--outdir", str(tmp_path),
            "--log-level", "WARNING",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "TOTAL TIME" in result.output
    assert len(list(tmp_path.glob("*.prof"))) == 1


def test_run_profile_polarized_single_precision(tmp_path):
    result = runner.invoke(
        cli.app,
        [
            "--nstations", "3",
            "--nsource", "4",
            "--polarized",
            "--no-double-precision",
            "--compensated", "yes",
            "--nthreads", "2",
            "--outdir", str(tmp_path),
        ],
    )
    assert result.exit_code == 0, result.output
    assert (tmp_path / "nstations3_nsource4_nfreq1_ntimes1_doubleFalse_polTrue_backendcpu.prof").exists()
