"""Direct cross-correlation visibility simulator."""

# Import correlation functionality
from .core.correlate import CorrelationEngine, InvalidArgumentError
from .cpu.cpu_correlate import CPUCorrelationEngine
from .cpu.scheduler import ParallelScheduler
from .wrapper import create_correlation_engine, cross_correlate, simulate_vis

# Import input-building helpers
from .core.coordinates import radec_to_lmn, ecef_to_station_uvw, station_uvw_at
from .core.jones import evaluate_jones_K, join_jones
from .core.sky import stokes_to_brightness, gaussian_source_parameters

# Import utility modules
from . import utils, logutils

# Try to import GPU implementations if available
try:
    from .gpu.gpu_correlate import GPUCorrelationEngine
    _gpu_available = True
except ImportError:
    _gpu_available = False
    GPUCorrelationEngine = None

__all__ = [
    # Correlation exports
    "CorrelationEngine",
    "CPUCorrelationEngine",
    "InvalidArgumentError",
    "ParallelScheduler",
    "create_correlation_engine",
    "cross_correlate",
    "simulate_vis",
    # Input helpers
    "radec_to_lmn",
    "ecef_to_station_uvw",
    "station_uvw_at",
    "evaluate_jones_K",
    "join_jones",
    "stokes_to_brightness",
    "gaussian_source_parameters",
]

# Add GPU exports if available
if _gpu_available:
    __all__.append("GPUCorrelationEngine")
