"""CPU-specific implementations for corrvis."""

from .cpu_correlate import CPUCorrelationEngine
from .kernels import get_kernels
from .scheduler import ParallelScheduler
