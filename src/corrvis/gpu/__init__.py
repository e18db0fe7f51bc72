"""GPU-specific implementations for corrvis."""

from .gpu_correlate import GPUCorrelationEngine
