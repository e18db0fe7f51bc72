"""
corrvis utility functions.

This module provides access to common utility functions used throughout
corrvis, and picks the default backend for the current machine.
"""

import logging

from .core.utils import (
    speed_of_light,
    num_baselines,
    baseline_index,
    baseline_pairs,
    baseline_uvw,
    get_task_chunks,
)

# Cache the GPU availability to avoid repeated checks
_cached_use_gpu = None


def _use_gpu():
    """Check if GPU implementation should be used."""
    global _cached_use_gpu
    if _cached_use_gpu is not None:
        return _cached_use_gpu

    try:
        import cupy as cp

        # Check if a CUDA device is actually available
        _cached_use_gpu = bool(cp.cuda.is_available())
        if not _cached_use_gpu:
            logging.warning("CuPy installed but no CUDA device found. Using CPU backend.")
        return _cached_use_gpu
    except ImportError:
        _cached_use_gpu = False
        return False


def default_backend() -> str:
    """Return "gpu" when a usable CUDA device is present, else "cpu"."""
    return "gpu" if _use_gpu() else "cpu"


__all__ = [
    "speed_of_light",
    "num_baselines",
    "baseline_index",
    "baseline_pairs",
    "baseline_uvw",
    "get_task_chunks",
    "default_backend",
]
