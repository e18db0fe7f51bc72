"""Core functionality for corrvis."""

from .correlate import CorrelationEngine, InvalidArgumentError, validate_inputs
from .reference import correlate_reference
from .utils import baseline_index, baseline_pairs, baseline_uvw, num_baselines
