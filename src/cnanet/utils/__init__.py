"""Utility modules: correlation, worker pools, seeds and atomic file IO."""

from cnanet.utils.correlation import (
    standardize_columns,
    compute_correlation_matrix_chunked,
    absolute_correlation_dissimilarity,
)
from cnanet.utils.fileio import (
    atomic_write_json,
    atomic_write_text,
    read_json,
)
from cnanet.utils.parallel import run_units, resolve_n_jobs
from cnanet.utils.seeding import resolve_seed, spawn_seeds

__all__ = [
    # Correlation
    'standardize_columns',
    'compute_correlation_matrix_chunked',
    'absolute_correlation_dissimilarity',
    # Atomic file writes
    'atomic_write_json',
    'atomic_write_text',
    'read_json',
    # Parallel dispatch
    'run_units',
    'resolve_n_jobs',
    # Seeds
    'resolve_seed',
    'spawn_seeds',
]
