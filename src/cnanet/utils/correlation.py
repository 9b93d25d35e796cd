"""
Chunked Pearson correlation between feature columns.

Copy-number panels routinely carry tens of thousands of segments, so the
feature × feature correlation matrix is computed in column blocks: columns
are standardised once, and each block is a single matrix product against
all standardised columns. Blocks are independent and can be dispatched to a
worker pool; the caller stitches them into the full matrix.

Constant columns have no defined correlation; they are given correlation 0
with every other column and 1 with themselves.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from cnanet.exceptions import ValidationError
from cnanet.utils.parallel import run_units

logger = logging.getLogger(__name__)

__all__ = [
    'standardize_columns',
    'compute_correlation_matrix_chunked',
    'absolute_correlation_dissimilarity',
]


def standardize_columns(data: np.ndarray) -> np.ndarray:
    """Z-score each column (population sd); constant columns become zeros."""
    mean = data.mean(axis=0, keepdims=True)
    std = data.std(axis=0, keepdims=True)
    constant = std == 0
    std[constant] = 1.0
    z = (data - mean) / std
    z[:, constant.ravel()] = 0.0
    return z


def _correlation_block(unit: tuple) -> np.ndarray:
    """One column block: corr(block, all) = Z_block^T Z / n."""
    z_all, start, end = unit
    return (z_all[:, start:end].T @ z_all) / z_all.shape[0]


def compute_correlation_matrix_chunked(
    data: np.ndarray,
    chunk_size: int = 500,
    n_jobs: Optional[int] = 1,
) -> np.ndarray:
    """
    Pearson correlation between the columns of a samples × features matrix.

    Args:
        data: Samples × features matrix, all values finite
        chunk_size: Columns per unit of work
        n_jobs: Worker count for block dispatch

    Returns:
        features × features correlation matrix (float64, clipped to [-1, 1])

    Raises:
        ValidationError: On non-finite values or fewer than 2 samples
    """
    data = np.asarray(data, dtype=np.float64)
    n_samples, n_features = data.shape

    if n_features == 0:
        return np.zeros((0, 0))
    if n_samples < 2:
        raise ValidationError(f"Correlation needs at least 2 samples, got {n_samples}")
    if not np.all(np.isfinite(data)):
        raise ValidationError("Feature matrix contains NaN or infinite values")

    z = standardize_columns(data)
    bounds = [(s, min(s + chunk_size, n_features)) for s in range(0, n_features, chunk_size)]
    logger.debug(f"Correlation: {n_features} features, {len(bounds)} blocks of <= {chunk_size}")

    blocks = run_units(_correlation_block, [(z, s, e) for s, e in bounds], n_jobs=n_jobs)

    corr = np.empty((n_features, n_features), dtype=np.float64)
    for (start, end), block in zip(bounds, blocks):
        corr[start:end, :] = block

    np.clip(corr, -1.0, 1.0, out=corr)
    np.fill_diagonal(corr, 1.0)
    return corr


def absolute_correlation_dissimilarity(corr: np.ndarray, decimals: int = 12) -> np.ndarray:
    """
    Dissimilarity 1 - |r|, symmetrised and rounded.

    Rounding removes floating-point residue so that perfectly correlated
    columns sit at distance exactly 0.
    """
    dissim = 1.0 - np.abs(corr)
    dissim = np.round((dissim + dissim.T) / 2.0, decimals)
    np.clip(dissim, 0.0, 1.0, out=dissim)
    np.fill_diagonal(dissim, 0.0)
    return dissim
