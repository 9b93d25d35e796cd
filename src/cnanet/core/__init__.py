"""Core data structures: feature matrices, genomic intervals and the attributed network."""

from cnanet.core.feature_matrix import FeatureMatrix, LEVELS
from cnanet.core.intervals import GenomicInterval, GenomicIntervalIndex, normalize_chromosome
from cnanet.core.graph import (
    NodeRecord,
    EdgeRecord,
    NetworkGraph,
    EDGE_LEVELS,
    CIS_TRANS_LABELS,
)

__all__ = [
    'FeatureMatrix',
    'LEVELS',
    'GenomicInterval',
    'GenomicIntervalIndex',
    'normalize_chromosome',
    'NodeRecord',
    'EdgeRecord',
    'NetworkGraph',
    'EDGE_LEVELS',
    'CIS_TRANS_LABELS',
]
