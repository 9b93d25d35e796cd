"""Collapse of multicollinear predictor columns prior to network fitting."""

from cnanet.clustering.correlation_clusterer import (
    CorrelationClusterer,
    CorrelationClustering,
    representative_name,
    RANGE_DELIMITER,
    LIST_SEPARATOR,
)

__all__ = [
    'CorrelationClusterer',
    'CorrelationClustering',
    'representative_name',
    'RANGE_DELIMITER',
    'LIST_SEPARATOR',
]
