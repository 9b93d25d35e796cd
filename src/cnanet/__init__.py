"""
cnanet - Copy-number regulatory network analysis

Post-processing for fitted copy-number (predictor) to abundance (response)
networks: collapses multicollinear genomic intervals, builds an attributed
network, ranks hubs by bootstrap stability, labels cis/trans regulation,
detects modules and tests them for functional over-representation.
"""

__version__ = "0.1.0"

from cnanet.core.feature_matrix import FeatureMatrix
from cnanet.core.intervals import GenomicInterval, GenomicIntervalIndex
from cnanet.core.graph import NetworkGraph, NodeRecord, EdgeRecord
from cnanet.exceptions import ValidationError, DataIntegrityError, StatisticalWarning

__all__ = [
    "FeatureMatrix",
    "GenomicInterval",
    "GenomicIntervalIndex",
    "NetworkGraph",
    "NodeRecord",
    "EdgeRecord",
    "ValidationError",
    "DataIntegrityError",
    "StatisticalWarning",
]
