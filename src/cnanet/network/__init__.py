"""Network construction and annotation: build, hubs, cis/trans, modules."""

from cnanet.network.builder import NetworkBuilder
from cnanet.network.hubs import BootstrapDegreeEnsemble, HubRanker, HubRanking, ordinal_ranks
from cnanet.network.cis_trans import CisTransClassifier, CisTransResult, DEFAULT_CIS_WINDOW
from cnanet.network.modules import (
    CommunityDetector,
    EdgeBetweennessDetector,
    GreedyModularityDetector,
    PrecomputedAssignment,
    ModuleDetector,
    ModuleResult,
    canonical_modules,
    DEFAULT_MIN_MODULE_SIZE,
)

__all__ = [
    # Construction
    'NetworkBuilder',
    # Hubs
    'BootstrapDegreeEnsemble',
    'HubRanker',
    'HubRanking',
    'ordinal_ranks',
    # Cis/trans
    'CisTransClassifier',
    'CisTransResult',
    'DEFAULT_CIS_WINDOW',
    # Modules
    'CommunityDetector',
    'EdgeBetweennessDetector',
    'GreedyModularityDetector',
    'PrecomputedAssignment',
    'ModuleDetector',
    'ModuleResult',
    'canonical_modules',
    'DEFAULT_MIN_MODULE_SIZE',
]
