"""Functional enrichment: module over-representation and hub neighbourhood nulls."""

from cnanet.enrichment.functional_sets import (
    FunctionalSet,
    FunctionalSetUniverse,
    DEFAULT_MIN_SET_SIZE,
    DEFAULT_MAX_SET_SIZE,
)
from cnanet.enrichment.hypergeometric import (
    EnrichmentResult,
    EnrichmentTest,
    HypergeometricTest,
    apply_fdr_correction,
)
from cnanet.enrichment.module_enrichment import ModuleEnrichment, ModuleEnrichmentResult
from cnanet.enrichment.null_models import (
    RandomGraphGenerator,
    BipartiteSwapGenerator,
    ConfigurationModelGenerator,
)
from cnanet.enrichment.neighborhood import (
    NeighborhoodEnrichment,
    NeighborhoodResult,
    go_neighbor_proportion,
)
from cnanet.enrichment.engine import EnrichmentEngine, EnrichmentReport

__all__ = [
    # Functional sets
    'FunctionalSet',
    'FunctionalSetUniverse',
    'DEFAULT_MIN_SET_SIZE',
    'DEFAULT_MAX_SET_SIZE',
    # Tests
    'EnrichmentResult',
    'EnrichmentTest',
    'HypergeometricTest',
    'apply_fdr_correction',
    # Module enrichment
    'ModuleEnrichment',
    'ModuleEnrichmentResult',
    # Null models
    'RandomGraphGenerator',
    'BipartiteSwapGenerator',
    'ConfigurationModelGenerator',
    # Neighbourhoods
    'NeighborhoodEnrichment',
    'NeighborhoodResult',
    'go_neighbor_proportion',
    # Facade
    'EnrichmentEngine',
    'EnrichmentReport',
]
