"""
EnrichmentEngine: one entry point for both enrichment analyses.

    engine = EnrichmentEngine(fdr=0.05, n_trials=100, seed=7)
    report = engine.run(graph, modules, universe, hubs=top_hub_ids)
    report.modules.significant          # (module, term) pairs at FDR
    report.neighborhoods.empirical_p    # hub neighbourhood coherence
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence

from cnanet.core.graph import NetworkGraph
from cnanet.enrichment.functional_sets import FunctionalSetUniverse
from cnanet.enrichment.hypergeometric import EnrichmentTest
from cnanet.enrichment.module_enrichment import ModuleEnrichment, ModuleEnrichmentResult
from cnanet.enrichment.neighborhood import NeighborhoodEnrichment, NeighborhoodResult
from cnanet.enrichment.null_models import RandomGraphGenerator
from cnanet.network.modules import ModuleResult

logger = logging.getLogger(__name__)

__all__ = ['EnrichmentEngine', 'EnrichmentReport']


@dataclass
class EnrichmentReport:
    modules: Optional[ModuleEnrichmentResult] = None
    neighborhoods: Optional[NeighborhoodResult] = None


class EnrichmentEngine:
    """Configure once, then run module and/or neighbourhood enrichment."""

    def __init__(
        self,
        fdr: float = 0.05,
        test: Optional[EnrichmentTest] = None,
        generator: Optional[RandomGraphGenerator] = None,
        n_trials: int = 100,
        seed: Optional[int] = None,
        n_jobs: int = 1,
        checkpoint_path: Optional[str | os.PathLike] = None,
        checkpoint_every: int = 1,
        progress: bool = False,
    ):
        self.module_enrichment = ModuleEnrichment(test=test, fdr=fdr)
        self.neighborhood_enrichment = NeighborhoodEnrichment(
            generator=generator,
            n_trials=n_trials,
            seed=seed,
            n_jobs=n_jobs,
            checkpoint_path=checkpoint_path,
            checkpoint_every=checkpoint_every,
            progress=progress,
        )

    def modules(
        self,
        graph: NetworkGraph,
        modules: ModuleResult,
        universe: FunctionalSetUniverse,
        annotate: bool = True,
    ) -> ModuleEnrichmentResult:
        return self.module_enrichment.run(graph, modules, universe, annotate=annotate)

    def hub_neighborhoods(
        self,
        graph: NetworkGraph,
        universe: FunctionalSetUniverse,
        hubs: Optional[Sequence[str]] = None,
    ) -> NeighborhoodResult:
        return self.neighborhood_enrichment.run(graph, universe, hubs=hubs)

    def run(
        self,
        graph: NetworkGraph,
        modules: Optional[ModuleResult],
        universe: FunctionalSetUniverse,
        hubs: Optional[Sequence[str]] = None,
        annotate: bool = True,
    ) -> EnrichmentReport:
        """Run module enrichment (when modules are given) and hub neighbourhoods."""
        if len(universe) == 0:
            logger.warning("Functional universe is empty; enrichment results will be empty")
        report = EnrichmentReport()
        if modules is not None:
            report.modules = self.modules(graph, modules, universe, annotate=annotate)
        report.neighborhoods = self.hub_neighborhoods(graph, universe, hubs=hubs)
        return report
