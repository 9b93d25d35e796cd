"""
Pipeline stages as explicit functions over immutable artifacts.

    FeatureMatrix (x) ──cluster_predictors──> CorrelationClustering
    (A_xy, A_yy, attribute tables, clustering) ──build_network──> NetworkGraph
    NetworkGraph ──annotate_network──> hubs, cis/trans, modules (graph annotated)
    NetworkGraph + universe ──run_enrichment──> EnrichmentReport

Every stage takes its inputs as arguments and returns new objects; nothing
is shared through module-level state. Stages annotate the graph in place
on the main thread; the final stage freezes it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from cnanet.cli.config import PipelineConfig
from cnanet.clustering.correlation_clusterer import CorrelationClusterer, CorrelationClustering
from cnanet.core.feature_matrix import FeatureMatrix
from cnanet.core.graph import NetworkGraph
from cnanet.enrichment.engine import EnrichmentEngine, EnrichmentReport
from cnanet.enrichment.functional_sets import FunctionalSetUniverse
from cnanet.enrichment.null_models import BipartiteSwapGenerator, ConfigurationModelGenerator
from cnanet.exceptions import ValidationError
from cnanet.network.builder import AdjacencyLike, NetworkBuilder
from cnanet.network.cis_trans import CisTransClassifier, CisTransResult
from cnanet.network.hubs import BootstrapDegreeEnsemble, HubRanker, HubRanking
from cnanet.network.modules import (
    CommunityDetector,
    EdgeBetweennessDetector,
    GreedyModularityDetector,
    ModuleDetector,
    ModuleResult,
    PrecomputedAssignment,
)

logger = logging.getLogger(__name__)

__all__ = [
    'cluster_predictors',
    'build_network',
    'annotate_network',
    'run_enrichment',
    'make_detector',
    'make_generator',
    'NetworkAnnotation',
]

NULL_MODELS = {
    'bipartite_swap': BipartiteSwapGenerator,
    'configuration_model': ConfigurationModelGenerator,
}


def cluster_predictors(
    matrix: FeatureMatrix,
    config: Optional[PipelineConfig] = None,
) -> CorrelationClustering:
    """Collapse multicollinear predictor columns."""
    config = config or PipelineConfig()
    clusterer = CorrelationClusterer(
        eps=config.clustering.eps,
        min_pts=config.clustering.min_pts,
        check_overlap=config.clustering.check_overlap,
        chunk_size=config.clustering.chunk_size,
        n_jobs=config.parallel.n_jobs,
    )
    return clusterer.fit(matrix)


def build_network(
    A_xy: AdjacencyLike,
    A_yy: Optional[AdjacencyLike],
    predictors: pd.DataFrame,
    responses: pd.DataFrame,
    clustering: Optional[CorrelationClustering] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> NetworkGraph:
    """
    Build the network, first merging clustered predictors when a
    clustering is given (A_xy must then be a labelled DataFrame whose rows
    are the clustered feature ids).
    """
    if clustering is not None:
        if not isinstance(A_xy, pd.DataFrame):
            raise ValidationError("Collapsing predictors requires A_xy as a labelled DataFrame")
        A_xy = clustering.collapse_adjacency(A_xy)
        predictors = clustering.collapse_attributes(predictors)
        metadata = {
            **(metadata or {}),
            'clustering_eps': clustering.eps,
            'clustering_min_pts': clustering.min_pts,
        }
    return NetworkBuilder().build(A_xy, A_yy, predictors, responses, metadata=metadata)


def make_detector(
    method: str,
    max_splits: Optional[int] = None,
    assignment: Optional[Dict[str, Any]] = None,
) -> CommunityDetector:
    if assignment is not None:
        return PrecomputedAssignment(assignment)
    if method == 'edge_betweenness':
        return EdgeBetweennessDetector(max_splits=max_splits)
    if method == 'greedy_modularity':
        return GreedyModularityDetector()
    raise ValidationError(f"Unknown module detection method {method!r}")


def make_generator(name: str):
    if name not in NULL_MODELS:
        raise ValidationError(f"Unknown null model {name!r}; choose from {sorted(NULL_MODELS)}")
    return NULL_MODELS[name]()


@dataclass
class NetworkAnnotation:
    hubs: HubRanking
    cis_trans: CisTransResult
    modules: ModuleResult


def annotate_network(
    graph: NetworkGraph,
    config: Optional[PipelineConfig] = None,
    ensemble: Optional[BootstrapDegreeEnsemble] = None,
    module_assignment: Optional[Dict[str, Any]] = None,
) -> NetworkAnnotation:
    """Rank hubs, classify cis/trans edges and detect modules, annotating ``graph``."""
    config = config or PipelineConfig()
    level = ensemble.level if ensemble is not None else 'x'
    hubs = HubRanker(level=level).rank(graph, ensemble)
    cis_trans = CisTransClassifier(config.cis_trans.cis_window).classify(graph)
    detector = make_detector(config.modules.method, config.modules.max_splits, module_assignment)
    modules = ModuleDetector(detector, min_module_size=config.modules.min_module_size).detect(graph)
    graph.metadata['cis_window'] = config.cis_trans.cis_window
    return NetworkAnnotation(hubs=hubs, cis_trans=cis_trans, modules=modules)


def run_enrichment(
    graph: NetworkGraph,
    universe: FunctionalSetUniverse,
    config: Optional[PipelineConfig] = None,
    modules: Optional[ModuleResult] = None,
    hubs: Optional[Sequence[str]] = None,
    checkpoint_path: Optional[str | os.PathLike] = None,
    progress: bool = False,
) -> EnrichmentReport:
    """
    Module enrichment plus hub neighbourhood null model; freezes ``graph``.

    ``modules`` defaults to the module annotations already on the graph.
    ``hubs`` defaults to the top ``top_hubs`` predictors by rank when
    configured, otherwise every predictor.
    """
    config = config or PipelineConfig()
    enr = config.enrichment
    if modules is None:
        modules = ModuleResult.from_graph(graph, min_module_size=config.modules.min_module_size)
    if hubs is None and enr.top_hubs is not None:
        ranked = sorted(
            (n for n in graph.nodes.values() if n.level == 'x' and n.rank is not None),
            key=lambda n: n.rank,
        )
        hubs = [n.id for n in ranked[:enr.top_hubs]]

    engine = EnrichmentEngine(
        fdr=enr.fdr,
        generator=make_generator(enr.null_model),
        n_trials=enr.n_trials,
        seed=enr.seed,
        n_jobs=config.parallel.n_jobs,
        checkpoint_path=checkpoint_path,
        checkpoint_every=enr.checkpoint_every,
        progress=progress,
    )
    report = engine.run(graph, modules, universe, hubs=hubs)

    if report.neighborhoods is not None and report.neighborhoods.seed is not None:
        graph.metadata['null_model_seed'] = report.neighborhoods.seed
    graph.freeze()
    return report
