"""
Module (community) detection on the predictor/response network.

Detection runs on the full two-level network, ignoring edge weights and
signs. The partitioning algorithm is pluggable:

    CommunityDetector (ABC)
    ├── EdgeBetweennessDetector   Girvan–Newman divisive clustering, cut at
    │                             the partition of maximum modularity
    ├── GreedyModularityDetector  Clauset–Newman–Moore agglomeration
    └── PrecomputedAssignment     externally supplied node → module map

Module numbering is canonical regardless of detector: modules are numbered
1..k by decreasing size, ties by smallest member id. Only modules of at
least ``min_module_size`` nodes are reported downstream; every node still
receives its module id.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

import networkx as nx
import numpy as np
import pandas as pd

from cnanet.core.graph import EdgeRecord, NetworkGraph
from cnanet.exceptions import ValidationError

logger = logging.getLogger(__name__)

__all__ = [
    'CommunityDetector',
    'EdgeBetweennessDetector',
    'GreedyModularityDetector',
    'PrecomputedAssignment',
    'ModuleDetector',
    'ModuleResult',
    'DEFAULT_MIN_MODULE_SIZE',
]

DEFAULT_MIN_MODULE_SIZE = 15


# =============================================================================
# Detectors
# =============================================================================

class CommunityDetector(ABC):
    """Partition the nodes of an undirected graph into disjoint communities."""

    name: str = 'community'

    @abstractmethod
    def detect(self, G: nx.Graph) -> List[Set[str]]:
        """Return a partition of ``G``'s nodes (every node exactly once)."""
        pass

    def modularity(self, G: nx.Graph, partition: List[Set[str]]) -> Optional[float]:
        """Unweighted modularity, or None for a graph without edges."""
        if G.number_of_edges() == 0:
            return None
        return float(nx.community.modularity(G, partition, weight=None))


def _most_central_edge(G: nx.Graph):
    """Highest edge betweenness; ties go to the lexicographically smallest edge."""
    centrality = nx.edge_betweenness_centrality(G, weight=None)
    best = max(centrality.values())
    tied = [tuple(sorted(edge)) for edge, value in centrality.items() if np.isclose(value, best)]
    return min(tied)


class EdgeBetweennessDetector(CommunityDetector):
    """
    Girvan–Newman: repeatedly remove the highest-betweenness edge and keep
    the partition (including the initial connected components) with the
    highest modularity. Ties in modularity keep the coarser partition.

    Attributes:
        max_splits: Stop after this many partition refinements (None = until
            every edge is gone). Large networks rarely need the full
            sequence because modularity peaks early.
        trace: Modularity of every partition visited by the last ``detect``
            call, starting with the initial connected components
    """

    name = 'edge_betweenness'

    def __init__(self, max_splits: Optional[int] = None):
        self.max_splits = max_splits
        self.trace: List[float] = []

    def detect(self, G: nx.Graph) -> List[Set[str]]:
        self.trace = []
        if G.number_of_edges() == 0:
            return [{n} for n in G.nodes]

        best = [set(c) for c in nx.connected_components(G)]
        best_q = self.modularity(G, best)
        self.trace.append(best_q)
        logger.debug(f"Girvan-Newman start: {len(best)} components, Q={best_q:.4f}")

        for step, partition in enumerate(
            nx.community.girvan_newman(G, most_valuable_edge=_most_central_edge), start=1
        ):
            partition = [set(c) for c in partition]
            q = self.modularity(G, partition)
            self.trace.append(q)
            if q > best_q + 1e-12:
                best, best_q = partition, q
            if self.max_splits is not None and step >= self.max_splits:
                break

        logger.debug(f"Girvan-Newman cut: {len(best)} communities, Q={best_q:.4f}")
        return best


class GreedyModularityDetector(CommunityDetector):
    """Clauset–Newman–Moore greedy modularity maximisation."""

    name = 'greedy_modularity'

    def detect(self, G: nx.Graph) -> List[Set[str]]:
        if G.number_of_edges() == 0:
            return [{n} for n in G.nodes]
        return [set(c) for c in nx.community.greedy_modularity_communities(G, weight=None)]


class PrecomputedAssignment(CommunityDetector):
    """
    Use an externally computed node → module label map.

    Labels may be any hashable; they are renumbered canonically by
    ModuleDetector.
    """

    name = 'precomputed'

    def __init__(self, assignment: Mapping[str, Any]):
        self.assignment = {str(k): v for k, v in assignment.items()}

    def detect(self, G: nx.Graph) -> List[Set[str]]:
        missing = [n for n in G.nodes if n not in self.assignment]
        if missing:
            raise ValidationError(
                f"Module assignment misses {len(missing)} nodes, e.g. {sorted(missing)[:5]}"
            )
        extra = set(self.assignment) - set(G.nodes)
        if extra:
            logger.warning(f"Module assignment names {len(extra)} ids absent from the network; ignored")

        groups: Dict[Any, Set[str]] = {}
        for node in G.nodes:
            groups.setdefault(self.assignment[node], set()).add(node)
        return list(groups.values())


# =============================================================================
# Orchestration
# =============================================================================

@dataclass
class ModuleResult:
    """
    Attributes:
        assignment: Node id → module id (every node)
        modules: Module id → sorted member ids (all modules)
        min_module_size: Size threshold for reporting
        modularity: Modularity of the partition (None without edges)
        cross_module_edges: Edges whose endpoints sit in different modules
        method: Detector name
        modularity_trace: Modularity of each partition the detector visited,
            in order (empty for detectors that visit a single partition)
    """
    assignment: Dict[str, int] = field(default_factory=dict)
    modules: Dict[int, List[str]] = field(default_factory=dict)
    min_module_size: int = DEFAULT_MIN_MODULE_SIZE
    modularity: Optional[float] = None
    cross_module_edges: List[EdgeRecord] = field(default_factory=list)
    method: str = ''
    modularity_trace: List[float] = field(default_factory=list)

    @classmethod
    def from_graph(cls, graph: NetworkGraph, min_module_size: int = DEFAULT_MIN_MODULE_SIZE) -> ModuleResult:
        """Rebuild from the ``module`` annotations of a previously annotated graph."""
        unassigned = [nid for nid, node in graph.nodes.items() if node.module is None]
        if unassigned:
            raise ValidationError(
                f"{len(unassigned)} nodes carry no module annotation, e.g. {unassigned[:5]}"
            )
        assignment = {nid: int(node.module) for nid, node in graph.nodes.items()}
        modules: Dict[int, List[str]] = {}
        for nid, m in assignment.items():
            modules.setdefault(m, []).append(nid)
        return cls(
            assignment=assignment,
            modules={m: sorted(modules[m]) for m in sorted(modules)},
            min_module_size=min_module_size,
            modularity=graph.metadata.get('modularity'),
            cross_module_edges=[e for e in graph.edges if assignment[e.source] != assignment[e.target]],
            method=graph.metadata.get('module_method', ''),
            modularity_trace=list(graph.metadata.get('modularity_trace', [])),
        )

    @property
    def qualifying(self) -> Dict[int, List[str]]:
        """Modules with at least ``min_module_size`` members."""
        return {m: ids for m, ids in self.modules.items() if len(ids) >= self.min_module_size}

    def records(self, graph: Optional[NetworkGraph] = None) -> List[Dict[str, Any]]:
        """One summary dict per module."""
        internal: Dict[int, int] = {m: 0 for m in self.modules}
        rows = []
        if graph is not None:
            for edge in graph.edges:
                m = self.assignment.get(edge.source)
                if m is not None and m == self.assignment.get(edge.target):
                    internal[m] += 1
        for m, ids in self.modules.items():
            row = {
                'module': m,
                'size': len(ids),
                'qualifies': len(ids) >= self.min_module_size,
            }
            if graph is not None:
                row['n_predictors'] = sum(1 for i in ids if graph.nodes[i].level == 'x')
                row['n_responses'] = sum(1 for i in ids if graph.nodes[i].level == 'y')
                row['n_internal_edges'] = internal[m]
            rows.append(row)
        return rows

    def cross_module_table(self) -> pd.DataFrame:
        return pd.DataFrame([
            {
                'source': e.source,
                'target': e.target,
                'level': e.level,
                'weight': e.weight,
                'source_module': self.assignment[e.source],
                'target_module': self.assignment[e.target],
            }
            for e in self.cross_module_edges
        ], columns=['source', 'target', 'level', 'weight', 'source_module', 'target_module'])


def canonical_modules(partition: Iterable[Set[str]]) -> Dict[int, List[str]]:
    """Number communities 1..k by size descending, then smallest member id."""
    groups = [sorted(c) for c in partition if c]
    groups.sort(key=lambda members: (-len(members), members[0]))
    return {i + 1: members for i, members in enumerate(groups)}


class ModuleDetector:
    """
    Detect modules on a NetworkGraph and annotate nodes with their module.

    Attributes:
        detector: CommunityDetector (EdgeBetweennessDetector by default)
        min_module_size: Smallest module size reported (default 15)
    """

    def __init__(
        self,
        detector: Optional[CommunityDetector] = None,
        min_module_size: int = DEFAULT_MIN_MODULE_SIZE,
    ):
        if min_module_size < 1:
            raise ValidationError(f"min_module_size must be >= 1, got {min_module_size}")
        self.detector = detector if detector is not None else EdgeBetweennessDetector()
        self.min_module_size = min_module_size

    def detect(self, graph: NetworkGraph, annotate: bool = True) -> ModuleResult:
        G = nx.Graph()
        G.add_nodes_from(graph.node_ids())
        G.add_edges_from((e.source, e.target) for e in graph.edges)

        if G.number_of_nodes() == 0:
            return ModuleResult(min_module_size=self.min_module_size, method=self.detector.name)

        partition = self.detector.detect(G)
        covered = [n for c in partition for n in c]
        if len(covered) != len(set(covered)) or set(covered) != set(G.nodes):
            raise ValidationError(f"{self.detector.name} did not return a partition of the nodes")

        modules = canonical_modules(partition)
        assignment = {n: m for m, ids in modules.items() for n in ids}
        result = ModuleResult(
            assignment=assignment,
            modules=modules,
            min_module_size=self.min_module_size,
            modularity=self.detector.modularity(G, [set(ids) for ids in modules.values()]),
            cross_module_edges=[e for e in graph.edges if assignment[e.source] != assignment[e.target]],
            method=self.detector.name,
            modularity_trace=list(getattr(self.detector, 'trace', [])),
        )

        if annotate:
            for node_id, module in assignment.items():
                graph.annotate_node(node_id, module=module)
            graph.metadata['modularity'] = result.modularity
            graph.metadata['module_method'] = result.method
            graph.metadata['modularity_trace'] = result.modularity_trace

        q = 'n/a' if result.modularity is None else f"{result.modularity:.4f}"
        logger.info(
            f"Modules ({result.method}): {len(modules)} total, {len(result.qualifying)} with "
            f">= {self.min_module_size} nodes, Q={q}, {len(result.cross_module_edges)} cross-module edges"
        )
        return result
