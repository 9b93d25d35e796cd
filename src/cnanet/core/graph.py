"""
Attributed predictor/response network with a fixed node and edge schema.

The network is built once from fitted adjacency matrices and then annotated
in place by the hub ranker, the cis/trans classifier, the module detector
and the enrichment engine (in that order). After the last annotation it is
frozen and exported.

Schema:
    Node: id, level ('x' | 'y'), alias, interval (chromosome/start/end/strand),
          rank, mean_rank, sd_rank, module, n_cis, n_trans, n_potential_cis,
          cis_targets, functional_terms, plus free-form ``extra`` fields
    Edge: source, target, level ('x-y' | 'y-y'), weight (signed),
          cis_trans ('cis' | 'trans' | 'unknown')

Invariants:
    - Node ids are unique across both levels
    - Every edge endpoint is a node; no self-loops; no repeated pairs
    - x-y edges run from the predictor (source) to the response (target)

Interchange:
    ``to_node_link`` / ``from_node_link`` use networkx's node-link format,
    so the JSON written by :mod:`cnanet.io.writers` loads into any
    networkx-aware tool.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterable, Iterator, List, Optional

import networkx as nx
import pandas as pd

from cnanet.core.intervals import GenomicInterval
from cnanet.exceptions import DataIntegrityError, ValidationError

logger = logging.getLogger(__name__)

__all__ = [
    'NodeRecord',
    'EdgeRecord',
    'NetworkGraph',
    'EDGE_LEVELS',
    'CIS_TRANS_LABELS',
]

EDGE_LEVELS = ('x-y', 'y-y')
CIS_TRANS_LABELS = ('cis', 'trans', 'unknown')

_INTERVAL_KEYS = ('chromosome', 'start', 'end', 'strand')


@dataclass
class NodeRecord:
    """
    A network node.

    Fields after ``interval`` are annotations; they stay None (or empty)
    until the corresponding stage has run.
    """
    id: str
    level: str
    alias: Optional[str] = None
    interval: GenomicInterval = field(default_factory=GenomicInterval)
    rank: Optional[int] = None
    mean_rank: Optional[float] = None
    sd_rank: Optional[float] = None
    module: Optional[int] = None
    n_cis: Optional[int] = None
    n_trans: Optional[int] = None
    n_potential_cis: Optional[int] = None
    cis_targets: List[str] = field(default_factory=list)
    functional_terms: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.id = str(self.id)
        if self.level not in ('x', 'y'):
            raise ValidationError(f"Node {self.id!r}: level must be 'x' or 'y', got {self.level!r}")
        if self.alias is None:
            self.alias = self.id
        reserved = _node_field_names() | set(_INTERVAL_KEYS)
        clash = reserved.intersection(self.extra)
        if clash:
            raise ValidationError(f"Node {self.id!r}: extra fields shadow schema fields {sorted(clash)}")

    def to_attributes(self) -> Dict[str, Any]:
        """Flat attribute mapping (without the id)."""
        attrs = {
            'level': self.level,
            'alias': self.alias,
            **self.interval.to_dict(),
            'rank': self.rank,
            'mean_rank': self.mean_rank,
            'sd_rank': self.sd_rank,
            'module': self.module,
            'n_cis': self.n_cis,
            'n_trans': self.n_trans,
            'n_potential_cis': self.n_potential_cis,
            'cis_targets': list(self.cis_targets),
            'functional_terms': list(self.functional_terms),
        }
        attrs.update(self.extra)
        return attrs

    @classmethod
    def from_attributes(cls, node_id: str, attrs: Dict[str, Any]) -> NodeRecord:
        attrs = dict(attrs)
        interval = GenomicInterval.from_values(*(attrs.pop(k, None) for k in _INTERVAL_KEYS))
        known = {}
        for name in _node_field_names() - {'id', 'interval', 'extra'}:
            if name in attrs:
                known[name] = attrs.pop(name)
        known['cis_targets'] = list(known.get('cis_targets') or [])
        known['functional_terms'] = list(known.get('functional_terms') or [])
        return cls(id=node_id, interval=interval, extra=attrs, **known)


@dataclass
class EdgeRecord:
    """A network edge; weight keeps the sign of the fitted coefficient."""
    source: str
    target: str
    level: str
    weight: float
    cis_trans: str = 'unknown'

    def __post_init__(self):
        self.source = str(self.source)
        self.target = str(self.target)
        if self.level not in EDGE_LEVELS:
            raise ValidationError(f"Edge level must be one of {EDGE_LEVELS}, got {self.level!r}")
        if self.cis_trans not in CIS_TRANS_LABELS:
            raise ValidationError(f"cis_trans must be one of {CIS_TRANS_LABELS}, got {self.cis_trans!r}")
        if self.source == self.target:
            raise ValidationError(f"Self-loop on node {self.source!r}")
        self.weight = float(self.weight)

    @property
    def key(self) -> frozenset:
        return frozenset((self.source, self.target))


def _node_field_names() -> set:
    return {f.name for f in fields(NodeRecord)}


class NetworkGraph:
    """
    Attributed two-level network.

    Attributes:
        nodes: Ordered mapping id → NodeRecord (predictors first)
        edges: Ordered list of EdgeRecord (x-y row-major, then y-y)
        metadata: Graph-level annotations (seeds, modularity, parameters)
    """

    def __init__(
        self,
        nodes: Iterable[NodeRecord],
        edges: Iterable[EdgeRecord] = (),
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self._nodes: Dict[str, NodeRecord] = {}
        for node in nodes:
            if node.id in self._nodes:
                raise ValidationError(f"Duplicate node id {node.id!r}")
            self._nodes[node.id] = node

        self._edges: List[EdgeRecord] = []
        seen = set()
        for edge in edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in self._nodes:
                    raise DataIntegrityError(f"Edge endpoint {endpoint!r} is not a node")
            if edge.key in seen:
                raise ValidationError(f"Repeated edge {edge.source!r} - {edge.target!r}")
            endpoint_levels = (self._nodes[edge.source].level, self._nodes[edge.target].level)
            if edge.level == 'x-y' and endpoint_levels != ('x', 'y'):
                raise ValidationError(
                    f"x-y edge {edge.source!r} - {edge.target!r} must run predictor -> response"
                )
            if edge.level == 'y-y' and endpoint_levels != ('y', 'y'):
                raise ValidationError(f"y-y edge {edge.source!r} - {edge.target!r} joins non-response nodes")
            seen.add(edge.key)
            self._edges.append(edge)

        self.metadata: Dict[str, Any] = dict(metadata or {})
        self._frozen = False
        self._adjacency: Optional[Dict[str, List[int]]] = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> Dict[str, NodeRecord]:
        return self._nodes

    @property
    def edges(self) -> List[EdgeRecord]:
        return self._edges

    @property
    def frozen(self) -> bool:
        return self._frozen

    def number_of_nodes(self) -> int:
        return len(self._nodes)

    def number_of_edges(self) -> int:
        return len(self._edges)

    def node_ids(self, level: Optional[str] = None) -> List[str]:
        """Node ids in graph order, optionally restricted to one level."""
        return [nid for nid, n in self._nodes.items() if level is None or n.level == level]

    def edges_at_level(self, level: str) -> List[EdgeRecord]:
        return [e for e in self._edges if e.level == level]

    def _incidence(self) -> Dict[str, List[int]]:
        if self._adjacency is None:
            incidence: Dict[str, List[int]] = {nid: [] for nid in self._nodes}
            for i, edge in enumerate(self._edges):
                incidence[edge.source].append(i)
                incidence[edge.target].append(i)
            self._adjacency = incidence
        return self._adjacency

    def degree(self, edge_level: Optional[str] = None) -> Dict[str, int]:
        """Degree of every node, counting all edges or one edge level."""
        incidence = self._incidence()
        return {
            nid: sum(1 for i in idx if edge_level is None or self._edges[i].level == edge_level)
            for nid, idx in incidence.items()
        }

    def neighbors(self, node_id: str, level: Optional[str] = None) -> List[str]:
        """Neighbours of a node in edge order, optionally of one node level."""
        out = []
        for i in self._incidence()[node_id]:
            edge = self._edges[i]
            other = edge.target if edge.source == node_id else edge.source
            if level is None or self._nodes[other].level == level:
                out.append(other)
        return out

    def iter_edges(self, level: Optional[str] = None) -> Iterator[tuple[int, EdgeRecord]]:
        for i, edge in enumerate(self._edges):
            if level is None or edge.level == level:
                yield i, edge

    # ------------------------------------------------------------------
    # Annotation
    # ------------------------------------------------------------------

    def _check_mutable(self):
        if self._frozen:
            raise ValidationError("NetworkGraph is frozen; annotations are read-only after export")

    def annotate_node(self, node_id: str, **values) -> None:
        """Set schema fields on a node; unknown keys go to ``extra``."""
        self._check_mutable()
        node = self._nodes[node_id]
        schema = _node_field_names() - {'id', 'level', 'extra'}
        for key, value in values.items():
            if key in schema:
                setattr(node, key, value)
            else:
                node.extra[key] = value

    def annotate_edge(self, index: int, **values) -> None:
        self._check_mutable()
        self._edges[index] = replace(self._edges[index], **values)

    def freeze(self) -> NetworkGraph:
        """Mark the graph read-only; returns self for chaining."""
        self._frozen = True
        return self

    # ------------------------------------------------------------------
    # Tables and interchange
    # ------------------------------------------------------------------

    def node_table(self) -> pd.DataFrame:
        rows = [{'id': nid, **node.to_attributes()} for nid, node in self._nodes.items()]
        return pd.DataFrame(rows)

    def edge_table(self) -> pd.DataFrame:
        return pd.DataFrame([
            {
                'source': e.source,
                'target': e.target,
                'level': e.level,
                'weight': e.weight,
                'cis_trans': e.cis_trans,
            }
            for e in self._edges
        ], columns=['source', 'target', 'level', 'weight', 'cis_trans'])

    def to_networkx(self) -> nx.Graph:
        G = nx.Graph(**self.metadata)
        for nid, node in self._nodes.items():
            G.add_node(nid, **node.to_attributes())
        for edge in self._edges:
            G.add_edge(
                edge.source,
                edge.target,
                level=edge.level,
                weight=edge.weight,
                cis_trans=edge.cis_trans,
            )
        return G

    @classmethod
    def from_networkx(cls, G: nx.Graph) -> NetworkGraph:
        """
        Rebuild from a networkx graph produced by :meth:`to_networkx`.

        Edge orientation and order are canonicalised: x-y edges run from the
        predictor, and edges are sorted x-y before y-y, then by endpoint
        position in node order.
        """
        nodes = [NodeRecord.from_attributes(str(n), attrs) for n, attrs in G.nodes(data=True)]
        position = {node.id: i for i, node in enumerate(nodes)}
        levels = {node.id: node.level for node in nodes}

        edges = []
        for u, v, attrs in G.edges(data=True):
            u, v = str(u), str(v)
            if levels[u] == 'y' and levels[v] == 'x':
                u, v = v, u
            elif levels[u] == levels[v] and position[u] > position[v]:
                u, v = v, u
            edges.append(EdgeRecord(
                source=u,
                target=v,
                level=attrs.get('level', 'x-y' if levels[u] != levels[v] else 'y-y'),
                weight=attrs.get('weight', 1.0),
                cis_trans=attrs.get('cis_trans', 'unknown'),
            ))
        edges.sort(key=lambda e: (EDGE_LEVELS.index(e.level), position[e.source], position[e.target]))
        return cls(nodes, edges, metadata=dict(G.graph))

    def to_node_link(self) -> Dict[str, Any]:
        """Node-link dictionary (JSON-serialisable)."""
        return nx.node_link_data(self.to_networkx(), edges='edges')

    @classmethod
    def from_node_link(cls, data: Dict[str, Any]) -> NetworkGraph:
        return cls.from_networkx(nx.node_link_graph(data, edges='edges'))

    def __repr__(self) -> str:
        return (
            f"NetworkGraph(predictors={len(self.node_ids('x'))}, responses={len(self.node_ids('y'))}, "
            f"x-y edges={len(self.edges_at_level('x-y'))}, y-y edges={len(self.edges_at_level('y-y'))})"
        )
