"""
Hub ranking by degree, stabilised over bootstrap replicates.

A single fitted network gives one degree per node, but degree is noisy: a
node that tops the list in the final fit may be mid-table in most
resampled fits. When an ensemble of replicate degrees is available, nodes
are ranked inside every replicate and ordered by how consistently they
rank high.

Ranking rules:
    - Within one network: degree descending, ties by ascending id. Ranks
      are ordinal (1, 2, 3, ...), never shared.
    - Across replicates: mean rank ascending, then rank standard deviation
      ascending, then id. A node missing from a replicate has degree 0
      there.
    - ``sd_rank`` uses the sample standard deviation (ddof=1); with a
      single replicate it is 0.

Examples:
    >>> ensemble = BootstrapDegreeEnsemble.from_table(degree_table)
    >>> ranking = HubRanker(level='x').rank(graph, ensemble)
    >>> ranking.top(10)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import sparse

from cnanet.core.graph import NetworkGraph
from cnanet.exceptions import ValidationError
from cnanet.utils.parallel import run_units

logger = logging.getLogger(__name__)

__all__ = [
    'BootstrapDegreeEnsemble',
    'HubRanker',
    'HubRanking',
    'ordinal_ranks',
]


def ordinal_ranks(ids: Sequence[str], degrees: np.ndarray) -> np.ndarray:
    """
    1-based ordinal ranks: higher degree first, ties by ascending id.

    Returns ranks aligned with ``ids`` (not sorted).
    """
    ids = list(ids)
    degrees = np.asarray(degrees, dtype=np.float64)
    id_position = np.argsort(np.argsort(np.array(ids, dtype=object)))
    order = np.lexsort((id_position, -degrees))
    ranks = np.empty(len(ids), dtype=np.int64)
    ranks[order] = np.arange(1, len(ids) + 1)
    return ranks


def _nonzero_count(values: Any, axis: int) -> np.ndarray:
    if sparse.issparse(values):
        matrix = sparse.csr_matrix(values, copy=True)
        matrix.eliminate_zeros()
        return np.asarray(matrix.getnnz(axis=axis), dtype=np.int64)
    return np.count_nonzero(np.asarray(values, dtype=np.float64), axis=axis)


def _replicate_degrees(unit: Tuple[Any, Any, str]) -> np.ndarray:
    """Degree vector of one replicate (worker-pool unit)."""
    A_xy, A_yy, level = unit
    if level == 'x':
        return _nonzero_count(A_xy, axis=1)
    degree = _nonzero_count(A_xy, axis=0)
    if A_yy is not None:
        diagonal = A_yy.diagonal() if sparse.issparse(A_yy) else np.diagonal(np.asarray(A_yy, dtype=np.float64))
        degree = degree + _nonzero_count(A_yy, axis=1) - (np.asarray(diagonal) != 0)
    return degree


class BootstrapDegreeEnsemble:
    """
    Per-node degrees across independently fitted replicate networks.

    Attributes:
        degrees: DataFrame indexed by node id, one column per replicate
        level: Node level the degrees refer to ('x' or 'y')
    """

    def __init__(self, degrees: pd.DataFrame, level: str = 'x'):
        if level not in ('x', 'y'):
            raise ValidationError(f"level must be 'x' or 'y', got {level!r}")
        degrees = degrees.copy()
        degrees.index = degrees.index.astype(str)
        if degrees.index.has_duplicates:
            raise ValidationError("Degree ensemble has duplicate node ids")
        values = degrees.to_numpy(dtype=np.float64) if degrees.size else np.zeros(degrees.shape)
        if np.any(np.isnan(values)) or np.any(values < 0):
            raise ValidationError("Degree ensemble must hold non-negative, non-missing degrees")
        if np.any(values != np.round(values)):
            raise ValidationError("Degree ensemble must hold integer degrees")
        self.degrees = degrees.astype(np.int64)
        self.level = level

    @property
    def n_replicates(self) -> int:
        return self.degrees.shape[1]

    @property
    def node_ids(self) -> List[str]:
        return self.degrees.index.tolist()

    @classmethod
    def from_table(cls, table: pd.DataFrame, level: str = 'x') -> BootstrapDegreeEnsemble:
        """Build from a nodes × replicates degree table."""
        return cls(table, level=level)

    @classmethod
    def from_replicates(
        cls,
        replicates: Sequence[Tuple[Any, Any]],
        predictor_ids: Sequence[str],
        response_ids: Sequence[str],
        level: str = 'x',
        n_jobs: int = 1,
    ) -> BootstrapDegreeEnsemble:
        """
        Compute degrees from replicate adjacency pairs.

        Each replicate is an ``(A_xy, A_yy)`` pair aligned to
        ``predictor_ids`` / ``response_ids`` (labelled DataFrames are
        reindexed, missing labels count as absent). Replicates are
        independent units dispatched to the worker pool.
        """
        predictor_ids = [str(p) for p in predictor_ids]
        response_ids = [str(r) for r in response_ids]

        units = []
        for A_xy, A_yy in replicates:
            if isinstance(A_xy, pd.DataFrame):
                A_xy = A_xy.rename(index=str, columns=str).reindex(
                    index=predictor_ids, columns=response_ids, fill_value=0.0
                ).to_numpy(dtype=np.float64)
            if isinstance(A_yy, pd.DataFrame):
                A_yy = A_yy.rename(index=str, columns=str).reindex(
                    index=response_ids, columns=response_ids, fill_value=0.0
                ).to_numpy(dtype=np.float64)
            expected = (len(predictor_ids), len(response_ids))
            if np.shape(A_xy) != expected:
                raise ValidationError(f"Replicate A_xy has shape {np.shape(A_xy)}, expected {expected}")
            units.append((A_xy, A_yy, level))

        vectors = run_units(_replicate_degrees, units, n_jobs=n_jobs, desc="Replicate degrees")
        ids = predictor_ids if level == 'x' else response_ids
        table = pd.DataFrame(
            np.column_stack(vectors) if vectors else np.zeros((len(ids), 0), dtype=np.int64),
            index=ids,
            columns=[f"replicate_{i + 1}" for i in range(len(vectors))],
        )
        logger.info(f"Degree ensemble: {len(ids)} level-{level} nodes x {len(vectors)} replicates")
        return cls(table, level=level)


@dataclass
class HubRanking:
    """
    Ranked hub table.

    Attributes:
        records: One dict per node in final order (id, alias, level, degree,
            rank, mean_rank, sd_rank)
        level: Ranked node level
        n_replicates: Ensemble size (0 without an ensemble)
    """
    records: List[Dict[str, Any]] = field(default_factory=list)
    level: str = 'x'
    n_replicates: int = 0

    def top(self, n: Optional[int] = None) -> List[Dict[str, Any]]:
        """First ``n`` records (all when n is None)."""
        return list(self.records if n is None else self.records[:n])

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.records,
            columns=['id', 'alias', 'level', 'degree', 'rank', 'mean_rank', 'sd_rank'],
        )


class HubRanker:
    """
    Rank one node level of a NetworkGraph by (bootstrap-stable) degree.

    Attributes:
        level: Node level to rank ('x' predictors by default)
        edge_level: Restrict degree to one edge level; None counts all edges
    """

    def __init__(self, level: str = 'x', edge_level: Optional[str] = None):
        if level not in ('x', 'y'):
            raise ValidationError(f"level must be 'x' or 'y', got {level!r}")
        self.level = level
        self.edge_level = edge_level

    def rank(
        self,
        graph: NetworkGraph,
        ensemble: Optional[BootstrapDegreeEnsemble] = None,
        annotate: bool = True,
    ) -> HubRanking:
        """
        Rank nodes and (optionally) write rank, mean_rank, sd_rank onto them.

        Raises:
            ValidationError: Ensemble level differs from the ranked level,
                or the ensemble names nodes absent from the graph
        """
        ids = graph.node_ids(self.level)
        degree_map = graph.degree(self.edge_level)
        degrees = np.array([degree_map[i] for i in ids], dtype=np.int64)

        if not ids:
            return HubRanking(level=self.level, n_replicates=ensemble.n_replicates if ensemble else 0)

        if ensemble is None or ensemble.n_replicates == 0:
            ranks = ordinal_ranks(ids, degrees)
            mean_rank = ranks.astype(np.float64)
            sd_rank: List[Optional[float]] = [None] * len(ids)
            order = np.argsort(ranks)
            n_replicates = 0
        else:
            if ensemble.level != self.level:
                raise ValidationError(
                    f"Ensemble covers level {ensemble.level!r}, ranking level {self.level!r}"
                )
            unknown = set(ensemble.node_ids) - set(ids)
            if unknown:
                raise ValidationError(
                    f"Ensemble names {len(unknown)} nodes absent from the graph, e.g. {sorted(unknown)[:5]}"
                )
            table = ensemble.degrees.reindex(ids, fill_value=0).to_numpy()
            per_replicate = np.column_stack([
                ordinal_ranks(ids, table[:, r]) for r in range(table.shape[1])
            ])
            n_replicates = table.shape[1]
            mean_rank = per_replicate.mean(axis=1)
            sd = per_replicate.std(axis=1, ddof=1) if n_replicates > 1 else np.zeros(len(ids))
            sd_rank = sd.tolist()

            id_position = np.argsort(np.argsort(np.array(ids, dtype=object)))
            order = np.lexsort((id_position, sd, mean_rank))
            ranks = np.empty(len(ids), dtype=np.int64)
            ranks[order] = np.arange(1, len(ids) + 1)

        records = []
        for i in order:
            node = graph.nodes[ids[i]]
            record = {
                'id': node.id,
                'alias': node.alias,
                'level': node.level,
                'degree': int(degrees[i]),
                'rank': int(ranks[i]),
                'mean_rank': float(mean_rank[i]),
                'sd_rank': None if sd_rank[i] is None else float(sd_rank[i]),
            }
            records.append(record)
            if annotate:
                graph.annotate_node(
                    node.id,
                    rank=record['rank'],
                    mean_rank=record['mean_rank'],
                    sd_rank=record['sd_rank'],
                )

        logger.info(
            f"Ranked {len(records)} level-{self.level} nodes"
            + (f" over {n_replicates} replicates" if n_replicates else " by final-graph degree")
        )
        return HubRanking(records=records, level=self.level, n_replicates=n_replicates)
