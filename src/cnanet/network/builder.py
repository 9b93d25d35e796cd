"""
Assemble the attributed network from fitted adjacency matrices.

Inputs come from two external stages: the network-fitting stage supplies
A_xy (predictors × responses) and A_yy (responses × responses, symmetric,
zero diagonal); the data-preparation stage supplies one attribute table per
level with an ``id`` column, an optional ``alias`` column, optional genomic
coordinates (``chromosome``, ``start``, ``end``, ``strand``) and any number
of free-form columns.

Contract:
    - Nodes: predictors (level 'x') then responses (level 'y'), in
      attribute-table order.
    - Edges: one x-y edge per nonzero A_xy entry, one y-y edge per nonzero
      strict-upper-triangle A_yy entry, weight = matrix value (sign kept).
    - Edge order is row-major over A_xy, then row-major over A_yy.

Adjacency matrices may be labelled DataFrames (labels are matched against
attribute-table ids) or bare arrays (assumed to follow table order).
Edges are read from the sparse (COO) form of each matrix rather than by
scanning every cell.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd
from scipy import sparse

from cnanet.core.graph import EdgeRecord, NetworkGraph, NodeRecord
from cnanet.core.intervals import GenomicInterval
from cnanet.exceptions import DataIntegrityError, ValidationError

logger = logging.getLogger(__name__)

__all__ = ['NetworkBuilder', 'AdjacencyLike']

AdjacencyLike = Union[pd.DataFrame, np.ndarray, sparse.spmatrix]

_RESERVED_COLUMNS = ('id', 'alias', 'chromosome', 'start', 'end', 'strand')


def _python_value(value: Any) -> Any:
    """numpy scalar → Python scalar, missing → None."""
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if isinstance(value, np.generic):
        value = value.item()
        if isinstance(value, float) and np.isnan(value):
            return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


class NetworkBuilder:
    """
    Build a NetworkGraph from (A_xy, A_yy) and per-level attribute tables.

    Attributes:
        id_column: Attribute-table column holding node ids
        alias_column: Column holding display names (falls back to the id)
        symmetry_tolerance: Absolute tolerance for the A_yy symmetry check
    """

    def __init__(
        self,
        id_column: str = 'id',
        alias_column: str = 'alias',
        symmetry_tolerance: float = 1e-10,
    ):
        self.id_column = id_column
        self.alias_column = alias_column
        self.symmetry_tolerance = symmetry_tolerance

    # ------------------------------------------------------------------
    # Attribute tables
    # ------------------------------------------------------------------

    def _table_ids(self, table: pd.DataFrame, label: str) -> List[str]:
        if self.id_column not in table.columns:
            raise ValidationError(f"{label} attribute table has no '{self.id_column}' column")
        ids = table[self.id_column].astype(str)
        if ids.duplicated().any():
            dupes = ids[ids.duplicated()].unique().tolist()
            raise ValidationError(f"Duplicate {label} ids: {dupes[:10]}")
        return ids.tolist()

    def _node_records(self, table: pd.DataFrame, level: str) -> List[NodeRecord]:
        extra_columns = [c for c in table.columns if c not in _RESERVED_COLUMNS and c != self.id_column
                         and c != self.alias_column]
        records = []
        for row in table.to_dict(orient='records'):
            interval = GenomicInterval.from_values(
                row.get('chromosome'), row.get('start'), row.get('end'), row.get('strand')
            )
            alias = _python_value(row.get(self.alias_column))
            records.append(NodeRecord(
                id=str(row[self.id_column]),
                level=level,
                alias=str(alias) if alias is not None else None,
                interval=interval,
                extra={c: _python_value(row[c]) for c in extra_columns},
            ))
        return records

    # ------------------------------------------------------------------
    # Adjacency handling
    # ------------------------------------------------------------------

    @staticmethod
    def _to_coo(adjacency: Any) -> sparse.coo_matrix:
        """COO view of a DataFrame, ndarray or scipy.sparse matrix (duplicates summed)."""
        if isinstance(adjacency, pd.DataFrame):
            if adjacency.shape[1] and all(isinstance(dt, pd.SparseDtype) for dt in adjacency.dtypes):
                return sparse.coo_matrix(adjacency.sparse.to_coo(), dtype=np.float64)
            adjacency = adjacency.to_numpy(dtype=np.float64)
        if sparse.issparse(adjacency):
            return sparse.csr_matrix(adjacency, dtype=np.float64).tocoo()
        return sparse.coo_matrix(np.asarray(adjacency, dtype=np.float64))

    def _aligned(
        self,
        adjacency: AdjacencyLike,
        row_ids: List[str],
        col_ids: List[str],
        name: str,
    ) -> sparse.coo_matrix:
        """
        Validate an adjacency matrix against table ids and return it as COO
        with rows/columns in its own label order mapped to table positions.
        """
        expected = (len(row_ids), len(col_ids))
        if np.shape(adjacency) != expected:
            raise ValidationError(
                f"{name} has shape {np.shape(adjacency)}, attribute tables imply {expected}"
            )

        if isinstance(adjacency, pd.DataFrame):
            rows = pd.Index(adjacency.index).astype(str)
            cols = pd.Index(adjacency.columns).astype(str)
            for labels, ids, axis in ((rows, row_ids, 'row'), (cols, col_ids, 'column')):
                dangling = labels.difference(pd.Index(ids))
                if len(dangling) > 0:
                    raise DataIntegrityError(
                        f"{name} {axis} labels without attribute-table ids: {dangling[:10].tolist()}"
                    )
                if labels.has_duplicates:
                    raise ValidationError(f"{name} has duplicate {axis} labels")
            row_pos = pd.Index(row_ids).get_indexer(rows)
            col_pos = pd.Index(col_ids).get_indexer(cols)
        else:
            row_pos = np.arange(expected[0])
            col_pos = np.arange(expected[1])

        coo = self._to_coo(adjacency)
        if not np.all(np.isfinite(coo.data)):
            raise ValidationError(f"{name} contains NaN or infinite values")

        return sparse.coo_matrix(
            (coo.data, (row_pos[coo.row], col_pos[coo.col])),
            shape=expected,
        )

    @staticmethod
    def _row_major(coo: sparse.coo_matrix) -> np.ndarray:
        return np.lexsort((coo.col, coo.row))

    def build(
        self,
        A_xy: AdjacencyLike,
        A_yy: Optional[AdjacencyLike],
        predictors: pd.DataFrame,
        responses: pd.DataFrame,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> NetworkGraph:
        """
        Assemble the network.

        Args:
            A_xy: Predictor × response coefficients
            A_yy: Response × response coefficients (symmetric, zero diagonal)
                or None for a purely bipartite fit
            predictors: Predictor attribute table
            responses: Response attribute table
            metadata: Graph-level annotations to carry along

        Returns:
            NetworkGraph with unannotated nodes and edges

        Raises:
            ValidationError: Dimension mismatch, duplicate ids, asymmetric
                A_yy, nonzero diagonal, non-finite values
            DataIntegrityError: Adjacency labels absent from the attribute
                tables, or ids shared between predictors and responses
        """
        x_ids = self._table_ids(predictors, 'predictor')
        y_ids = self._table_ids(responses, 'response')

        shared = set(x_ids) & set(y_ids)
        if shared:
            raise DataIntegrityError(f"Ids used by both predictors and responses: {sorted(shared)[:10]}")

        nodes = self._node_records(predictors, 'x') + self._node_records(responses, 'y')

        xy = self._aligned(A_xy, x_ids, y_ids, 'A_xy')
        edges = [
            EdgeRecord(source=x_ids[r], target=y_ids[c], level='x-y', weight=w)
            for r, c, w in zip(*(arr[self._row_major(xy)] for arr in (xy.row, xy.col, xy.data)))
            if w != 0
        ]

        n_yy = 0
        if A_yy is not None:
            yy = self._aligned(A_yy, y_ids, y_ids, 'A_yy')
            if np.any(yy.diagonal() != 0):
                raise ValidationError("A_yy must have a zero diagonal (no self-loops)")
            asymmetry = (yy.tocsr() - yy.T.tocsr()).tocoo()
            if asymmetry.nnz and np.max(np.abs(asymmetry.data)) > self.symmetry_tolerance:
                raise ValidationError("A_yy must be symmetric")
            upper = sparse.triu(yy, k=1).tocoo()
            order = self._row_major(upper)
            for r, c, w in zip(upper.row[order], upper.col[order], upper.data[order]):
                if w != 0:
                    edges.append(EdgeRecord(source=y_ids[r], target=y_ids[c], level='y-y', weight=w))
                    n_yy += 1

        graph = NetworkGraph(nodes, edges, metadata=metadata)
        logger.info(
            f"Network built: {len(x_ids)} predictors, {len(y_ids)} responses, "
            f"{len(edges) - n_yy} x-y edges, {n_yy} y-y edges"
        )
        return graph
