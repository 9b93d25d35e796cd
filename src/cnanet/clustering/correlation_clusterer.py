"""
Density-based correlation clustering of multicollinear predictor columns.

Adjacent copy-number segments are frequently altered together, giving
near-identical columns that make the downstream regression ill-posed. This
module collapses such columns before network fitting.

Algorithm:
    1. dissimilarity(i, j) = 1 - |corr(X_i, X_j)|
    2. DBSCAN over the precomputed dissimilarity: a feature is a core point
       when at least ``min_pts`` features (itself included) lie within
       ``eps``; clusters are the density-connected sets of core points and
       the border points they reach.
    3. Features left unreached form cluster 0 ("independent").
    4. Each cluster k > 0 is replaced by the mean of its member columns and
       a representative name.

Cluster ids 1..k are assigned in order of each cluster's first member in
input order, so the result is independent of DBSCAN's internal labelling.

Representative names:
    - Members with identical names collapse to that name.
    - Otherwise members are ordered by genomic start (natural sort of the
      names when coordinates are missing). Members that are contiguous in
      input order and lie on one chromosome become a spanning range from
      the first member's left end to the last member's right end, so
      ``chr1:1000-2000`` + ``chr1:2001-3000`` gives ``chr1:1000-3000``.
      Any other cluster is joined with ';' so that it never reads as a
      range.

Integrity:
    Member intervals of a collapsed cluster must not overlap one another.
    An overlap means the same genomic segment entered the panel twice and
    is a fatal DataIntegrityError.

Examples:
    >>> clusterer = CorrelationClusterer(eps=1e-3, min_pts=2)
    >>> clustering = clusterer.fit(cna_matrix)
    >>> reduced = clustering.reduced_matrix()
    >>> A_xy_reduced = clustering.collapse_adjacency(A_xy)
"""

from __future__ import annotations

import itertools
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.cluster import DBSCAN

from cnanet.core.feature_matrix import FeatureMatrix
from cnanet.core.intervals import GenomicInterval, GenomicIntervalIndex
from cnanet.exceptions import DataIntegrityError, ValidationError
from cnanet.utils.correlation import (
    absolute_correlation_dissimilarity,
    compute_correlation_matrix_chunked,
)

logger = logging.getLogger(__name__)

__all__ = [
    'CorrelationClusterer',
    'CorrelationClustering',
    'representative_name',
    'RANGE_DELIMITER',
    'LIST_SEPARATOR',
]

RANGE_DELIMITER = '-'
LIST_SEPARATOR = ';'

_PREFIX = re.compile(r'\D*')


def _natural_key(token: str) -> list:
    # re.split with a capture group alternates text/digits, so positions never mix types
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r'(\d+)', token)]


def _range_ends(name: str) -> tuple:
    """
    (left, right) ends of a name that already reads as a range, else (name, name).

    ``chr1:1000-2000`` (numeric right end continuing the left coordinate)
    and ``s1-s4`` / ``1p36-1p35`` (both ends share the text before their
    first digit) are ranges; ``MIR17-HG`` is not.
    """
    halves = name.split(RANGE_DELIMITER)
    if len(halves) == 2 and all(halves):
        left, right = halves
        if right.isdigit() and left[-1].isdigit():
            return left, right
        if _PREFIX.match(left).group() == _PREFIX.match(right).group() and any(c.isdigit() for c in right):
            return left, right
    return name, name


def representative_name(
    names: Sequence[str],
    positions: Sequence[int],
    same_chromosome: bool,
    starts: Optional[Sequence[Optional[int]]] = None,
) -> str:
    """
    Name for a collapsed cluster.

    Members are ordered by genomic start when ``starts`` is complete,
    otherwise by natural sort of their names.

    Args:
        names: Member names
        positions: Member positions in the original column order
        same_chromosome: Whether all members lie on one chromosome
        starts: Member start coordinates, aligned with ``names``

    Returns:
        The shared name, a ``first-last`` range or a ';'-joined list
    """
    unique_names = set(names)
    if len(unique_names) == 1:
        return next(iter(unique_names))

    if starts is None or any(s is None for s in starts):
        starts = [0] * len(names)
    parts = sorted(
        (start, _natural_key(part), part)
        for name, start in zip(names, starts)
        for part in (p.strip() for p in name.split(LIST_SEPARATOR))
        if part
    )
    ordered = list(dict.fromkeys(part for _, _, part in parts))
    contiguous = max(positions) - min(positions) + 1 == len(set(positions))

    if contiguous and same_chromosome and len(ordered) > 1:
        left = _range_ends(ordered[0])[0]
        right = _range_ends(ordered[-1])[1]
        if left != right:
            return f"{left}{RANGE_DELIMITER}{right}"
    return LIST_SEPARATOR.join(ordered)


@dataclass(frozen=True, eq=False)
class CorrelationClustering:
    """
    Frozen result of correlation clustering.

    Attributes:
        source: The FeatureMatrix that was clustered
        labels: Cluster id per source feature (0 = independent)
        names: Representative name per cluster id > 0
        eps: Reachability radius used
        min_pts: Minimum neighbourhood size used (counts the point itself)
    """
    source: FeatureMatrix
    labels: np.ndarray
    names: Dict[int, str]
    eps: float
    min_pts: int
    _output: Dict[str, List[str]] = field(default_factory=dict, repr=False)
    _index: Optional[GenomicIntervalIndex] = field(default=None, repr=False)

    def __post_init__(self):
        self.labels.setflags(write=False)

        ids = self.source.feature_ids.tolist()
        by_cluster: Dict[int, List[str]] = {}
        for fid, label in zip(ids, self.labels.tolist()):
            if label > 0:
                by_cluster.setdefault(label, []).append(fid)

        # reduced features keep the position of their first member
        output: Dict[str, List[str]] = {}
        for fid, label in zip(ids, self.labels.tolist()):
            if label == 0:
                output[fid] = [fid]
            elif self.names[label] not in output:
                output[self.names[label]] = by_cluster[label]
        object.__setattr__(self, '_output', output)
        object.__setattr__(self, '_index', self.source.interval_index())

    @property
    def feature_ids(self) -> List[str]:
        return self.source.feature_ids.tolist()

    @property
    def n_clusters(self) -> int:
        """Number of collapsed clusters (excluding cluster 0)."""
        return len(self.names)

    @property
    def clusters(self) -> Dict[int, List[str]]:
        """Cluster id → member ids, including cluster 0 when non-empty."""
        out: Dict[int, List[str]] = {}
        for fid, label in zip(self.feature_ids, self.labels.tolist()):
            out.setdefault(int(label), []).append(fid)
        return dict(sorted(out.items()))

    @property
    def output_ids(self) -> List[str]:
        """Ids of the reduced feature set, in order of first appearance."""
        return list(self._output)

    @property
    def members(self) -> Dict[str, List[str]]:
        """Reduced id → source feature ids it stands for."""
        return {k: list(v) for k, v in self._output.items()}

    def cluster_of(self, feature_id: str) -> int:
        return int(self.labels[self.source.feature_ids.get_loc(feature_id)])

    def reduced_matrix(self) -> FeatureMatrix:
        """FeatureMatrix with each cluster replaced by its averaged column."""
        positions = {fid: i for i, fid in enumerate(self.feature_ids)}
        columns = []
        for member_ids in self._output.values():
            idx = [positions[m] for m in member_ids]
            columns.append(self.source.data[:, idx].mean(axis=1))

        data = np.column_stack(columns) if columns else np.zeros((self.source.n_samples, 0))
        return FeatureMatrix(
            data=data,
            feature_ids=pd.Index(self.output_ids),
            sample_ids=self.source.sample_ids,
            level=self.source.level,
            intervals=self.reduced_intervals(),
        )

    def _merged_interval(self, member_ids: List[str]) -> GenomicInterval:
        if self._index is None:
            return GenomicInterval()
        parts = [self._index.get(m) for m in member_ids]
        if len(parts) == 1:
            return parts[0]
        if not all(p.is_resolved for p in parts):
            return GenomicInterval()
        if len({p.chromosome_key for p in parts}) != 1:
            return GenomicInterval()
        return GenomicInterval(
            chromosome=parts[0].chromosome,
            start=min(p.start for p in parts),
            end=max(p.end for p in parts),
        )

    def reduced_intervals(self) -> Optional[pd.DataFrame]:
        """Interval table for the reduced features (member span per cluster)."""
        if self.source.intervals is None:
            return None
        rows = []
        for out_id, member_ids in self._output.items():
            merged = self._merged_interval(member_ids)
            rows.append({'id': out_id, **merged.to_dict(), 'members': LIST_SEPARATOR.join(member_ids)})
        columns = ['id', 'chromosome', 'start', 'end', 'strand', 'members']
        return pd.DataFrame(rows, columns=columns).set_index('id')

    def collapse_adjacency(self, adjacency: pd.DataFrame) -> pd.DataFrame:
        """
        Merge predictor rows of a fitted adjacency matrix onto clusters.

        A merged row is nonzero wherever any member row is nonzero, so the
        collapsed predictor's neighbours are the union of its members'
        neighbours. The merged weight is the member weight of largest
        magnitude (sign kept; the earliest member wins ties).

        Raises:
            DataIntegrityError: If adjacency rows and clustered features differ
        """
        row_ids = pd.Index(adjacency.index).astype(str)
        missing = set(self.feature_ids) - set(row_ids)
        extra = set(row_ids) - set(self.feature_ids)
        if missing or extra:
            raise DataIntegrityError(
                f"Adjacency rows do not match clustered features "
                f"(missing: {sorted(missing)[:5]}, unexpected: {sorted(extra)[:5]})"
            )

        values = adjacency.to_numpy(dtype=np.float64)
        row_pos = {rid: i for i, rid in enumerate(row_ids)}
        merged_rows = []
        for member_ids in self._output.values():
            block = values[[row_pos[m] for m in member_ids], :]
            pick = np.argmax(np.abs(block), axis=0)
            merged_rows.append(block[pick, np.arange(block.shape[1])])

        merged = np.vstack(merged_rows) if merged_rows else np.zeros((0, values.shape[1]))
        return pd.DataFrame(merged, index=pd.Index(self.output_ids), columns=adjacency.columns)

    def collapse_attributes(self, table: pd.DataFrame, id_column: str = 'id') -> pd.DataFrame:
        """
        Attribute table for the reduced predictors.

        Each cluster takes its first member's row, with id/alias replaced by
        the representative name, coordinates by the member span, and a
        ``members`` column listing the collapsed ids.
        """
        if id_column not in table.columns:
            raise ValidationError(f"Attribute table has no '{id_column}' column")
        by_id = table.assign(**{id_column: table[id_column].astype(str)}).set_index(id_column, drop=False)
        missing = set(self.feature_ids) - set(by_id.index)
        if missing:
            raise DataIntegrityError(f"Attribute table lacks clustered features {sorted(missing)[:5]}")

        rows = []
        for out_id, member_ids in self._output.items():
            row = by_id.loc[member_ids[0]].to_dict()
            if len(member_ids) > 1:
                row[id_column] = out_id
                row['alias'] = out_id
                if self.source.intervals is not None:
                    row.update(self._merged_interval(member_ids).to_dict())
            row['members'] = LIST_SEPARATOR.join(member_ids)
            rows.append(row)
        return pd.DataFrame(rows).reset_index(drop=True)

    def assignment_records(self) -> List[Dict]:
        """One record per source feature: id, cluster, reduced id."""
        reverse = {m: out_id for out_id, members in self._output.items() for m in members}
        return [
            {'feature_id': fid, 'cluster': int(label), 'reduced_id': reverse[fid]}
            for fid, label in zip(self.feature_ids, self.labels.tolist())
        ]


class CorrelationClusterer:
    """
    Collapse highly correlated feature columns with DBSCAN.

    Attributes:
        eps: Reachability radius on the 1 - |r| scale (default 1e-3)
        min_pts: Minimum neighbourhood size, the point itself included
            (default 2)
        name_column: Interval-table column holding display names
            (defaults to the feature id)
        check_overlap: Raise on overlapping intervals inside a cluster
        chunk_size: Columns per correlation work unit
        n_jobs: Worker count for correlation blocks
    """

    def __init__(
        self,
        eps: float = 1e-3,
        min_pts: int = 2,
        name_column: Optional[str] = None,
        check_overlap: bool = True,
        chunk_size: int = 500,
        n_jobs: Optional[int] = 1,
    ):
        if eps < 0:
            raise ValidationError(f"eps must be >= 0, got {eps}")
        if min_pts < 1:
            raise ValidationError(f"min_pts must be >= 1, got {min_pts}")
        self.eps = float(eps)
        self.min_pts = int(min_pts)
        self.name_column = name_column
        self.check_overlap = check_overlap
        self.chunk_size = chunk_size
        self.n_jobs = n_jobs

    def dissimilarity(self, matrix: FeatureMatrix) -> np.ndarray:
        """1 - |corr| between every pair of feature columns."""
        corr = compute_correlation_matrix_chunked(
            matrix.data, chunk_size=self.chunk_size, n_jobs=self.n_jobs
        )
        return absolute_correlation_dissimilarity(corr)

    def _labels(self, dissim: np.ndarray) -> np.ndarray:
        n = dissim.shape[0]
        if n == 0:
            return np.zeros(0, dtype=int)

        # sklearn requires eps > 0; the smallest positive radius keeps eps=0 exact
        radius = max(self.eps, np.nextafter(0.0, 1.0))
        raw = DBSCAN(eps=radius, min_samples=self.min_pts, metric='precomputed').fit_predict(dissim)

        labels = np.zeros(n, dtype=int)
        relabel: Dict[int, int] = {}
        for i, lab in enumerate(raw.tolist()):
            if lab < 0:
                continue
            if lab not in relabel:
                relabel[lab] = len(relabel) + 1
            labels[i] = relabel[lab]
        return labels

    def _names(self, matrix: FeatureMatrix) -> List[str]:
        if self.name_column is None:
            return matrix.feature_ids.tolist()
        if matrix.intervals is None or self.name_column not in matrix.intervals.columns:
            raise ValidationError(f"Name column '{self.name_column}' not in interval table")
        names = matrix.intervals[self.name_column]
        return [str(n) if not pd.isna(n) else fid for fid, n in zip(matrix.feature_ids, names)]

    def _check_no_overlap(self, member_ids: List[str], index: GenomicIntervalIndex, cluster: int):
        for a, b in itertools.combinations(member_ids, 2):
            if GenomicIntervalIndex.overlap(index.get(a), index.get(b)):
                raise DataIntegrityError(
                    f"Cluster {cluster}: members {a!r} and {b!r} overlap on the genome; "
                    f"collapsed features must be non-overlapping (duplicate segment entries?)"
                )

    def fit(self, matrix: FeatureMatrix) -> CorrelationClustering:
        """
        Cluster the columns of ``matrix``.

        Raises:
            ValidationError: On non-finite data or invalid name column
            DataIntegrityError: If members of a cluster overlap genomically
        """
        logger.info(
            f"Correlation clustering: {matrix.n_features} features, "
            f"eps={self.eps}, min_pts={self.min_pts}"
        )
        labels = self._labels(self.dissimilarity(matrix)) if matrix.n_features else np.zeros(0, dtype=int)

        ids = matrix.feature_ids.tolist()
        names = self._names(matrix)
        index = matrix.interval_index()

        cluster_names: Dict[int, str] = {}
        taken = {fid for fid, lab in zip(ids, labels.tolist()) if lab == 0}
        for cluster in range(1, int(labels.max(initial=0)) + 1):
            positions = [i for i, lab in enumerate(labels.tolist()) if lab == cluster]
            member_ids = [ids[i] for i in positions]

            if index is not None and self.check_overlap:
                self._check_no_overlap(member_ids, index, cluster)

            starts = None
            if index is not None:
                chroms = {index.get(m).chromosome_key for m in member_ids}
                same_chromosome = len(chroms) == 1 and None not in chroms
                starts = [index.get(m).start for m in member_ids]
            else:
                same_chromosome = True

            name = representative_name(
                [names[i] for i in positions], positions, same_chromosome, starts=starts
            )
            if name in taken:
                logger.warning(f"Cluster {cluster}: name {name!r} already used; suffixing cluster id")
                name = f"{name}#{cluster}"
            taken.add(name)
            cluster_names[cluster] = name

        n_independent = int(np.sum(labels == 0))
        logger.info(
            f"Correlation clustering: {len(cluster_names)} clusters, "
            f"{n_independent} independent features, "
            f"{n_independent + len(cluster_names)} features after collapse"
        )
        return CorrelationClustering(
            source=matrix,
            labels=labels,
            names=cluster_names,
            eps=self.eps,
            min_pts=self.min_pts,
        )
