"""
Genomic interval representation and overlap/distance queries.

Copy-number segments and measured molecules are both anchored to the genome,
but annotation tables are frequently incomplete: a feature may lack a
chromosome, a segment may have no recorded end. Comparisons therefore have
three outcomes rather than two, and an unresolved interval never raises.

Conventions:
    - Intervals are closed: [start, end].
    - ``overlap(a, b)`` is True iff the chromosomes match and the ranges
      intersect (touching ends count as overlap).
    - ``distance(a, b)`` is the gap between the ranges in base pairs: 0 when
      they overlap, ``math.inf`` on different chromosomes.
    - Either query returns ``None`` ("unknown") when chromosome, start or end
      is missing on either side.
    - Chromosome names are compared after dropping a leading ``chr`` so that
      ``chr7`` and ``7`` refer to the same sequence.

Examples:
    >>> a = GenomicInterval("chr1", 100, 200)
    >>> b = GenomicInterval("1", 250, 300)
    >>> GenomicIntervalIndex.distance(a, b)
    50
    >>> GenomicIntervalIndex.overlap(a, GenomicInterval("2", 100, 200))
    False
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from cnanet.exceptions import ValidationError

logger = logging.getLogger(__name__)

__all__ = [
    'GenomicInterval',
    'GenomicIntervalIndex',
    'normalize_chromosome',
]


def normalize_chromosome(chromosome: Optional[str]) -> Optional[str]:
    """Canonical chromosome key: string form without a leading 'chr'."""
    if chromosome is None:
        return None
    name = str(chromosome).strip()
    if name.lower().startswith('chr'):
        name = name[3:]
    return name or None


def _clean(value):
    """Map pandas/numpy missing markers to None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


@dataclass(frozen=True)
class GenomicInterval:
    """
    A chromosome range with optional end and strand.

    Attributes:
        chromosome: Chromosome name ('1', 'chr1', 'X', ...) or None
        start: First base (inclusive) or None
        end: Last base (inclusive) or None
        strand: '+', '-' or None

    Raises:
        ValidationError: If both start and end are present and start > end
    """
    chromosome: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None
    strand: Optional[str] = None

    def __post_init__(self):
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValidationError(
                f"Interval start ({self.start}) exceeds end ({self.end}) "
                f"on chromosome {self.chromosome}"
            )

    @classmethod
    def from_values(cls, chromosome=None, start=None, end=None, strand=None) -> GenomicInterval:
        """Build from raw table values, turning NaN/NA into None."""
        chromosome = _clean(chromosome)
        start = _clean(start)
        end = _clean(end)
        strand = _clean(strand)
        return cls(
            chromosome=str(chromosome) if chromosome is not None else None,
            start=int(start) if start is not None else None,
            end=int(end) if end is not None else None,
            strand=str(strand) if strand is not None else None,
        )

    @property
    def chromosome_key(self) -> Optional[str]:
        return normalize_chromosome(self.chromosome)

    @property
    def is_resolved(self) -> bool:
        """True when chromosome, start and end are all known."""
        return (
            self.chromosome_key is not None
            and self.start is not None
            and self.end is not None
        )

    def to_dict(self) -> Dict:
        return {
            'chromosome': self.chromosome,
            'start': self.start,
            'end': self.end,
            'strand': self.strand,
        }


class GenomicIntervalIndex:
    """
    Id → interval lookup with per-chromosome range queries.

    Intervals are stored once; resolved intervals are additionally indexed by
    chromosome as start-sorted arrays so that "everything within w bp of this
    interval" is a binary search plus a filter.

    Attributes:
        intervals: Mapping of feature id to GenomicInterval (input order kept)
    """

    def __init__(self, intervals: Mapping[str, GenomicInterval]):
        self.intervals: Dict[str, GenomicInterval] = dict(intervals)
        self._by_chromosome: Dict[str, Dict[str, np.ndarray]] = {}

        grouped: Dict[str, List[tuple]] = {}
        for feature_id, interval in self.intervals.items():
            if interval.is_resolved:
                grouped.setdefault(interval.chromosome_key, []).append(
                    (interval.start, interval.end, feature_id)
                )

        for chrom, rows in grouped.items():
            rows.sort(key=lambda r: (r[0], r[1], r[2]))
            self._by_chromosome[chrom] = {
                'starts': np.array([r[0] for r in rows], dtype=np.int64),
                'ends': np.array([r[1] for r in rows], dtype=np.int64),
                'ids': np.array([r[2] for r in rows], dtype=object),
            }

        n_unresolved = len(self.intervals) - sum(len(v['ids']) for v in self._by_chromosome.values())
        if n_unresolved:
            logger.info(f"Interval index: {n_unresolved}/{len(self.intervals)} intervals unresolved")

    @classmethod
    def from_frame(
        cls,
        table: pd.DataFrame,
        id_column: str = 'id',
        chromosome_column: str = 'chromosome',
        start_column: str = 'start',
        end_column: str = 'end',
        strand_column: str = 'strand',
    ) -> GenomicIntervalIndex:
        """
        Build an index from an attribute table.

        Missing coordinate columns are treated as entirely unknown rather
        than as an error; only the id column is mandatory.
        """
        if id_column not in table.columns:
            raise ValidationError(f"Attribute table has no '{id_column}' column")

        def column(name):
            if name in table.columns:
                return table[name].tolist()
            return [None] * len(table)

        intervals = {}
        for fid, chrom, start, end, strand in zip(
            table[id_column].astype(str).tolist(),
            column(chromosome_column),
            column(start_column),
            column(end_column),
            column(strand_column),
        ):
            intervals[fid] = GenomicInterval.from_values(chrom, start, end, strand)
        return cls(intervals)

    def __len__(self) -> int:
        return len(self.intervals)

    def __contains__(self, feature_id: str) -> bool:
        return feature_id in self.intervals

    def __getitem__(self, feature_id: str) -> GenomicInterval:
        return self.intervals[feature_id]

    def get(self, feature_id: str) -> GenomicInterval:
        """Interval for an id; an all-unknown interval when the id is absent."""
        return self.intervals.get(feature_id, GenomicInterval())

    @property
    def chromosomes(self) -> List[str]:
        return sorted(self._by_chromosome)

    @staticmethod
    def overlap(a: GenomicInterval, b: GenomicInterval) -> Optional[bool]:
        """True if same chromosome and ranges intersect; None if unknown."""
        if not (a.is_resolved and b.is_resolved):
            return None
        if a.chromosome_key != b.chromosome_key:
            return False
        return a.start <= b.end and b.start <= a.end

    @staticmethod
    def distance(a: GenomicInterval, b: GenomicInterval) -> Optional[Union[int, float]]:
        """Gap in bp (0 on overlap, inf across chromosomes); None if unknown."""
        if not (a.is_resolved and b.is_resolved):
            return None
        if a.chromosome_key != b.chromosome_key:
            return math.inf
        if a.end < b.start:
            return b.start - a.end
        if b.end < a.start:
            return a.start - b.end
        return 0

    def within(
        self,
        query: GenomicInterval,
        window: int,
        candidates: Optional[Iterable[str]] = None,
    ) -> List[str]:
        """
        Ids of indexed intervals on the query's chromosome within ``window`` bp.

        Args:
            query: Interval to search around
            window: Maximum gap (inclusive)
            candidates: Optional id subset to restrict the result to

        Returns:
            Ids sorted by start position; empty if the query is unresolved
        """
        if not query.is_resolved:
            return []
        block = self._by_chromosome.get(query.chromosome_key)
        if block is None:
            return []

        # starts are sorted: everything past query.end + window is out of reach
        upper = np.searchsorted(block['starts'], query.end + window, side='right')
        ends = block['ends'][:upper]
        hits = block['ids'][:upper][ends >= query.start - window].tolist()

        if candidates is not None:
            allowed = candidates if isinstance(candidates, (set, frozenset)) else set(candidates)
            hits = [h for h in hits if h in allowed]
        return hits
