"""
Core data structure for predictor/response feature matrices.

A FeatureMatrix couples numerical measurements with the identity of each
feature column and, for genome-anchored features, its interval table.

Biological Context:
    Integrative network analysis relates two kinds of features measured on
    the same samples:
    - Predictors (level 'x'): copy-number segments / CNA intervals
    - Responses (level 'y'): molecular abundances (proteins, transcripts)

    Both are stored samples × features, matching the layout of the design
    matrices handed to the external network-fitting stage.

Engineering Design:
    - Immutable: Operations return new instances
    - Validated: Constructor checks shape consistency and id uniqueness
    - Interval table is optional; when given it must cover every feature

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from cnanet.core.feature_matrix import FeatureMatrix
    >>>
    >>> X = FeatureMatrix(
    ...     data=np.random.default_rng(0).normal(size=(20, 3)),
    ...     feature_ids=pd.Index(["1p36.33", "1p36.32", "2q11.1"]),
    ...     sample_ids=pd.Index([f"S{i}" for i in range(20)]),
    ...     level="x",
    ... )
    >>> X.n_features
    3
"""

from __future__ import annotations

from typing import Optional
import numpy as np
import pandas as pd

from cnanet.core.intervals import GenomicIntervalIndex
from cnanet.exceptions import ValidationError

__all__ = ['FeatureMatrix', 'LEVELS']

LEVELS = ('x', 'y')


class FeatureMatrix:
    """
    Immutable samples × features matrix tagged as predictor or response.

    Attributes:
        data: Numerical matrix (samples × features)
        feature_ids: Column identifiers, unique
        sample_ids: Row identifiers, unique
        level: 'x' for predictors, 'y' for responses
        intervals: Optional attribute table indexed by feature id with
            chromosome/start/end/strand columns

    Shape Invariants:
        - data.shape == (len(sample_ids), len(feature_ids))
        - intervals.index contains every feature id when present
    """

    def __init__(
        self,
        data: np.ndarray,
        feature_ids: pd.Index,
        sample_ids: pd.Index,
        level: str = 'x',
        intervals: Optional[pd.DataFrame] = None,
    ):
        """
        Initialize FeatureMatrix with validation.

        Raises:
            ValidationError: If shapes disagree, ids repeat, the level is
                unknown or the interval table misses features
        """
        data = np.asarray(data, dtype=np.float64)
        feature_ids = pd.Index(feature_ids).astype(str)
        sample_ids = pd.Index(sample_ids).astype(str)

        if data.ndim != 2:
            raise ValidationError(f"data must be 2D, got shape {data.shape}")
        if level not in LEVELS:
            raise ValidationError(f"level must be one of {LEVELS}, got {level!r}")

        n_samples, n_features = data.shape
        if len(feature_ids) != n_features:
            raise ValidationError(
                f"feature_ids length ({len(feature_ids)}) must match data columns ({n_features})"
            )
        if len(sample_ids) != n_samples:
            raise ValidationError(
                f"sample_ids length ({len(sample_ids)}) must match data rows ({n_samples})"
            )
        if feature_ids.has_duplicates:
            dupes = feature_ids[feature_ids.duplicated()].unique().tolist()
            raise ValidationError(f"Duplicate feature ids: {dupes[:10]}")
        if sample_ids.has_duplicates:
            dupes = sample_ids[sample_ids.duplicated()].unique().tolist()
            raise ValidationError(f"Duplicate sample ids: {dupes[:10]}")

        if intervals is not None:
            intervals = intervals.copy()
            intervals.index = intervals.index.astype(str)
            missing = feature_ids.difference(intervals.index)
            if len(missing) > 0:
                raise ValidationError(
                    f"Interval table lacks {len(missing)} feature ids, e.g. {missing[:5].tolist()}"
                )
            intervals = intervals.loc[feature_ids]

        self._data = data
        self._feature_ids = feature_ids
        self._sample_ids = sample_ids
        self._level = level
        self._intervals = intervals

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        level: str = 'x',
        intervals: Optional[pd.DataFrame] = None,
    ) -> FeatureMatrix:
        """Build from a samples × features DataFrame."""
        return cls(
            data=frame.to_numpy(dtype=np.float64),
            feature_ids=pd.Index(frame.columns),
            sample_ids=pd.Index(frame.index),
            level=level,
            intervals=intervals,
        )

    @property
    def data(self) -> np.ndarray:
        """Measurement matrix (samples × features)."""
        return self._data

    @property
    def feature_ids(self) -> pd.Index:
        return self._feature_ids

    @property
    def sample_ids(self) -> pd.Index:
        return self._sample_ids

    @property
    def level(self) -> str:
        return self._level

    @property
    def intervals(self) -> Optional[pd.DataFrame]:
        """Interval table aligned to feature_ids, or None."""
        return self._intervals

    @property
    def shape(self) -> tuple[int, int]:
        return self._data.shape

    @property
    def n_features(self) -> int:
        return self._data.shape[1]

    @property
    def n_samples(self) -> int:
        return self._data.shape[0]

    def interval_index(self) -> Optional[GenomicIntervalIndex]:
        """GenomicIntervalIndex over the interval table, or None without one."""
        if self._intervals is None:
            return None
        table = self._intervals.drop(columns=['id'], errors='ignore').rename_axis('id').reset_index()
        return GenomicIntervalIndex.from_frame(table)

    def select_features(self, mask: np.ndarray | pd.Series) -> FeatureMatrix:
        """
        Subset matrix by features (columns).

        Args:
            mask: Boolean array/Series indicating which features to keep

        Raises:
            ValidationError: If mask length doesn't match n_features
        """
        if isinstance(mask, pd.Series):
            mask = mask.values
        mask = np.asarray(mask, dtype=bool)

        if len(mask) != self.n_features:
            raise ValidationError(
                f"mask length ({len(mask)}) must match n_features ({self.n_features})"
            )

        return FeatureMatrix(
            data=self._data[:, mask],
            feature_ids=self._feature_ids[mask],
            sample_ids=self._sample_ids,
            level=self._level,
            intervals=None if self._intervals is None else self._intervals.loc[self._feature_ids[mask]],
        )

    def to_frame(self) -> pd.DataFrame:
        """Samples × features DataFrame view of the data (copied)."""
        return pd.DataFrame(self._data.copy(), index=self._sample_ids, columns=self._feature_ids)

    def __repr__(self) -> str:
        return (
            f"FeatureMatrix(level={self._level!r}, samples={self.n_samples}, "
            f"features={self.n_features}, intervals={'yes' if self._intervals is not None else 'no'})"
        )
