"""
Loaders for the tables handed over by external stages.

Formats (delimiter sniffed: comma, tab, semicolon or pipe):
    Feature matrix   first column sample ids, header feature ids
                     (``features_as_rows=True`` for the transposed layout)
    Attribute table  one row per feature with an ``id`` column; optional
                     alias/chromosome/start/end/strand and free columns
    Adjacency        first column row labels, header column labels
    GMT              term <TAB> description <TAB> member ...
    Membership       two columns: term, feature id (one row per pair)
    Module map       two columns: feature id, module label
    Degree ensemble  first column node id, one column per replicate

Examples:
    >>> X = load_feature_matrix(Path("cna.csv"), level='x',
    ...                         intervals=load_attribute_table(Path("cna_intervals.csv")))
    >>> universe = load_gmt(Path("go_bp.gmt"))
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from cnanet.core.feature_matrix import FeatureMatrix
from cnanet.enrichment.functional_sets import (
    DEFAULT_MAX_SET_SIZE,
    DEFAULT_MIN_SET_SIZE,
    FunctionalSetUniverse,
)
from cnanet.exceptions import ValidationError
from cnanet.network.hubs import BootstrapDegreeEnsemble

logger = logging.getLogger(__name__)

__all__ = [
    'sniff_delimiter',
    'load_feature_matrix',
    'load_attribute_table',
    'load_adjacency',
    'load_gmt',
    'load_membership',
    'load_module_assignment',
    'load_degree_ensemble',
]


def _check_file(path: Path) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise ValidationError(f"Path is not a file: {path}")
    return path


def sniff_delimiter(path: Path, sample_size: int = 8192) -> str:
    """Detect the delimiter; falls back to the most frequent candidate in the header."""
    with open(path, 'r', encoding='utf-8', errors='ignore') as f:
        sample = f.read(sample_size)

    try:
        return csv.Sniffer().sniff(sample, delimiters='\t,;|').delimiter
    except csv.Error:
        pass

    first_line = sample.split('\n')[0]
    counts = {d: first_line.count(d) for d in ('\t', ',', ';', '|')}
    if max(counts.values()) == 0:
        # single-column file
        return ','
    return max(counts, key=counts.get)


def _read_table(path: Path, **kwargs) -> pd.DataFrame:
    path = _check_file(path)
    try:
        return pd.read_csv(path, sep=sniff_delimiter(path), **kwargs)
    except pd.errors.EmptyDataError as e:
        raise ValidationError(f"File is empty: {path}") from e
    except pd.errors.ParserError as e:
        raise ValidationError(f"Failed to parse {path}: {e}") from e


def _numeric(frame: pd.DataFrame, path: Path) -> pd.DataFrame:
    try:
        return frame.apply(pd.to_numeric)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Non-numeric values in {path}: {e}") from e


def load_feature_matrix(
    path: Path,
    level: str = 'x',
    intervals: Optional[pd.DataFrame] = None,
    features_as_rows: bool = False,
) -> FeatureMatrix:
    """
    Load a numeric samples × features matrix.

    Args:
        path: CSV/TSV file
        level: 'x' (predictors) or 'y' (responses)
        intervals: Attribute table (as from :func:`load_attribute_table`);
            indexed by id when passed to the FeatureMatrix
        features_as_rows: File stores features × samples

    Raises:
        FileNotFoundError: Missing file
        ValidationError: Empty, malformed or non-numeric content
    """
    frame = _read_table(path, index_col=0)
    if frame.empty:
        raise ValidationError(f"Matrix file contains no data: {path}")
    frame = _numeric(frame, path)
    if features_as_rows:
        frame = frame.T

    if intervals is not None and 'id' in intervals.columns:
        intervals = intervals.set_index(intervals['id'].astype(str))

    matrix = FeatureMatrix.from_frame(frame, level=level, intervals=intervals)
    logger.info(f"Loaded {matrix.n_samples} samples x {matrix.n_features} level-{level} features from {path}")
    return matrix


def load_attribute_table(path: Path, id_column: str = 'id') -> pd.DataFrame:
    """Load a per-feature attribute table; ids are read as strings."""
    table = _read_table(path, dtype={id_column: str})
    if id_column not in table.columns:
        raise ValidationError(f"Attribute table {path} has no '{id_column}' column")
    if id_column != 'id':
        table = table.rename(columns={id_column: 'id'})
    for column in ('start', 'end'):
        if column in table.columns:
            table[column] = pd.to_numeric(table[column], errors='coerce').astype('Int64')
    return table


def load_adjacency(path: Path) -> pd.DataFrame:
    """Load a labelled adjacency matrix (row labels in the first column)."""
    frame = _read_table(path, index_col=0)
    frame = _numeric(frame, path)
    frame.index = frame.index.astype(str)
    frame.columns = frame.columns.astype(str)
    return frame


def load_gmt(
    path: Path,
    min_size: int = DEFAULT_MIN_SET_SIZE,
    max_size: int = DEFAULT_MAX_SET_SIZE,
) -> FunctionalSetUniverse:
    """Load a GMT file, keeping sets within the size bounds."""
    path = _check_file(path)
    mapping: Dict[str, List[str]] = {}
    names: Dict[str, str] = {}
    with open(path, 'r', encoding='utf-8') as f:
        for line_no, line in enumerate(f, start=1):
            fields = line.rstrip('\n\r').split('\t')
            if not fields[0].strip():
                continue
            if len(fields) < 2:
                raise ValidationError(f"{path}:{line_no}: GMT line needs a term and a description")
            term = fields[0].strip()
            if term in mapping:
                raise ValidationError(f"{path}:{line_no}: duplicate term {term!r}")
            names[term] = fields[1].strip() or term
            mapping[term] = [m.strip() for m in fields[2:] if m.strip()]
    return FunctionalSetUniverse.from_mapping(mapping, min_size=min_size, max_size=max_size, names=names)


def load_membership(
    path: Path,
    term_column: str = 'term',
    id_column: str = 'id',
    min_size: int = DEFAULT_MIN_SET_SIZE,
    max_size: int = DEFAULT_MAX_SET_SIZE,
) -> FunctionalSetUniverse:
    """Load a long-format (term, id) membership table."""
    table = _read_table(path, dtype=str)
    missing = {term_column, id_column} - set(table.columns)
    if missing:
        raise ValidationError(f"Membership table {path} lacks columns {sorted(missing)}")
    table = table.dropna(subset=[term_column, id_column])
    mapping = {
        term: sorted(set(group[id_column]))
        for term, group in table.groupby(term_column, sort=False)
    }
    return FunctionalSetUniverse.from_mapping(mapping, min_size=min_size, max_size=max_size)


def load_module_assignment(
    path: Path,
    id_column: str = 'id',
    module_column: str = 'module',
) -> Dict[str, str]:
    """Load an external node → module map."""
    table = _read_table(path, dtype=str)
    missing = {id_column, module_column} - set(table.columns)
    if missing:
        raise ValidationError(f"Module table {path} lacks columns {sorted(missing)}")
    if table[id_column].duplicated().any():
        raise ValidationError(f"Module table {path} assigns a node more than once")
    return dict(zip(table[id_column], table[module_column]))


def load_degree_ensemble(path: Path, level: str = 'x') -> BootstrapDegreeEnsemble:
    """Load a nodes × replicates degree table."""
    frame = _numeric(_read_table(path, index_col=0), path)
    if frame.isna().any().any():
        frame = frame.fillna(0)
    return BootstrapDegreeEnsemble.from_table(frame.astype(np.int64), level=level)
