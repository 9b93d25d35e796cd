"""
Writers for reports and the annotated network.

Records (hub rankings, cis/trans summaries, module enrichment) are ordered
lists of flat dicts; they are written through pandas so the output opens
in R, Excel or pandas alike. List-valued fields are joined with ';'.

The network is written as networkx node-link JSON, atomically, so an
interrupted export never leaves a truncated file behind.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from cnanet.core.graph import NetworkGraph
from cnanet.utils.fileio import atomic_write_json, atomic_write_text, read_json

logger = logging.getLogger(__name__)

__all__ = [
    'write_records',
    'write_graph_json',
    'read_graph_json',
    'write_json',
]

LIST_SEPARATOR = ';'


def _flatten(value: Any) -> Any:
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value) if isinstance(value, (set, frozenset)) else value
        return LIST_SEPARATOR.join(str(v) for v in items)
    return value


def write_records(
    records: Sequence[Dict[str, Any]],
    path: Path,
    columns: Optional[List[str]] = None,
) -> None:
    """
    Write records to CSV, or TSV when the suffix is .tsv/.txt.

    Args:
        records: Ordered list of flat dicts
        path: Output file; parent directories are created
        columns: Column order (defaults to first-seen key order)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rows = [{k: _flatten(v) for k, v in r.items()} for r in records]
    frame = pd.DataFrame(rows, columns=columns)
    sep = '\t' if path.suffix.lower() in ('.tsv', '.txt') else ','
    atomic_write_text(path, frame.to_csv(sep=sep, index=False))
    logger.info(f"Wrote {len(frame)} records to {path}")


def write_graph_json(graph: NetworkGraph, path: Path) -> None:
    """Write the graph as node-link JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write_json(path, graph.to_node_link())
    logger.info(f"Wrote network ({graph.number_of_nodes()} nodes, {graph.number_of_edges()} edges) to {path}")


def read_graph_json(path: Path) -> NetworkGraph:
    """Read a graph written by :func:`write_graph_json`."""
    return NetworkGraph.from_node_link(read_json(path))


def write_json(data: Any, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write_json(path, data)
