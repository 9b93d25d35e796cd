"""
cnanet cluster - collapse multicollinear predictor intervals.

Reads the predictor matrix (samples × intervals) and, optionally, its
attribute table and a fitted A_xy. Writes:

    cluster_assignments.csv   feature_id, cluster, reduced_id
    reduced_matrix.csv        samples × reduced predictors (cluster means)
    predictors.collapsed.csv  reduced attribute table (with --intervals)
    A_xy.collapsed.csv        merged predictor rows (with --adjacency)
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from cnanet.cli._validators import _n_jobs, _non_negative_float, _positive_int
from cnanet.exceptions import ValidationError

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the cluster subcommand."""
    parser = subparsers.add_parser(
        "cluster",
        help="Collapse multicollinear predictor intervals",
        description="Density-based clustering of predictors on 1 - |correlation|",
    )
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Path to YAML/JSON config file (CLI args override config values)")
    parser.add_argument("--input", "-i", type=Path, required=True,
                        help="Predictor matrix CSV (samples x features)")
    parser.add_argument("--intervals", type=Path, default=None,
                        help="Predictor attribute table (id, chromosome, start, end, ...)")
    parser.add_argument("--adjacency", type=Path, default=None,
                        help="Fitted A_xy CSV to collapse onto the clusters")
    parser.add_argument("--output", "-o", type=Path, required=True,
                        help="Output directory")
    parser.add_argument("--features-as-rows", action="store_true",
                        help="Input matrix stores features as rows")
    parser.add_argument("--eps", type=_non_negative_float, default=None,
                        help="Reachability radius on the 1 - |r| scale (default: 0.001)")
    parser.add_argument("--min-pts", type=_positive_int, default=None,
                        help="Minimum neighbourhood size including the point (default: 2)")
    parser.add_argument("--chunk-size", type=_positive_int, default=None,
                        help="Columns per correlation block (default: 500)")
    parser.add_argument("--n-jobs", type=_n_jobs, default=None,
                        help="Worker processes (default: 1, -1 = all CPUs)")
    parser.set_defaults(func=run_cluster)


def run_cluster(args: argparse.Namespace) -> int:
    """Execute the cluster command."""
    from cnanet.cli.config import resolve_config
    from cnanet.io.loaders import load_adjacency, load_attribute_table, load_feature_matrix
    from cnanet.io.writers import write_records
    from cnanet.pipeline import cluster_predictors
    from cnanet.utils.fileio import atomic_write_text

    try:
        args, config = resolve_config(args)
        intervals = load_attribute_table(args.intervals) if args.intervals else None
        matrix = load_feature_matrix(
            args.input, level='x', intervals=intervals, features_as_rows=args.features_as_rows
        )
        clustering = cluster_predictors(matrix, config)

        out = args.output
        out.mkdir(parents=True, exist_ok=True)
        write_records(clustering.assignment_records(), out / "cluster_assignments.csv")
        atomic_write_text(out / "reduced_matrix.csv", clustering.reduced_matrix().to_frame().to_csv())

        if intervals is not None:
            collapsed = clustering.collapse_attributes(intervals)
            atomic_write_text(out / "predictors.collapsed.csv", collapsed.to_csv(index=False))
        if args.adjacency:
            collapsed_adj = clustering.collapse_adjacency(load_adjacency(args.adjacency))
            atomic_write_text(out / "A_xy.collapsed.csv", collapsed_adj.to_csv())
    except (FileNotFoundError, ValidationError) as e:
        logger.error(str(e))
        return 1

    logger.info(
        f"{matrix.n_features} predictors -> {len(clustering.output_ids)} "
        f"({clustering.n_clusters} collapsed clusters); outputs in {out}"
    )
    return 0
