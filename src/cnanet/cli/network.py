"""
cnanet network - build and annotate the predictor/response network.

Writes:
    network.json                node-link JSON with every annotation
    hubs.csv                    ranked hub records
    cis_trans.csv               per-predictor cis/trans summary
    modules.csv                 per-module summary
    cross_module_edges.csv      edges joining different modules
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from cnanet.cli._validators import _non_negative_int, _positive_int
from cnanet.exceptions import ValidationError

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the network subcommand."""
    parser = subparsers.add_parser(
        "network",
        help="Build and annotate the network (hubs, cis/trans, modules)",
        description="Assemble the network from fitted A_xy/A_yy and annotate it",
    )
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Path to YAML/JSON config file (CLI args override config values)")
    parser.add_argument("--a-xy", type=Path, required=True,
                        help="Predictor x response adjacency CSV (labelled)")
    parser.add_argument("--a-yy", type=Path, default=None,
                        help="Response x response adjacency CSV (symmetric, zero diagonal)")
    parser.add_argument("--predictors", type=Path, required=True,
                        help="Predictor attribute table")
    parser.add_argument("--responses", type=Path, required=True,
                        help="Response attribute table")
    parser.add_argument("--ensemble", type=Path, default=None,
                        help="Bootstrap degree table (nodes x replicates)")
    parser.add_argument("--ensemble-level", choices=["x", "y"], default="x",
                        help="Node level of the degree ensemble (default: x)")
    parser.add_argument("--module-assignment", type=Path, default=None,
                        help="External node -> module table (id, module); skips detection")
    parser.add_argument("--output", "-o", type=Path, required=True,
                        help="Output directory")
    parser.add_argument("--cis-window", type=_non_negative_int, default=None,
                        help="Cis window in bp, inclusive (default: 2000000)")
    parser.add_argument("--module-method", choices=["edge_betweenness", "greedy_modularity"], default=None,
                        help="Community detection algorithm (default: edge_betweenness)")
    parser.add_argument("--min-module-size", type=_positive_int, default=None,
                        help="Minimum module size for reporting (default: 15)")
    parser.add_argument("--max-splits", type=_positive_int, default=None,
                        help="Stop Girvan-Newman after this many splits")
    parser.add_argument("--top", type=_positive_int, default=None,
                        help="Write only the top N hubs to hubs.csv")
    parser.set_defaults(func=run_network)


def run_network(args: argparse.Namespace) -> int:
    """Execute the network command."""
    from cnanet.cli.config import resolve_config
    from cnanet.io.loaders import (
        load_adjacency,
        load_attribute_table,
        load_degree_ensemble,
        load_module_assignment,
    )
    from cnanet.io.writers import write_graph_json, write_records
    from cnanet.pipeline import annotate_network, build_network

    try:
        args, config = resolve_config(args)
        graph = build_network(
            load_adjacency(args.a_xy),
            load_adjacency(args.a_yy) if args.a_yy else None,
            load_attribute_table(args.predictors),
            load_attribute_table(args.responses),
        )
        ensemble = load_degree_ensemble(args.ensemble, level=args.ensemble_level) if args.ensemble else None
        assignment = load_module_assignment(args.module_assignment) if args.module_assignment else None
        annotation = annotate_network(graph, config, ensemble=ensemble, module_assignment=assignment)

        out = args.output
        out.mkdir(parents=True, exist_ok=True)
        write_graph_json(graph, out / "network.json")
        write_records(annotation.hubs.top(args.top), out / "hubs.csv",
                      columns=list(annotation.hubs.to_frame().columns))
        write_records(annotation.cis_trans.records, out / "cis_trans.csv",
                      columns=list(annotation.cis_trans.to_frame().columns))
        write_records(annotation.modules.records(graph), out / "modules.csv")
        annotation.modules.cross_module_table().to_csv(out / "cross_module_edges.csv", index=False)
    except (FileNotFoundError, ValidationError) as e:
        logger.error(str(e))
        return 1

    logger.info(f"{graph!r}; outputs in {out}")
    return 0
