"""
cnanet enrich - functional enrichment of an annotated network.

Reads network.json from ``cnanet network`` and a functional-set universe
(GMT, or a long-format term/id membership table). Writes:

    module_enrichment.csv     every tested (module, term) pair
    neighborhoods.csv         observed GO-neighbour proportion per hub
    neighborhood_null.json    observed vs. null summary (seed included)
    network.annotated.json    final, frozen network with functional tags
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from cnanet.cli._validators import _fdr_threshold, _n_jobs, _non_negative_int, _positive_int
from cnanet.exceptions import ValidationError

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the enrich subcommand."""
    parser = subparsers.add_parser(
        "enrich",
        help="Module enrichment and hub neighbourhood null model",
        description="Hypergeometric module enrichment (BH-corrected) and permutation-tested "
                    "hub neighbourhood coherence",
    )
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Path to YAML/JSON config file (CLI args override config values)")
    parser.add_argument("--network", type=Path, required=True,
                        help="network.json written by 'cnanet network'")
    universe = parser.add_mutually_exclusive_group(required=True)
    universe.add_argument("--gmt", type=Path, help="Functional sets in GMT format")
    universe.add_argument("--membership", type=Path,
                          help="Long-format table with 'term' and 'id' columns")
    parser.add_argument("--output", "-o", type=Path, required=True,
                        help="Output directory")
    parser.add_argument("--fdr", type=_fdr_threshold, default=None,
                        help="Benjamini-Hochberg threshold, inclusive (default: 0.05)")
    parser.add_argument("--min-set-size", type=_positive_int, default=None,
                        help="Smallest functional set kept (default: 15)")
    parser.add_argument("--max-set-size", type=_positive_int, default=None,
                        help="Largest functional set kept (default: 300)")
    parser.add_argument("--min-module-size", type=_positive_int, default=None,
                        help="Minimum module size tested (default: 15)")
    parser.add_argument("--n-trials", type=_non_negative_int, default=None,
                        help="Null-model trials (default: 100)")
    parser.add_argument("--null-model", choices=["bipartite_swap", "configuration_model"], default=None,
                        help="Degree-preserving randomisation (default: bipartite_swap)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Root seed for the null model (drawn and logged when omitted)")
    parser.add_argument("--top-hubs", type=_positive_int, default=None,
                        help="Score only the N best-ranked predictors (default: all)")
    parser.add_argument("--checkpoint", type=Path, default=None,
                        help="Checkpoint file for resumable null-model runs")
    parser.add_argument("--checkpoint-every", type=_positive_int, default=None,
                        help="Completed trials between checkpoint writes (default: 1)")
    parser.add_argument("--n-jobs", type=_n_jobs, default=None,
                        help="Worker processes (default: 1, -1 = all CPUs)")
    parser.add_argument("--progress", action="store_true",
                        help="Show a progress bar for null trials")
    parser.set_defaults(func=run_enrich)


def run_enrich(args: argparse.Namespace) -> int:
    """Execute the enrich command."""
    from cnanet.cli.config import resolve_config
    from cnanet.enrichment.module_enrichment import RECORD_COLUMNS
    from cnanet.io.loaders import load_gmt, load_membership
    from cnanet.io.writers import read_graph_json, write_graph_json, write_json, write_records
    from cnanet.pipeline import run_enrichment

    try:
        args, config = resolve_config(args)
        enr = config.enrichment
        graph = read_graph_json(args.network)
        if args.gmt:
            universe = load_gmt(args.gmt, min_size=enr.min_set_size, max_size=enr.max_set_size)
        else:
            universe = load_membership(args.membership, min_size=enr.min_set_size, max_size=enr.max_set_size)

        report = run_enrichment(
            graph,
            universe,
            config,
            checkpoint_path=args.checkpoint,
            progress=args.progress,
        )

        out = args.output
        out.mkdir(parents=True, exist_ok=True)
        write_records(report.modules.records, out / "module_enrichment.csv", columns=RECORD_COLUMNS)
        write_records(report.neighborhoods.records(graph), out / "neighborhoods.csv",
                      columns=['id', 'alias', 'proportion'])
        write_json(
            {
                **report.neighborhoods.summary(),
                'null_values': [None if v != v else v for v in report.neighborhoods.null_values],
                'skipped': [list(s) for s in report.neighborhoods.skipped],
            },
            out / "neighborhood_null.json",
        )
        write_graph_json(graph, out / "network.annotated.json")
    except (FileNotFoundError, ValidationError) as e:
        logger.error(str(e))
        return 1

    logger.info(
        f"{len(report.modules.significant)} significant (module, term) pairs; "
        f"neighbourhood p={report.neighborhoods.empirical_p}; outputs in {out}"
    )
    return 0
