"""
cnanet CLI - copy-number regulatory network post-processing.

Commands:
    cnanet cluster   - Collapse multicollinear predictor intervals
    cnanet network   - Build and annotate the network (hubs, cis/trans, modules)
    cnanet enrich    - Module enrichment and hub neighbourhood null model
"""

import argparse
import logging
import sys
from typing import List, Optional


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for cnanet."""
    parser = argparse.ArgumentParser(
        prog="cnanet",
        description="Post-processing of fitted copy-number to abundance networks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  cluster   Collapse multicollinear predictor intervals
  network   Build and annotate the network (hubs, cis/trans, modules)
  enrich    Module enrichment and hub neighbourhood null model

Examples:
  cnanet cluster --input cna.csv --intervals cna_intervals.csv --adjacency A_xy.csv --output results/
  cnanet network --a-xy results/A_xy.collapsed.csv --a-yy A_yy.csv \\
      --predictors results/predictors.collapsed.csv --responses responses.csv --output results/
  cnanet enrich --network results/network.json --gmt go_bp.gmt --seed 42 --output results/
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug-level logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from cnanet.cli import cluster, network, enrich
    cluster.register_parser(subparsers)
    network.register_parser(subparsers)
    enrich.register_parser(subparsers)

    raw_args = sys.argv[1:] if args is None else list(args)
    parsed_args = parser.parse_args(raw_args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    parsed_args.raw_args = raw_args

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
