"""
CLI Module for eNet enhancer networks
"""

import argparse
import sys

from .exceptions import EnetError
from .utils.logging import setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="enet",
        description="Enhancer networks and regulatory modes from single-cell multi-omics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run the full pipeline
    enet run --config config/config.yaml --atac data/atac/ --rna data/rna/ \\
        --embedding data/umap.tsv --tss data/hg38_tss.tsv --output results/

    # Re-classify regulatory modes with other cutoffs
    enet mode --metrics results/network_complexity.tsv --size-cutoff 8 \\
        --output results/network_modes.tsv
        """
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--log-file", default=None, help="Optional log file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run full pipeline")
    run_parser.add_argument("--config", default=None, help="Configuration file")
    run_parser.add_argument("--atac", required=True, help="Peak x cell matrix directory")
    run_parser.add_argument("--rna", required=True, help="Gene x cell matrix directory")
    run_parser.add_argument("--embedding", required=True, help="Cell embedding table")
    run_parser.add_argument("--metadata", default=None, help="Optional cell metadata table")
    run_parser.add_argument("--tss", required=True, help="TSS annotation table")
    run_parser.add_argument("--chrom-sizes", default=None, help="Chromosome sizes file")
    run_parser.add_argument("--genome", default=None, help="Override the configured genome")
    run_parser.add_argument("--cores", type=int, default=None, help="Number of workers")
    run_parser.add_argument("--output", required=True, help="Output directory")

    # Mode command
    mode_parser = subparsers.add_parser("mode", help="Classify regulatory modes")
    mode_parser.add_argument("--metrics", required=True, help="Network complexity table")
    mode_parser.add_argument("--size-cutoff", type=float, default=5, help="Network size cutoff")
    mode_parser.add_argument(
        "--connectivity-cutoff", type=float, default=1, help="Network connectivity cutoff"
    )
    mode_parser.add_argument("--n-labels", type=int, default=20, help="Genes to label")
    mode_parser.add_argument("--output", required=True, help="Output file")

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logger = setup_logger("enet", log_file=args.log_file, level=args.log_level)

    try:
        if args.command == "run":
            from .pipeline import run_pipeline
            result = run_pipeline(
                args.config,
                args.atac,
                args.rna,
                args.embedding,
                args.tss,
                args.output,
                chrom_sizes_path=args.chrom_sizes,
                n_workers=args.cores,
                genome=args.genome,
                cell_metadata_path=args.metadata,
            )
            logger.info(f"{len(result.networks)} enhancer networks written to {args.output}")

        elif args.command == "mode":
            from .enhancer_network import classify_modes, mode_summary
            from .utils.io import read_table, write_table
            modes = classify_modes(
                read_table(args.metrics),
                size_cutoff=args.size_cutoff,
                connectivity_cutoff=args.connectivity_cutoff,
                n_labels=args.n_labels,
            )
            write_table(modes, args.output)
            print(mode_summary(modes).to_string(index=False))

    except EnetError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
