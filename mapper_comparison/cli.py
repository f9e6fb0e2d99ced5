#!/usr/bin/env python3
"""
Command Line Interface for the PacBio mapper comparison report.

This module provides the main entry point for the CLI with subcommands for:
- report: Build the full report (charts and summary tables)
- summarize: Export the summary tables only
- export-merged: Write the merged per-read table to parquet or CSV
- generate-data: Write simulated per-read statistics files
- info: Show package information
- version: Show version information
"""

import argparse
import sys
import logging
from pathlib import Path
import importlib.metadata

from .config import DEFAULT_MAPPERS, DEFAULT_NAMING_PATTERN, ReportConfig, build_config
from .errors import MapperComparisonError

logger = logging.getLogger(__name__)

# Package information
PACKAGE_NAME = "pacbio-mapper-comparison"


def get_version() -> str:
    """Get the package version."""
    try:
        return importlib.metadata.version(PACKAGE_NAME)
    except importlib.metadata.PackageNotFoundError:
        from . import __version__
        return __version__


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')


def cmd_version(args: argparse.Namespace) -> None:
    """Print version information."""
    print(f"{PACKAGE_NAME} version {get_version()}")


def cmd_info(args: argparse.Namespace) -> None:
    """Print package information."""
    print(f"""
{PACKAGE_NAME} - PacBio Long-Read Mapper Comparison Report
Version: {get_version()}
Description: Compares read mappers on per-read alignment statistics across samples

Default mappers: {', '.join(DEFAULT_MAPPERS)}
Default file naming pattern: {DEFAULT_NAMING_PATTERN}

Available commands:
  report          Build the full report (charts and summary tables)
  summarize       Export the summary tables only
  export-merged   Write the merged per-read table to parquet or CSV
  generate-data   Write simulated per-read statistics files
  info            Show this information
  version         Show version

For help on a specific command, use: mapper-comparison <command> --help
""")


def _config_from_args(args: argparse.Namespace) -> ReportConfig:
    return build_config(
        config_file=args.config,
        data_dir=args.data,
        mappers=args.mappers,
        samples=args.samples,
        max_rows_per_file=args.max_rows,
        naming_pattern=args.naming_pattern,
        length_bin_width=getattr(args, "bin_width", None),
        workers=args.workers,
        output_dir=getattr(args, "output", None),
    )


def cmd_report(args: argparse.Namespace) -> None:
    """Build charts and summary tables."""
    from .report import MapperComparisonReport

    config = _config_from_args(args)
    report = MapperComparisonReport(config, progress=not args.quiet)
    result = report.write(sample_ids=args.only_samples)
    print(f"Report written to {config.output_dir} ({len(result.written)} files)")


def cmd_summarize(args: argparse.Namespace) -> None:
    """Export the summary tables without charts."""
    from .report import MapperComparisonReport

    config = _config_from_args(args)
    report = MapperComparisonReport(config, progress=not args.quiet)
    result = report.write(sample_ids=args.only_samples, with_figures=False)
    print(f"Summary tables written to {config.output_dir / 'tables'} ({len(result.written)} files)")


def cmd_export_merged(args: argparse.Namespace) -> None:
    """Write the merged per-read table."""
    from .modules.read_stats import merge_read_stats
    from .report import export_merged

    config = _config_from_args(args)
    reads = merge_read_stats(config, progress=not args.quiet)
    path = export_merged(reads, Path(args.destination))
    print(f"Merged table with {len(reads)} reads written to {path}")


def cmd_generate_data(args: argparse.Namespace) -> None:
    """Write simulated per-read statistics files."""
    from .sample_data import create_sample_data

    config = ReportConfig(
        data_dir=Path(args.output_dir),
        mappers=args.mappers or list(DEFAULT_MAPPERS),
        samples=args.samples,
        naming_pattern=args.naming_pattern or DEFAULT_NAMING_PATTERN,
    ).validate()
    created = create_sample_data(config, reads_per_file=args.reads, seed=args.seed)
    print(f"Created {len(created)} files in {config.data_dir}")


def _add_input_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--data",
        type=str,
        help="Directory containing the per-read statistics files"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="JSON config file (mappers, samples, maxRowsPerFile, namingPattern, ...)"
    )
    parser.add_argument(
        "--mappers",
        nargs="+",
        help=f"Mappers in report order (default: {' '.join(DEFAULT_MAPPERS)})"
    )
    parser.add_argument(
        "--samples",
        nargs="+",
        help="Samples in report order (default: discovered from the files of the first mapper)"
    )
    parser.add_argument(
        "--max-rows",
        type=int,
        help="Maximum number of reads read per file (default: 100000)"
    )
    parser.add_argument(
        "--naming-pattern",
        type=str,
        help=f"File name template with {{mapper}} and {{sample}} (default: {DEFAULT_NAMING_PATTERN})"
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Number of files loaded in parallel (default: 1)"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Hide the loading progress bar"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="mapper-comparison",
        description="PacBio long-read mapper comparison report CLI"
    )

    # Global options
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {get_version()}"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        metavar="COMMAND"
    )

    # Report command
    report_parser = subparsers.add_parser(
        "report",
        help="Build the full report (charts and summary tables)"
    )
    _add_input_options(report_parser)
    report_parser.add_argument(
        "--output",
        type=str,
        help="Output directory (default: report)"
    )
    report_parser.add_argument(
        "--bin-width",
        type=int,
        help="Read-length bin width in bp for the binned error rates (default: 4000)"
    )
    report_parser.add_argument(
        "--only-samples",
        nargs="+",
        help="Restrict summaries and charts to these samples"
    )
    report_parser.set_defaults(func=cmd_report)

    # Summarize command
    summarize_parser = subparsers.add_parser(
        "summarize",
        help="Export the summary tables only"
    )
    _add_input_options(summarize_parser)
    summarize_parser.add_argument(
        "--output",
        type=str,
        help="Output directory (default: report)"
    )
    summarize_parser.add_argument(
        "--bin-width",
        type=int,
        help="Read-length bin width in bp for the binned error rates (default: 4000)"
    )
    summarize_parser.add_argument(
        "--only-samples",
        nargs="+",
        help="Restrict the summaries to these samples"
    )
    summarize_parser.set_defaults(func=cmd_summarize)

    # Export merged command
    export_parser = subparsers.add_parser(
        "export-merged",
        help="Write the merged per-read table to parquet or CSV"
    )
    _add_input_options(export_parser)
    export_parser.add_argument(
        "destination",
        type=str,
        help="Output file; .csv/.tsv write text, anything else parquet"
    )
    export_parser.set_defaults(func=cmd_export_merged)

    # Generate data command
    generate_parser = subparsers.add_parser(
        "generate-data",
        help="Write simulated per-read statistics files"
    )
    generate_parser.add_argument(
        "--output-dir",
        type=str,
        default="sample_data",
        help="Output directory for the simulated files (default: sample_data)"
    )
    generate_parser.add_argument(
        "--mappers",
        nargs="+",
        help=f"Mappers to simulate (default: {' '.join(DEFAULT_MAPPERS)})"
    )
    generate_parser.add_argument(
        "--samples",
        nargs="+",
        required=True,
        help="Samples to simulate"
    )
    generate_parser.add_argument(
        "--naming-pattern",
        type=str,
        help="File name template with {mapper} and {sample}"
    )
    generate_parser.add_argument(
        "--reads",
        type=int,
        default=2000,
        help="Reads per file (default: 2000)"
    )
    generate_parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Random seed (default: 0)"
    )
    generate_parser.set_defaults(func=cmd_generate_data)

    # Info command
    info_parser = subparsers.add_parser(
        "info",
        help="Show package information"
    )
    info_parser.set_defaults(func=cmd_info)

    # Version command
    version_parser = subparsers.add_parser(
        "version",
        help="Show version information"
    )
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, 'func'):
        # No command provided, show help
        parser.print_help()
        return 1

    configure_logging(args.log_level)

    try:
        args.func(args)
    except MapperComparisonError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
