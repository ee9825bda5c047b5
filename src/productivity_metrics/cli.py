"""Command-line argument parsing for the GitHub productivity metrics tool."""

from __future__ import annotations

import argparse

from .config import DEFAULT_MAX_WORKERS


def _positive_int(value: str) -> int:
    """Parse and validate a positive integer CLI value.

    Args:
        value: Raw command-line argument value.

    Returns:
        The validated positive integer.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive integer.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")

    return parsed


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for metrics generation.

    Returns:
        Parsed CLI arguments containing the repository, analysis window,
        optional project settings, and cache and output options.
    """
    parser = argparse.ArgumentParser(
        prog="github-productivity-metrics",
        description=(
            "Measure pull request cycle time, issue resolution time, DORA metrics, "
            "and project throughput for a GitHub repository."
        ),
    )

    parser.add_argument(
        "--repo",
        required=True,
        help="Repository to analyze, in owner/repo form.",
    )
    parser.add_argument(
        "--start-date",
        required=True,
        help="First day of the analysis window (YYYY-MM-DD).",
    )
    parser.add_argument(
        "--end-date",
        required=True,
        help="Last day of the analysis window (YYYY-MM-DD).",
    )
    parser.add_argument(
        "--project-name",
        default=None,
        help="Classic project board to analyze (optional).",
    )
    parser.add_argument(
        "--done-column",
        default="Done",
        help="Project board column holding completed cards (default: Done).",
    )
    parser.add_argument(
        "--project-v2-number",
        type=_positive_int,
        default=None,
        help="Project (v2) number for iteration throughput (optional).",
    )
    parser.add_argument(
        "--iteration-field",
        default="Iteration",
        help="Project (v2) iteration field name (default: Iteration).",
    )
    parser.add_argument(
        "--status-field",
        default="Status",
        help="Project (v2) status field name (default: Status).",
    )
    parser.add_argument(
        "--done-status",
        default="Done",
        help="Project (v2) status value marking completed items (default: Done).",
    )
    parser.add_argument(
        "--max-workers",
        type=_positive_int,
        default=DEFAULT_MAX_WORKERS,
        help=f"Maximum simultaneous detail requests (default: {DEFAULT_MAX_WORKERS}).",
    )
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Record cache directory (default: $PRODUCTIVITY_CACHE_DIR or .cache).",
    )
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="Delete the record cache before fetching.",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write the metrics to this path in --output-format.",
    )
    parser.add_argument(
        "--output-format",
        choices=("json", "csv"),
        default="json",
        help="File format for --output: the full bundle as JSON, or overall metrics as CSV "
        "(default: json).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser.parse_args()
