"""Application entry point and orchestration for GitHub productivity metrics."""

from __future__ import annotations

import logging
import sys

from .cache import RecordCache
from .cli import parse_args
from .config import Config, load_config
from .dora import calculate_dora_metrics
from .errors import ApiError, AuthenticationError, ConfigurationError, DataValidationError
from .fetcher import collect_pull_requests, fetch_project_board, fetch_project_iterations
from .github_client import GitHubClient
from .issues import aggregate_issues
from .models import MetricsBundle
from .projects import aggregate_iterations, aggregate_project_board
from .pull_requests import aggregate_pull_requests
from .report import generate_report, write_csv, write_json

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_UNEXPECTED_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_AUTHENTICATION_ERROR = 3
EXIT_API_ERROR = 4
EXIT_DATA_VALIDATION_ERROR = 5


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_metrics_bundle(client: GitHubClient, config: Config) -> MetricsBundle:
    """Fetch every record type for the configured window and aggregate it.

    Aggregators run independently over fully materialized collections. The
    project board and iteration sections are only computed when configured,
    and stay ``None`` when the named project cannot be resolved.
    """
    owner, repo = config.owner, config.repo
    start, end = config.start_date, config.end_date

    pull_requests = collect_pull_requests(
        client, owner, repo, start, end, max_workers=config.max_workers
    )
    issues = client.list_issues(owner, repo, start, end)
    deployments = client.list_deployments(owner, repo, start, end)
    releases = client.list_releases(owner, repo, start, end)

    pr_report = aggregate_pull_requests(pull_requests)
    issue_report = aggregate_issues(issues)
    dora_metrics = calculate_dora_metrics(pull_requests, issues, deployments, releases)

    project_metrics = None
    if config.project_name:
        columns = fetch_project_board(client, owner, repo, config.project_name)
        if columns is not None:
            project_metrics = aggregate_project_board(columns, config.done_column)

    iteration_metrics = None
    if config.project_v2_number is not None:
        items = fetch_project_iterations(
            client,
            owner,
            config.project_v2_number,
            config.iteration_field,
            config.status_field,
        )
        if items is not None:
            iteration_metrics = aggregate_iterations(items, config.done_status)

    return MetricsBundle(
        prMetrics=pr_report.overall,
        issueMetrics=issue_report.overall,
        prContributors=pr_report.contributors,
        issueContributors=issue_report.contributors,
        prTimeSeries=pr_report.time_series,
        issueTimeSeries=issue_report.time_series,
        doraMetrics=dora_metrics,
        projectMetrics=project_metrics,
        iterationMetrics=iteration_metrics,
    )


def orchestrate_metrics_generation() -> int:
    """Run the full metrics workflow and map failures to exit codes.

    Returns:
        ``0`` on success, ``2`` for configuration errors, ``3`` for
        authentication errors, ``4`` for GitHub API errors, ``5`` for invalid
        payloads, and ``1`` for anything unexpected. No report is printed when
        any step fails.
    """
    try:
        args = parse_args()
        configure_logging(verbose=args.verbose)

        config = load_config(
            repo=args.repo,
            start_date=args.start_date,
            end_date=args.end_date,
            cache_dir=args.cache_dir,
            max_workers=args.max_workers,
            project_name=args.project_name,
            done_column=args.done_column,
            project_v2_number=args.project_v2_number,
            iteration_field=args.iteration_field,
            status_field=args.status_field,
            done_status=args.done_status,
        )

        cache = RecordCache(config.cache_dir)
        if args.clear_cache:
            cache.clear()

        client = GitHubClient(token=config.token, cache=cache)

        print(
            f"Fetching records for repository '{config.repo_slug}' "
            f"from {config.start_date.date()} to {config.end_date.date()}..."
        )
        bundle = build_metrics_bundle(client, config)

        print(generate_report(repo_name=config.repo_slug, bundle=bundle))

        if args.output:
            writer = write_csv if args.output_format == "csv" else write_json
            output_path = writer(args.output, bundle)
            print(f"Metrics written to {output_path}")

        return EXIT_SUCCESS
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except AuthenticationError as exc:
        logger.error("Authentication error: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_AUTHENTICATION_ERROR
    except ApiError as exc:
        logger.error("GitHub API error: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_API_ERROR
    except DataValidationError as exc:
        logger.error("Invalid GitHub payload: %s", exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_DATA_VALIDATION_ERROR
    except Exception:
        logger.exception("Unexpected error during metrics generation")
        return EXIT_UNEXPECTED_ERROR


def main() -> int:
    return orchestrate_metrics_generation()


if __name__ == "__main__":
    raise SystemExit(main())
