"""Configuration parsing and validation for the GitHub productivity metrics tool."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Optional, Tuple

from .errors import AuthenticationError, ConfigurationError

DEFAULT_CACHE_DIR = ".cache"
DEFAULT_MAX_WORKERS = 8


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the metrics generator."""

    owner: str
    repo: str
    start_date: datetime
    end_date: datetime
    token: str
    cache_dir: Path
    max_workers: int = DEFAULT_MAX_WORKERS
    project_name: Optional[str] = None
    done_column: str = "Done"
    project_v2_number: Optional[int] = None
    iteration_field: str = "Iteration"
    status_field: str = "Status"
    done_status: str = "Done"

    @property
    def repo_slug(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_repo_slug(slug: str) -> Tuple[str, str]:
    """Split an ``owner/repo`` slug into its two parts.

    Raises:
        ConfigurationError: If the slug is not exactly ``owner/repo``.
    """
    parts = slug.strip().split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ConfigurationError(
            f"Invalid repository '{slug}': expected the form 'owner/repo'."
        )
    return parts[0], parts[1]


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string.

    Raises:
        ConfigurationError: If the value is not a valid calendar date.
    """
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid date '{value}': expected the form YYYY-MM-DD."
        ) from exc


def load_config(
    repo: str,
    start_date: str,
    end_date: str,
    cache_dir: Optional[str] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    project_name: Optional[str] = None,
    done_column: str = "Done",
    project_v2_number: Optional[int] = None,
    iteration_field: str = "Iteration",
    status_field: str = "Status",
    done_status: str = "Done",
) -> Config:
    """Build and validate application configuration.

    The analysis window covers whole UTC days: ``start_date`` at midnight
    through the last microsecond of ``end_date``.

    Args:
        repo: Repository slug in ``owner/repo`` form.
        start_date: First day of the analysis window (``YYYY-MM-DD``).
        end_date: Last day of the analysis window (``YYYY-MM-DD``).
        cache_dir: Record cache directory. Falls back to the
            ``PRODUCTIVITY_CACHE_DIR`` environment variable, then ``.cache``.
        max_workers: Maximum simultaneous in-flight detail requests.
        project_name: Optional classic project board to analyze.
        done_column: Name of the board column holding completed cards.
        project_v2_number: Optional project (v2) number for iteration metrics.
        iteration_field: Name of the project (v2) iteration field.
        status_field: Name of the project (v2) single-select status field.
        done_status: Status option that marks an item as completed.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigurationError: If the repository slug, dates, or worker count are invalid.
        AuthenticationError: If ``GITHUB_TOKEN`` is not configured.
    """
    owner, repo_name = parse_repo_slug(repo)

    start_day = parse_date(start_date)
    end_day = parse_date(end_date)
    if start_day > end_day:
        raise ConfigurationError(
            f"Invalid date range: start date {start_day} is after end date {end_day}."
        )

    if max_workers <= 0:
        raise ConfigurationError(
            "Invalid value for 'max_workers': expected an integer greater than 0."
        )

    token: str = os.getenv("GITHUB_TOKEN", "").strip()
    if not token:
        raise AuthenticationError(
            "Missing required GitHub Personal Access Token. "
            "Set the 'GITHUB_TOKEN' environment variable before running the metrics generator."
        )

    resolved_cache_dir = cache_dir or os.getenv("PRODUCTIVITY_CACHE_DIR") or DEFAULT_CACHE_DIR

    return Config(
        owner=owner,
        repo=repo_name,
        start_date=datetime.combine(start_day, time.min, tzinfo=timezone.utc),
        end_date=datetime.combine(end_day, time.max, tzinfo=timezone.utc),
        token=token,
        cache_dir=Path(resolved_cache_dir),
        max_workers=max_workers,
        project_name=project_name,
        done_column=done_column,
        project_v2_number=project_v2_number,
        iteration_field=iteration_field,
        status_field=status_field,
        done_status=done_status,
    )
