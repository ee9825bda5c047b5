"""Project board and iteration throughput aggregation.

Classic boards use a proxy lead time: the time between a done card's creation
and its last update, since the moment a card entered the column is not
available. Project (v2) iterations report completed items per week.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from .models import (
    IterationMetrics,
    IterationValue,
    ProjectCard,
    ProjectColumn,
    ProjectMetrics,
    ProjectV2Item,
)
from .stats import hours_between, safe_average
from .timeseries import week_key

logger = logging.getLogger(__name__)

BoardColumn = Tuple[ProjectColumn, List[ProjectCard]]


def find_column(columns: List[BoardColumn], name: str) -> Optional[BoardColumn]:
    """Return the column whose name matches ``name`` case-insensitively."""
    normalized = name.strip().lower()
    for column, cards in columns:
        if column.name.strip().lower() == normalized:
            return column, cards
    return None


def aggregate_project_board(
    columns: List[BoardColumn],
    done_column: str,
) -> Optional[ProjectMetrics]:
    """Compute completion and lead-time statistics for a classic project board.

    Args:
        columns: Every column of the board paired with its cards.
        done_column: Name of the column holding completed cards.

    Returns:
        Board metrics, or ``None`` if no column is named ``done_column``.
    """
    done = find_column(columns, done_column)
    if done is None:
        logger.warning("Done column not found on project board", extra={"done_column": done_column})
        return None

    _, done_cards = done
    total_cards = sum(len(cards) for _, cards in columns)

    total_lead_time = 0.0
    lead_time_samples = 0
    weekly_completions: Dict[str, int] = {}

    for card in done_cards:
        lead_time = hours_between(card.created_at, card.updated_at)
        if lead_time is not None:
            total_lead_time += lead_time
            lead_time_samples += 1
        if card.updated_at is not None:
            week = week_key(card.updated_at)
            weekly_completions[week] = weekly_completions.get(week, 0) + 1

    return ProjectMetrics(
        totalCards=total_cards,
        completedCards=len(done_cards),
        avgCardLeadTime=safe_average(total_lead_time, lead_time_samples),
        throughput=safe_average(sum(weekly_completions.values()), len(weekly_completions)),
    )


def _iteration_metrics(
    iteration: IterationValue,
    items: List[ProjectV2Item],
    done_status: str,
) -> IterationMetrics:
    normalized_done = done_status.strip().lower()
    completed_items = sum(
        1
        for item in items
        if item.status is not None and item.status.strip().lower() == normalized_done
    )

    duration_in_weeks = iteration.duration / 7
    throughput = completed_items / duration_in_weeks if iteration.duration > 0 else 0.0

    return IterationMetrics(
        iterationId=iteration.iteration_id,
        title=iteration.title,
        startDate=iteration.start_date,
        endDate=iteration.start_date + timedelta(days=iteration.duration),
        totalItems=len(items),
        completedItems=completed_items,
        throughput=throughput,
    )


def aggregate_iterations(items: List[ProjectV2Item], done_status: str) -> List[IterationMetrics]:
    """Group project (v2) items by iteration and compute per-iteration throughput.

    Items without an iteration assignment are ignored. Story points are not
    tracked and are always reported as ``0``.

    Returns:
        Iteration metrics sorted by start date, then iteration ID.
    """
    groups: Dict[str, Tuple[IterationValue, List[ProjectV2Item]]] = {}
    for item in items:
        if item.iteration is None:
            continue
        _, group_items = groups.setdefault(item.iteration.iteration_id, (item.iteration, []))
        group_items.append(item)

    metrics = [
        _iteration_metrics(iteration, group_items, done_status)
        for iteration, group_items in groups.values()
    ]
    metrics.sort(key=lambda iteration: (iteration.startDate, iteration.iterationId))

    logger.info(
        "Aggregated iteration metrics",
        extra={"items_total": len(items), "iterations": len(metrics)},
    )
    return metrics
