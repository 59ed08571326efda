"""Calendar import pipeline stages."""

from .batch import (
    BatchError,
    BatchNotEditable,
    BatchNotExecutable,
    BatchNotRollbackable,
    InvalidBatchTransition,
    assign_club,
    calculate_batch_summary,
    can_execute,
    can_rollback,
    remove_event,
    update_event,
)
from .club_matching import confidence_tier, find_best_club_match, normalize_club_name, suggest_club_matches
from .dates import parse_date
from .normalize import NormalizationStatistics, create_split_events, map_row_to_event, process_rows

__all__ = [
    "BatchError",
    "BatchNotEditable",
    "BatchNotExecutable",
    "BatchNotRollbackable",
    "InvalidBatchTransition",
    "NormalizationStatistics",
    "assign_club",
    "calculate_batch_summary",
    "can_execute",
    "can_rollback",
    "confidence_tier",
    "create_split_events",
    "find_best_club_match",
    "map_row_to_event",
    "normalize_club_name",
    "parse_date",
    "process_rows",
    "remove_event",
    "suggest_club_matches",
    "update_event",
]
