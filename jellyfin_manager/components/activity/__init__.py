"""
Activity component - Activity log recording and querying.
"""

from .component import ACTIVITY_TYPES, run, run_log, run_query, run_user_activity
from .models import (
    MAX_PAGE_SIZE,
    ActivityListOutput,
    ActivityValidationError,
    LogActivityInput,
    LogOutput,
    QueryActivityInput,
    UserActivityInput,
)
from .ports import ActivityRepoPort

__all__ = [
    # Entry points
    "run",
    "run_log",
    "run_query",
    "run_user_activity",
    "ACTIVITY_TYPES",
    "MAX_PAGE_SIZE",
    # Models
    "ActivityListOutput",
    "ActivityValidationError",
    "LogActivityInput",
    "LogOutput",
    "QueryActivityInput",
    "UserActivityInput",
    # Ports
    "ActivityRepoPort",
]
