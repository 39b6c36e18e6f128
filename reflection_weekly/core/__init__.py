"""
Core domain models and error types.

This package contains the data types and error taxonomy that are
independent of any specific pipeline stage.
"""

from .errors import (
    AllSourcesFailedError,
    ClientError,
    ConfigInvalidError,
    DataCollectionFailedError,
    PublishError,
    ReflectionError,
    SourceError,
)
from .types import (
    DateRange,
    IntegratedData,
    NarrativeResult,
    PublishResult,
    PullRequestRecord,
    ReflectionResult,
    TimeEntryRecord,
)

__all__ = [
    "AllSourcesFailedError",
    "ClientError",
    "ConfigInvalidError",
    "DataCollectionFailedError",
    "PublishError",
    "ReflectionError",
    "SourceError",
    "DateRange",
    "IntegratedData",
    "NarrativeResult",
    "PublishResult",
    "PullRequestRecord",
    "ReflectionResult",
    "TimeEntryRecord",
]
