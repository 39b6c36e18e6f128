"""
Source readers and the shared retry executor.

This package contains the GitHub and Toggl readers plus the
exponential-backoff helper every outbound client uses.
"""

from .base import SourceResult
from .github import GitHubReader, classify_github_error
from .retry import RetryPolicy, default_is_retryable, execute_with_retry
from .toggl import ProjectNameCache, TogglReader, classify_toggl_error

__all__ = [
    "SourceResult",
    "GitHubReader",
    "TogglReader",
    "ProjectNameCache",
    "RetryPolicy",
    "execute_with_retry",
    "default_is_retryable",
    "classify_github_error",
    "classify_toggl_error",
]
