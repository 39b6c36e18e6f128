"""Weekly reflection generator for GitHub and Toggl activity."""

__version__ = "0.1.0"
