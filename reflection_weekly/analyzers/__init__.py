"""Data integration and narrative analysis stages."""

from .activity_analyzer import ActivityAnalyzer
from .integrator import DataIntegrator, SourceConfig

__all__ = ["ActivityAnalyzer", "DataIntegrator", "SourceConfig"]
