"""Subtitle Forge: extract and convert the subtitle tracks of MKV files."""

from .orchestrator import BatchOrchestrator

__version__ = "1.0.0"
__all__ = ["BatchOrchestrator"]
