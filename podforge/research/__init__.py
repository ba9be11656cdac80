"""Curator stage: research dossiers."""

from .curator import Curator, build_raw_context, source_count_range

__all__ = ["Curator", "build_raw_context", "source_count_range"]
