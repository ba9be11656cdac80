"""Writer stage: narration scripts."""

from .writer import Writer

__all__ = ["Writer"]
