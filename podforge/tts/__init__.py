"""Chunked narration rendering."""

from .chunked_synthesizer import ChunkedSynthesizer, SynthesisResult, estimate_duration, split_into_chunks

__all__ = ["ChunkedSynthesizer", "SynthesisResult", "estimate_duration", "split_into_chunks"]
