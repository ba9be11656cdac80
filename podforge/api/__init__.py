"""HTTP surface: job submission, orchestrator and worker triggers."""

from .app import create_app

__all__ = ["create_app"]
