"""Client-side mirror of pod readiness over change notifications."""

from .sync_client import PodcastSyncClient

__all__ = ["PodcastSyncClient"]
