"""
PodForge - micro-podcast generation pipeline.

Pipeline stages:
1. Curator - research dossier (search-grounded, with JSON fallback)
2. Writer - titled script from the dossier
3. Fan-out - speech synthesis, cover art and embedding workers
4. Realtime sync - readiness flags pushed to subscribed clients
"""

__version__ = "0.1.0"
