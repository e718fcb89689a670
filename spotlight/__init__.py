"""Spotlight - highlight detection, enrichment and personalized ranking."""

__version__ = "1.0.0"
