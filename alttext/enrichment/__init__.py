"""Enrichment: the read-path funnel, alt-text sanitizer and inference adapters."""
