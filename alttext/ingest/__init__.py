"""Ingest: source URL policy, remote fetch and the ingest coordinator."""
